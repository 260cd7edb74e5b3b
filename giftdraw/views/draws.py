from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user
from pydantic import ValidationError

from ..errors import (
    DrawCreationError,
    InsufficientParticipantsError,
    MatchesAlreadyExistError,
    MatchPersistenceError,
    ParticipantCreationError,
)
from ..policies import DrawAuthorRequiredMixin, LoginRequiredMixin, json_error
from ..schemas import CreateDrawRequest, DrawOut, ParticipantOut, validation_details
from ..services.draws import DrawService
from ..services.matching import MatchingService
from ..services.provisioning import AccountProvisioner
from ..services.store import DrawStore

logger = logging.getLogger(__name__)

draws_bp = Blueprint("draws", __name__, url_prefix="/draws")


def _draw_service() -> DrawService:
    return DrawService.from_config(DrawStore(), current_app.config)


def _matching_service() -> MatchingService:
    return MatchingService(DrawStore(), AccountProvisioner())


class DrawsView(LoginRequiredMixin):
    def get(self):
        draws = _draw_service().get_draws_by_author(current_user.id)
        return jsonify([DrawOut.model_validate(d).model_dump() for d in draws])

    def post(self):
        body = request.get_json(silent=True)
        if body is None:
            return json_error(400, "Bad Request", "Invalid JSON in request body")

        try:
            command = CreateDrawRequest.model_validate(body)
        except ValidationError as e:
            return json_error(400, "Validation Error", "Invalid request data", validation_details(e))

        try:
            draw = _draw_service().create_draw(command.name, command.participants, current_user.id)
        except ParticipantCreationError as e:
            return json_error(
                500, "Internal Server Error",
                f"Failed to create draw participants after {e.attempts} attempts",
            )
        except DrawCreationError:
            return json_error(500, "Internal Server Error", "Failed to create draw")

        logger.info(
            "Draw %s created by user %s with %d participants",
            draw.id, current_user.id, len(command.participants),
        )
        return jsonify(DrawOut.model_validate(draw).model_dump()), 201


class DrawParticipantsView(DrawAuthorRequiredMixin):
    def get(self, draw):
        participants = _draw_service().get_participants(draw.id)
        return jsonify(
            participants=[ParticipantOut.model_validate(p).model_dump() for p in participants],
            has_matches=_matching_service().matches_exist(draw.id),
        )


class DrawMatchView(DrawAuthorRequiredMixin):
    def post(self, draw):
        service = _matching_service()

        if service.matches_exist(draw.id):
            return json_error(400, "Bad Request", "Matches have already been generated for this draw")

        try:
            result = service.generate_matches(draw.id)
        except (InsufficientParticipantsError, MatchesAlreadyExistError) as e:
            return json_error(400, "Bad Request", str(e))
        except MatchPersistenceError:
            return json_error(500, "Internal Server Error", "Failed to generate matches. Please try again")

        if result.provisioning_failures:
            logger.warning(
                "Draw %s matched with %d participants left unlinked",
                draw.id, len(result.provisioning_failures),
            )
        # The author passes these on; existing accounts keep their own password.
        accounts = [
            {
                "participant_id": a.participant_id,
                "email": a.email,
                "temporary_password": a.temporary_password,
            }
            for a in result.provisioned
            if a.temporary_password is not None
        ]
        return jsonify(
            message="Matches created successfully",
            accounts=accounts,
            unlinked_participants=result.provisioning_failures,
        )


draws_bp.add_url_rule("", view_func=DrawsView.as_view("draws"), methods=["GET", "POST"])
draws_bp.add_url_rule(
    "/<int:draw_id>/participants",
    view_func=DrawParticipantsView.as_view("participants"),
    methods=["GET"],
)
draws_bp.add_url_rule(
    "/<int:draw_id>/match",
    view_func=DrawMatchView.as_view("match"),
    methods=["POST"],
)
