from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from flask.views import MethodView
from flask_login import login_user, logout_user, current_user
from flask_wtf.csrf import generate_csrf
from pydantic import ValidationError

from ..extensions import db
from ..models import User
from ..policies import LoginRequiredMixin, json_error
from ..schemas import ChangePasswordRequest, CredentialsRequest, LoginRequest, validation_details
from ..security import hash_password, verify_password

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _parse(schema):
    """Validate the JSON body; returns (model, None) or (None, error response)."""
    body = request.get_json(silent=True)
    if body is None:
        return None, json_error(400, "Bad Request", "Invalid JSON in request body")
    try:
        return schema.model_validate(body), None
    except ValidationError as e:
        return None, json_error(400, "Validation Error", "Invalid request data", validation_details(e))


def _user_json(user: User) -> dict:
    return {"id": user.id, "email": user.email, "must_change_password": user.must_change_password}


class CsrfTokenView(MethodView):
    def get(self):
        return jsonify(csrf_token=generate_csrf())


class SessionView(MethodView):
    def get(self):
        if not current_user.is_authenticated:
            return jsonify(user=None)
        return jsonify(user=_user_json(current_user))


class RegisterView(MethodView):
    def post(self):
        data, error = _parse(CredentialsRequest)
        if error:
            return error

        email = data.email.lower()
        if User.query.filter_by(email=email).first():
            return json_error(400, "Bad Request", "That email is already registered.")

        user = User(email=email, password_hash=hash_password(data.password))
        db.session.add(user)
        db.session.commit()

        logger.info("Registered user %s", user.id)
        return jsonify(_user_json(user)), 201


class LoginView(MethodView):
    def post(self):
        data, error = _parse(LoginRequest)
        if error:
            return error

        user = User.query.filter_by(email=data.email.lower()).first()
        if not user or not verify_password(data.password, user.password_hash):
            return json_error(401, "Unauthorized", "Invalid email or password.")

        login_user(user)
        return jsonify(_user_json(user))


class LogoutView(LoginRequiredMixin):
    def post(self):
        logout_user()
        return jsonify(message="Logged out")


class ChangePasswordView(LoginRequiredMixin):
    """
    Required after logging in with a provisioned temporary password,
    allowed anytime otherwise.
    """
    def post(self):
        data, error = _parse(ChangePasswordRequest)
        if error:
            return error

        if not verify_password(data.current_password, current_user.password_hash):
            return json_error(400, "Bad Request", "Current password is incorrect.")

        current_user.password_hash = hash_password(data.new_password)
        current_user.must_change_password = False
        db.session.commit()

        return jsonify(message="Password updated")


auth_bp.add_url_rule("/csrf", view_func=CsrfTokenView.as_view("csrf"), methods=["GET"])
auth_bp.add_url_rule("/session", view_func=SessionView.as_view("session"), methods=["GET"])
auth_bp.add_url_rule("/register", view_func=RegisterView.as_view("register"), methods=["POST"])
auth_bp.add_url_rule("/login", view_func=LoginView.as_view("login"), methods=["POST"])
auth_bp.add_url_rule("/logout", view_func=LogoutView.as_view("logout"), methods=["POST"])
auth_bp.add_url_rule("/change-password", view_func=ChangePasswordView.as_view("change_password"), methods=["POST"])
