from __future__ import annotations

from flask import jsonify, request
from flask_login import current_user
from flask.views import MethodView

from .models import Draw
from .services.store import DrawStore


def json_error(status: int, error: str, message: str, details=None):
    body = {"error": error, "message": message}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def is_draw_author(draw: Draw) -> bool:
    return current_user.is_authenticated and draw.author_id == current_user.id


# --------- Class-based view Mixins ----------

def _login_denied():
    if not current_user.is_authenticated:
        return json_error(401, "Unauthorized", "Authentication required")

    # Provisioned accounts must replace their temporary password first.
    # Allow only change-password + logout while in this state.
    if getattr(current_user, "must_change_password", False):
        if request.endpoint not in {"auth.change_password", "auth.logout"}:
            return json_error(403, "Forbidden", "Password change required")

    return None


class LoginRequiredMixin(MethodView):
    def dispatch_request(self, *args, **kwargs):
        denied = _login_denied()
        if denied is not None:
            return denied
        return super().dispatch_request(*args, **kwargs)


class DrawAuthorRequiredMixin(MethodView):
    """
    Resolves ``draw_id`` to a Draw and passes it on as ``draw``.
    404 if it does not exist, 403 if the current user is not its author.
    """
    def dispatch_request(self, *args, **kwargs):
        denied = _login_denied()
        if denied is not None:
            return denied

        draw = DrawStore().get_draw(kwargs.pop("draw_id"))
        if draw is None:
            return json_error(404, "Not Found", "Draw not found")
        if not is_draw_author(draw):
            return json_error(403, "Forbidden", "You do not have access to this draw")

        return super().dispatch_request(*args, draw=draw, **kwargs)
