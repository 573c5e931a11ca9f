# backend/freshcorner/routes/profile.py
from flask import Blueprint, request, g

from ..decorators import require_auth
from ..responses import ok, from_error, server_error
from ..services import user_service
from ..validation import ServiceError

profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")


@profile_bp.get("")
@require_auth
def get_profile_route():
    try:
        profile = user_service.get_profile(g.current_user.id)
    except ServiceError as e:
        return from_error(e)
    return ok({"user": profile})


@profile_bp.put("")
@require_auth
def update_profile_route():
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.update_profile(
            g.current_user.id,
            full_name=data.get("full_name"),
            email=data.get("email"),
        )
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("update profile")

    return ok({"user": user.to_dict()}, message="Profile updated")
