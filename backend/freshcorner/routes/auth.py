# backend/freshcorner/routes/auth.py
"""
Phone OTP authentication routes.

POST /request-otp sends a code; POST /verify-otp exchanges it for a token
that must be sent as "Authorization: Bearer <token>" on protected routes.
"""

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..responses import ok, from_error, server_error
from ..services import auth_service
from ..validation import ServiceError

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/request-otp")
def request_otp_route():
    data = request.get_json(silent=True) or {}
    try:
        result = auth_service.request_otp(data.get("phone"), data.get("purpose") or "login")
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("send OTP")

    return ok({"expires_in": result["expires_in"]}, message="OTP sent")


@auth_bp.post("/verify-otp")
def verify_otp_route():
    data = request.get_json(silent=True) or {}
    try:
        user, token, is_new = auth_service.verify_otp(data.get("phone"), data.get("otp"))
    except ServiceError as e:
        return from_error(e)
    except Exception:
        return server_error("verify OTP")

    return ok({"token": token, "user": user.to_dict(), "is_new_user": is_new}, message="Login successful")


@auth_bp.get("/me")
@require_auth
def me_route():
    return ok({"user": g.current_user.to_dict()})
