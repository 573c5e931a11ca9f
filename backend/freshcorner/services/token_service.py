# Overview: Signed bearer tokens (HS256 JWT) for customers and admins.

"""
Token issuing and verification.

Tokens carry user_id, phone, role, iat and exp. Verification always reloads
the user so that a deactivated account stops working immediately and role
checks see the current role rather than the one baked into the token.
"""

from __future__ import annotations

from datetime import timedelta

import jwt
from flask import current_app

from ..extensions import db
from ..models import User
from freshcorner.time_utils import utcnow
from ..validation import AuthError

REQUIRED_CLAIMS = ("user_id", "phone", "role", "iat", "exp")


def issue_token(user: User) -> str:
    now = utcnow()
    claims = {
        "user_id": user.id,
        "phone": user.phone,
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(days=current_app.config["JWT_EXPIRES_DAYS"]),
    }
    return jwt.encode(
        claims,
        current_app.config["JWT_SECRET"],
        algorithm=current_app.config["JWT_ALGORITHM"],
    )


def decode_token(token: str) -> dict:
    try:
        claims = jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
            options={"require": list(REQUIRED_CLAIMS)},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")

    if not isinstance(claims.get("user_id"), int) or isinstance(claims.get("user_id"), bool):
        raise AuthError("Invalid token")
    return claims


def authenticate(token: str) -> tuple[User, dict]:
    claims = decode_token(token)
    user = db.session.get(User, claims["user_id"])
    if user is None:
        raise AuthError("Invalid token")
    if not user.is_active:
        raise AuthError("Account is deactivated")
    return user, claims
