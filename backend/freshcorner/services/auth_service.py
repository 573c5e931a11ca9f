# Overview: Phone OTP login; creates customers on first verification and issues tokens.

"""
Phone + OTP authentication.

request_otp persists a fresh 6-digit code and hands it to the SMS gateway.
verify_otp consumes the most recent matching code, creates the account for
an unseen phone, and returns a signed token. Nothing is created or issued
when verification fails.
"""

from __future__ import annotations

import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import User, OtpVerification
from ..models.auth import ROLE_ADMIN, ROLE_CUSTOMER
from freshcorner.time_utils import utcnow
from ..validation import ValidationError, NotFoundError, AuthError
from . import sms_service, token_service
from .concurrency import atomic

OTP_LENGTH = 6


class InvalidOrExpiredOtp(ValidationError):
    pass


def _normalize_phone(phone) -> str:
    if phone is None:
        return ""
    return str(phone).strip()


def generate_otp_code() -> str:
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def request_otp(phone, purpose: str = "login") -> dict:
    phone = _normalize_phone(phone)
    min_length = current_app.config["OTP_MIN_PHONE_LENGTH"]
    if not phone:
        raise ValidationError("Phone number is required")
    if len(phone) < min_length:
        raise ValidationError(f"Phone number must be at least {min_length} characters")

    ttl = current_app.config["OTP_TTL_SECONDS"]
    code = generate_otp_code()

    with atomic():
        db.session.add(OtpVerification(
            phone=phone,
            otp_code=code,
            purpose=purpose or "login",
            expires_at=utcnow() + timedelta(seconds=ttl),
        ))

    # The code is already stored; a failed send still answers success
    try:
        sms_service.send_otp(phone, code)
    except Exception:
        current_app.logger.exception("Failed to dispatch OTP to %s", phone)

    return {"phone": phone, "expires_in": ttl}


def verify_otp(phone, code) -> tuple[User, str, bool]:
    """
    Consume an OTP and log the phone in.

    Returns (user, token, is_new_user).
    """
    phone = _normalize_phone(phone)
    code = str(code).strip() if code is not None else ""
    if not phone or not code:
        raise ValidationError("Phone number and OTP are required")

    now = utcnow()
    with atomic():
        otp = (
            db.session.query(OtpVerification)
            .filter(
                OtpVerification.phone == phone,
                OtpVerification.otp_code == code,
                OtpVerification.is_used.is_(False),
                OtpVerification.expires_at > now,
            )
            .order_by(OtpVerification.created_at.desc(), OtpVerification.id.desc())
            .first()
        )
        if otp is None:
            raise InvalidOrExpiredOtp("Invalid or expired OTP")

        user = db.session.query(User).filter_by(phone=phone).first()
        is_new = user is None
        if is_new:
            user = User(
                phone=phone,
                phone_verified=True,
                is_verified=True,
                role=ROLE_CUSTOMER,
                is_active=True,
                last_login_at=now,
            )
            db.session.add(user)
        else:
            if not user.is_active:
                raise AuthError("Account is deactivated")
            user.phone_verified = True
            user.last_login_at = now

        otp.is_used = True

    current_app.logger.info("User %s logged in via OTP (new=%s)", user.id, is_new)
    return user, token_service.issue_token(user), is_new


def promote_to_admin(phone: str) -> User:
    """Grant the admin role to an existing phone, or create an admin account for it."""
    phone = _normalize_phone(phone)
    if not phone:
        raise ValidationError("Phone number is required")
    with atomic():
        user = db.session.query(User).filter_by(phone=phone).first()
        if user is None:
            user = User(phone=phone, phone_verified=True, is_verified=True, is_active=True)
            db.session.add(user)
        user.role = ROLE_ADMIN
    return user


def demote_to_customer(phone: str) -> User:
    phone = _normalize_phone(phone)
    with atomic():
        user = db.session.query(User).filter_by(phone=phone).first()
        if user is None:
            raise NotFoundError("User not found")
        user.role = ROLE_CUSTOMER
    return user
