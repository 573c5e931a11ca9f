from __future__ import annotations

from ..extensions import db
from freshcorner.time_utils import to_utc_z

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"
ROLES = (ROLE_CUSTOMER, ROLE_ADMIN)


class User(db.Model):
    """
    Customer and staff accounts, keyed by phone number.

    Users are created on their first successful OTP verification and are
    never hard-deleted; admins deactivate them instead (is_active=False).
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_created", "role", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    phone = db.Column(db.String(20), nullable=False, unique=True, index=True)
    phone_verified = db.Column(db.Boolean, nullable=False, default=False)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)

    email = db.Column(db.String(255), nullable=True, unique=True)
    full_name = db.Column(db.String(120), nullable=True)

    role = db.Column(db.String(16), nullable=False, default=ROLE_CUSTOMER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} phone={self.phone!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "phone": self.phone,
            "phone_verified": self.phone_verified,
            "is_verified": self.is_verified,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class OtpVerification(db.Model):
    """
    One issued OTP code.

    Several codes may be outstanding for one phone; verification picks the
    most recent unexpired, unused row matching (phone, code) and consumes it.
    """
    __tablename__ = "otp_verifications"
    __table_args__ = (
        db.Index("ix_otp_phone_code", "phone", "otp_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(20), nullable=False, index=True)
    otp_code = db.Column(db.String(6), nullable=False)
    purpose = db.Column(db.String(32), nullable=False, default="login")
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_used = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "phone": self.phone,
            "purpose": self.purpose,
            "expires_at": to_utc_z(self.expires_at),
            "is_used": self.is_used,
            "created_at": to_utc_z(self.created_at),
        }
