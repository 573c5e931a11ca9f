from __future__ import annotations

from ..extensions import db
from freshcorner.time_utils import to_utc_z


class Address(db.Model):
    """
    Saved delivery location of one user.

    Among a user's active addresses exactly one is the default once any
    exist. Deleting is a soft delete (is_active=False).
    """
    __tablename__ = "user_addresses"
    __table_args__ = (
        db.Index("ix_user_addresses_user_active", "user_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    label = db.Column(db.String(20), nullable=False, default="home")
    label_custom = db.Column(db.String(60), nullable=True)
    recipient_name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(20), nullable=False)

    address_line1 = db.Column(db.String(255), nullable=False)
    address_line2 = db.Column(db.String(255), nullable=True)
    floor_number = db.Column(db.String(20), nullable=True)
    apartment_number = db.Column(db.String(20), nullable=True)
    landmark = db.Column(db.String(255), nullable=True)
    area = db.Column(db.String(120), nullable=True)
    thana = db.Column(db.String(120), nullable=True)
    district = db.Column(db.String(120), nullable=False, default="Dhaka")

    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    google_place_id = db.Column(db.String(255), nullable=True)

    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("addresses", lazy=True))

    def formatted(self) -> str:
        """Single-line rendering used for the order delivery snapshot."""
        parts = []
        if self.apartment_number:
            parts.append(f"Apt {self.apartment_number}")
        if self.floor_number:
            parts.append(f"Floor {self.floor_number}")
        parts.append(self.address_line1)
        for value in (self.address_line2, self.landmark, self.area, self.thana, self.district):
            if value:
                parts.append(value)
        return ", ".join(parts)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "label": self.label,
            "label_custom": self.label_custom,
            "recipient_name": self.recipient_name,
            "phone": self.phone,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "floor_number": self.floor_number,
            "apartment_number": self.apartment_number,
            "landmark": self.landmark,
            "area": self.area,
            "thana": self.thana,
            "district": self.district,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "google_place_id": self.google_place_id,
            "is_default": self.is_default,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
