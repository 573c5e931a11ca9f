# Overview: Saved delivery addresses; at most one active default per user.

"""
Saved addresses.

A user's first active address becomes the default automatically. Setting
is_default on another address moves the default there; clearing is_default
on the current default is ignored so a user with addresses always has one.
Deletion is a soft delete; removing the default promotes the most recently
created remaining address.
"""

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Address
from freshcorner.time_utils import utcnow
from ..validation import NotFoundError
from .concurrency import atomic

ADDRESS_MUTABLE_FIELDS = {
    "label", "label_custom", "recipient_name", "phone",
    "address_line1", "address_line2", "floor_number", "apartment_number",
    "landmark", "area", "thana", "district",
    "latitude", "longitude", "google_place_id",
}


def _active(user_id: int):
    return db.session.query(Address).filter(Address.user_id == user_id, Address.is_active.is_(True))


def _owned(user_id: int, address_id: int) -> Address:
    address = _active(user_id).filter(Address.id == address_id).first()
    if address is None:
        raise NotFoundError("Address not found")
    return address


def _clear_default(user_id: int, *, except_id: int | None = None) -> None:
    stmt = (
        update(Address)
        .where(Address.user_id == user_id, Address.is_default.is_(True))
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )
    if except_id is not None:
        stmt = stmt.where(Address.id != except_id)
    db.session.execute(stmt)


def list_addresses(user_id: int) -> list[Address]:
    return (
        _active(user_id)
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
        .all()
    )


def create_address(user_id: int, *, patch: dict) -> Address:
    make_default = bool(patch.pop("is_default", False))

    with atomic():
        has_active = _active(user_id).first() is not None
        if not has_active:
            make_default = True
        if make_default:
            _clear_default(user_id)

        address = Address(user_id=user_id, is_default=make_default, is_active=True)
        for key, value in patch.items():
            if key in ADDRESS_MUTABLE_FIELDS:
                setattr(address, key, value)
        db.session.add(address)
    return address


def update_address(user_id: int, address_id: int, *, patch: dict) -> Address:
    address = _owned(user_id, address_id)
    make_default = patch.pop("is_default", None)

    with atomic():
        for key, value in patch.items():
            if key in ADDRESS_MUTABLE_FIELDS:
                setattr(address, key, value)
        if make_default and not address.is_default:
            _clear_default(user_id, except_id=address.id)
            address.is_default = True
        address.updated_at = utcnow()
    return address


def set_default_address(user_id: int, address_id: int) -> Address:
    address = _owned(user_id, address_id)
    with atomic():
        _clear_default(user_id, except_id=address.id)
        address.is_default = True
        address.updated_at = utcnow()
    return address


def delete_address(user_id: int, address_id: int) -> None:
    address = _owned(user_id, address_id)
    with atomic():
        was_default = address.is_default
        address.is_active = False
        address.is_default = False
        address.updated_at = utcnow()
        db.session.flush()

        if was_default:
            successor = (
                _active(user_id)
                .order_by(Address.created_at.desc(), Address.id.desc())
                .first()
            )
            if successor is not None:
                successor.is_default = True