# Overview: Customer profile and admin user management.

from __future__ import annotations

from sqlalchemy import case, func

from ..extensions import db
from ..models import Order, User
from ..models.orders import STATUS_CANCELLED
from freshcorner.time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import atomic
from .pagination import paginate


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_profile(user_id: int) -> dict:
    user = _get_user(user_id)
    data = user.to_dict()
    data["total_orders"] = db.session.query(func.count(Order.id)).filter(Order.user_id == user.id).scalar() or 0
    return data


def update_profile(user_id: int, *, full_name=None, email=None) -> User:
    """full_name is required; email is optional but unique across users."""
    user = _get_user(user_id)

    full_name = str(full_name).strip() if full_name is not None else ""
    if not full_name:
        raise ValidationError("full_name is required")
    if len(full_name) > 120:
        raise ValidationError("full_name exceeds max length 120")

    email = str(email).strip().lower() if email is not None else ""
    email = email or None
    if email is not None:
        if "@" not in email or len(email) > 255:
            raise ValidationError("email is invalid")
        taken = (
            db.session.query(User.id)
            .filter(User.email == email, User.id != user.id)
            .first()
        )
        if taken is not None:
            raise ConflictError("Email is already in use")

    with atomic():
        user.full_name = full_name
        user.email = email
        user.updated_at = utcnow()
    return user


def list_users_with_stats(*, page: int | None = None, per_page: int | None = None) -> dict:
    """All users with their order count and spend (cancelled orders excluded from spend)."""
    stats = dict(
        (row.user_id, (row.total_orders, row.total_spent))
        for row in db.session.query(
            Order.user_id,
            func.count(Order.id).label("total_orders"),
            func.coalesce(
                func.sum(case((Order.status != STATUS_CANCELLED, Order.total_amount_cents), else_=0)), 0
            ).label("total_spent"),
        ).group_by(Order.user_id).all()
    )

    query = db.session.query(User).order_by(User.created_at.desc(), User.id.desc())
    users, pagination = paginate(query, page, per_page)

    out = []
    for user in users:
        total_orders, total_spent = stats.get(user.id, (0, 0))
        data = user.to_dict()
        data["total_orders"] = int(total_orders)
        data["total_spent_cents"] = int(total_spent)
        out.append(data)
    return {"users": out, "pagination": pagination}


def toggle_user_active(user_id: int, *, actor_user_id: int) -> User:
    user = _get_user(user_id)
    if user.id == actor_user_id and user.is_active:
        raise ValidationError("You cannot deactivate your own account")
    with atomic():
        user.is_active = not user.is_active
        user.updated_at = utcnow()
    return user
