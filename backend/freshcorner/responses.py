"""JSON envelope shared by every route: {"success": bool, "message"?, ...}."""
from __future__ import annotations

from flask import current_app

from .validation import ServiceError


def ok(payload: dict | None = None, *, message: str | None = None, status: int = 200):
    body: dict = {"success": True}
    if message:
        body["message"] = message
    if payload:
        body.update(payload)
    return body, status


def fail(message: str, status: int = 400, details: dict | None = None):
    body: dict = {"success": False, "message": message}
    if details:
        body["details"] = details
    return body, status


def from_error(exc: ServiceError):
    return fail(str(exc), exc.status_code, exc.details)


def server_error(action: str):
    """Log the active exception and answer with a generic 500."""
    current_app.logger.exception("Failed to %s", action)
    return fail(f"Failed to {action}", 500)
