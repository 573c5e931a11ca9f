# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import fail
from .services import token_service
from .validation import AuthError


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid signed token.

    Sets the following Flask g attributes:
    - g.current_user: the User row, loaded fresh for this request
    - g.claims: the decoded token claims

    Returns 401 if:
    - No Authorization header, or not a Bearer header
    - Bad signature, expired token, or missing claims
    - User no longer exists or is deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return fail("Authentication required", 401)

        try:
            user, claims = token_service.authenticate(token)
        except AuthError as e:
            return fail(str(e), 401)

        g.current_user = user
        g.claims = claims

        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """
    Require the authenticated user to hold `role`.

    The role is read from the user row loaded by require_auth, not from the
    token, so promotions and demotions apply to already-issued tokens.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return fail("Authentication required", 401)
            if user.role != role:
                return fail("Insufficient permissions", 403)
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def require_admin(f):
    return require_auth(require_role("admin")(f))
