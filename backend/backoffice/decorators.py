# Overview: Request decorators for API and admin routes.

from functools import wraps

from flask import request, jsonify, g

from .services import session_service


def get_request_token() -> str | None:
    """Bearer token from the Authorization header, else the `token` cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get("token") or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.company_id: The company scope (None for unscoped operators)
    - g.session_context: The full SessionContext object

    Returns 401 if the token is missing, invalid, expired or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_request_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.company_id = context.company_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function
