import logging
from typing import Optional

import jwt
from fastapi import Query, Request

from app.config import AUTH_JWT_SECRET, AUTH_JWT_ALGORITHM, AUTH_JWT_AUDIENCE
from app.context import AuthContext, ADMIN_CAPABILITY
from app.errors import Unauthenticated, Forbidden, ValidationFailed

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Pull the raw token out of an Authorization header.

    Raises Unauthenticated when the header is missing or not a Bearer header.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthenticated("Authentication required", "AUTH_REQUIRED")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise Unauthenticated("Authentication required", "AUTH_REQUIRED")
    return token


def validate_token(token: str) -> str:
    """
    Validate a JWT issued by the auth service.

    Args:
        token: raw bearer token

    Returns:
        The auth user id (the `sub` claim)
    """
    try:
        payload = jwt.decode(
            token,
            AUTH_JWT_SECRET,
            algorithms=[AUTH_JWT_ALGORITHM],
            audience=AUTH_JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Session expired. Please login again.", "TOKEN_EXPIRED")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {e}")
        raise Unauthenticated("Invalid token", "INVALID_TOKEN")

    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("Invalid token", "INVALID_TOKEN")
    return str(user_id)


def check_capability(auth: AuthContext, capability: str) -> None:
    """
    Check if the caller holds a capability. Raises Forbidden if not.
    Admins hold every capability.

    Usage:
        check_capability(ctx.auth, "can_access_analytics")
    """
    if auth.is_admin or auth.has_capability(capability):
        return None

    raise Forbidden("You do not have access to this operation", "PERMISSION_DENIED")


def require_admin(auth: AuthContext) -> None:
    """Raise Forbidden unless the caller resolved to an admin."""
    if auth.is_admin and auth.has_capability(ADMIN_CAPABILITY):
        return None

    raise Forbidden("Admin access required", "ADMIN_REQUIRED")


def check_branch_access(auth: AuthContext, branch_id: Optional[int]) -> None:
    """Raise Forbidden when the branch is outside the caller's scope."""
    if auth.can_access_branch(branch_id):
        return None

    raise Forbidden("Access denied to this branch", "BRANCH_ACCESS_DENIED")


def get_branch_id(branch_id: Optional[str] = Query(None)) -> Optional[int]:
    """Optional branch_id query parameter, parsed to int."""
    if branch_id is None or branch_id == "":
        return None
    return parse_branch_id(branch_id)


def parse_branch_id(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed("branch_id must be a number", "INVALID_BRANCH_ID")


async def get_json_body(request: Request) -> dict:
    """Request body as a dict; an empty, malformed or non-object body reads as {}."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
