"""Minimal auth dependency.

Stub implementation that reads the caller's user id (and optional admin
role) from a bearer token. Identity verification is out of scope here.
"""

import uuid
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

DEFAULT_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")


@dataclass(frozen=True)
class RequestContext:
    """Caller identity for one request."""

    user_id: uuid.UUID
    is_admin: bool = False


async def get_current_context(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Accepted formats:
    - no header: default test user, not an admin
    - "Bearer <user_id>"
    - "Bearer <user_id>:admin"

    Raises:
        HTTPException: If authorization is invalid
    """
    if not authorization:
        return RequestContext(user_id=DEFAULT_USER_ID)

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[7:]  # Strip "Bearer "
    user_part, _, role = token.partition(":")

    if role not in ("", "admin"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format (expected user_id or user_id:admin)",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = uuid.UUID(user_part)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format (expected user_id or user_id:admin)",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    return RequestContext(user_id=user_id, is_admin=role == "admin")


async def require_admin(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
) -> RequestContext:
    """Reject callers without the admin role."""
    if not ctx.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return ctx
