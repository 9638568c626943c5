"""FastAPI auth dependencies — the request gate.

Learn: get_current_user is attached with Depends() either to a whole
router (at include_router level, see api/__init__.py) or to a single
route. It runs before the handler, so a request without a valid
access token never reaches business logic.

Handlers receive a typed CurrentIdentity, never the raw token or
loose claim strings. The same identity is stashed on
request.state.identity for middleware and logging.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Depends, Header, Request

from streamshort.clock import Clock, get_clock
from streamshort.errors import Unauthorized
from streamshort.services.token_service import verify_access_token

BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class CurrentIdentity:
    """The authenticated user making the request."""

    user_id: uuid.UUID
    phone: Optional[str] = None
    email: Optional[str] = None
    role: str = "user"


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthorized("Authentication required")
    # Scheme is case-insensitive (RFC 7235); anything but Bearer is rejected.
    if not authorization[: len(BEARER_PREFIX)].lower() == BEARER_PREFIX:
        raise Unauthorized("Invalid authorization header format")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthorized("Invalid authorization header format")
    return token


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    clock: Clock = Depends(get_clock),
) -> CurrentIdentity:
    """Validate the bearer access token. Signature and expiry only, no DB."""
    token = _bearer_token(authorization)
    claims = verify_access_token(token, clock.now())

    identity = CurrentIdentity(
        user_id=claims.user_id,
        phone=claims.phone,
        email=claims.email,
        role=claims.role,
    )
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(user_id=str(identity.user_id))
    return identity
