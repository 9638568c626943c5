"""JWT access token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (60min), signed, never stored. There is no
  revocation list — a leaked token is usable until it expires.
- Refresh token: NOT a JWT. It's 256 random bits stored in the database
  (see services/token_service.py), so it can be rotated and revoked.

Verification pins the algorithm to the configured one. A token whose
header says "none" or any other algorithm is rejected before the
signature is even looked at (algorithm-confusion attacks).

Expiry is checked against a caller-supplied "now" rather than PyJWT's
own clock so the whole auth core runs off one injectable Clock.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from streamshort.config import settings

ACCESS_TOKEN_TYPE = "access"


class TokenError(Exception):
    """Raised when token verification fails."""


def create_access_token(
    user_id: str,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    role: str = "user",
    now: Optional[datetime] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a signed JWT access token."""
    issued = now or datetime.now(timezone.utc)
    expires = issued + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    payload = {
        "sub": user_id,
        "user_id": user_id,
        "phone": phone,
        "email": email,
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued,
        "nbf": issued,
        "exp": expires,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, now: Optional[datetime] = None) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={
                "require": ["sub", "exp", "iat", "nbf"],
                "verify_exp": False,
                "verify_nbf": False,
                "verify_iat": False,
            },
        )
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    exp, nbf = payload["exp"], payload["nbf"]
    if not isinstance(exp, (int, float)) or not isinstance(nbf, (int, float)):
        raise TokenError("Invalid token: malformed time claims")

    current = (now or datetime.now(timezone.utc)).timestamp()
    if current >= exp:
        raise TokenError("Token has expired")
    if current < nbf:
        raise TokenError("Token is not yet valid")
    return payload
