"""Token service — access/refresh pair issuance, rotation and revocation.

Learn: The refresh token lifecycle is a tiny state machine:

    active --refresh--> revoked   (a new active token is created)
    active --logout---> revoked
    active --expiry---> (implicitly invalid, checked live in SQL)

There is no way out of "revoked". Rotation is mandatory: after a
successful refresh the old token never validates again.

The revoke step is a conditional UPDATE (... WHERE revoked = false)
and we check rowcount. Two requests racing with the same refresh
token both find the row, but only one of them flips the flag — the
other sees rowcount == 0 and gets InvalidRefreshToken.
"""

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort.auth.jwt import (
    ACCESS_TOKEN_TYPE,
    TokenError,
    create_access_token,
    verify_token,
)
from streamshort.clock import Clock, system_clock
from streamshort.config import settings
from streamshort.db.models import RefreshToken, User
from streamshort.errors import InvalidRefreshToken, InvalidToken, UserNotFound
from streamshort.events.store import EventStore
from streamshort.events.types import TOKEN_ISSUED, TOKEN_REFRESHED, TOKENS_REVOKED

logger = structlog.get_logger()

REFRESH_TOKEN_BYTES = 32  # 256 bits of entropy


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime, seconds


@dataclass(frozen=True)
class AccessClaims:
    """Verified contents of an access token."""

    user_id: uuid.UUID
    phone: Optional[str]
    email: Optional[str]
    role: str
    issued_at: datetime
    expires_at: datetime


def generate_refresh_token() -> str:
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def verify_access_token(token: str, now: datetime) -> AccessClaims:
    """Check signature, algorithm, type and expiry. No database access."""
    try:
        payload = verify_token(token, now=now)
        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise TokenError("Not an access token")
        user_id = uuid.UUID(str(payload["sub"]))
    except TokenError as e:
        raise InvalidToken(str(e))
    except ValueError:
        raise InvalidToken("Invalid token: malformed subject")

    return AccessClaims(
        user_id=user_id,
        phone=payload.get("phone"),
        email=payload.get("email"),
        role=payload.get("role") or "user",
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


class TokenService:
    """Issues, verifies, rotates and revokes session credentials."""

    def __init__(self, db: AsyncSession, clock: Clock = system_clock):
        self.db = db
        self.clock = clock
        self.events = EventStore(db)

    # ─── Issue ───────────────────────────────────────────

    async def issue_token_pair(
        self,
        user: User,
        refresh_expires_days: Optional[int] = None,
    ) -> TokenPair:
        """Sign an access token and persist a fresh refresh token.

        Flushes but does not commit — the caller owns the transaction,
        so OTP consumption and token issuance land together.
        """
        now = self.clock.now()
        access_token = create_access_token(
            str(user.id),
            phone=user.phone,
            email=user.email,
            role=user.role,
            now=now,
        )

        refresh = RefreshToken(
            token=generate_refresh_token(),
            user_id=user.id,
            expires_at=now + timedelta(
                days=refresh_expires_days or settings.refresh_token_expire_days
            ),
            revoked=False,
            created_at=now,
        )
        self.db.add(refresh)
        await self.db.flush()

        await self.events.append(
            stream_id=f"user:{user.id}",
            event_type=TOKEN_ISSUED,
            data={"refresh_token_id": str(refresh.id)},
        )

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh.token,
            expires_in=settings.access_token_expire_minutes * 60,
        )

    # ─── Refresh (rotation) ──────────────────────────────

    async def refresh_token_pair(self, token: str) -> TokenPair:
        """Exchange a valid refresh token for a brand-new pair.

        Raises:
            InvalidRefreshToken: unknown, revoked, expired, or lost a race
            UserNotFound: the owning user is gone or deactivated
        """
        if not token:
            raise InvalidRefreshToken()

        now = self.clock.now()
        result = await self.db.execute(
            select(RefreshToken).where(
                RefreshToken.token == token,
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > now,
            )
        )
        stored = result.scalars().first()
        if stored is None:
            logger.info("token.refresh_rejected")
            raise InvalidRefreshToken()

        # Compare-and-set: only one caller can move this row to revoked.
        revoked = await self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.id == stored.id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        if revoked.rowcount != 1:
            logger.warning("token.refresh_race_lost", refresh_token_id=str(stored.id))
            raise InvalidRefreshToken()

        user = await self._active_user(stored.user_id)
        if user is None:
            raise UserNotFound()

        pair = await self.issue_token_pair(user)

        await self.events.append(
            stream_id=f"user:{user.id}",
            event_type=TOKEN_REFRESHED,
            data={"revoked_token_id": str(stored.id)},
        )
        await self.db.commit()

        logger.info("token.refreshed", user_id=str(user.id))
        return pair

    # ─── Verify ──────────────────────────────────────────

    def verify_access_token(self, token: str) -> AccessClaims:
        return verify_access_token(token, self.clock.now())

    # ─── Revoke (logout) ─────────────────────────────────

    async def revoke(self, user_id: uuid.UUID) -> int:
        """Revoke every active refresh token the user holds.

        Idempotent: returns 0 when there was nothing left to revoke.
        """
        result = await self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0

        await self.events.append(
            stream_id=f"user:{user_id}",
            event_type=TOKENS_REVOKED,
            data={"count": count},
        )
        await self.db.commit()

        logger.info("token.revoked", user_id=str(user_id), count=count)
        return count

    async def _active_user(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(
                User.id == user_id,
                User.deleted_at.is_(None),
                User.is_active.is_(True),
            )
        )
        return result.scalars().first()
