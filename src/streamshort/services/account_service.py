"""Account service — email/password registration and login.

Learn: The secondary sign-in path. It produces the same User rows and
the same token pairs as the OTP flow; only the proof of identity
differs. Unknown email and wrong password both give
InvalidCredentials so the endpoint can't be used to probe which
emails are registered.
"""

import secrets
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort.auth.password import hash_password, verify_password
from streamshort.clock import Clock, system_clock
from streamshort.db.models import User
from streamshort.errors import ConflictError, InvalidCredentials, Unauthorized
from streamshort.events.store import EventStore
from streamshort.events.types import USER_CREATED, USER_LOGGED_IN
from streamshort.services.otp_service import normalize_phone

logger = structlog.get_logger()

# Checked against when the email is unknown, so both paths pay for bcrypt.
_DUMMY_HASH = hash_password(secrets.token_urlsafe(16))


class AccountService:
    """Business logic for password-based accounts."""

    def __init__(self, db: AsyncSession, clock: Clock = system_clock):
        self.db = db
        self.clock = clock
        self.events = EventStore(db)

    async def register(
        self,
        email: str,
        password: str,
        phone: Optional[str] = None,
    ) -> User:
        email = email.strip().lower()
        phone = normalize_phone(phone) if phone else None

        existing = await self.db.execute(select(User).where(User.email == email))
        if existing.scalars().first():
            raise ConflictError("Email already registered")
        if phone:
            taken = await self.db.execute(select(User).where(User.phone == phone))
            if taken.scalars().first():
                raise ConflictError("Phone already registered")

        now = self.clock.now()
        user = User(
            email=email,
            phone=phone,
            password_hash=hash_password(password),
            role="user",
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            # A concurrent registration won the unique constraint.
            await self.db.rollback()
            raise ConflictError("Email or phone already registered")

        await self.events.append(
            stream_id=f"user:{user.id}",
            event_type=USER_CREATED,
            data={"via": "password"},
        )
        await self.db.commit()

        logger.info("account.registered", user_id=str(user.id))
        return user

    async def login(self, email: str, password: str) -> User:
        """Check credentials. Flushes only; the caller commits with the tokens."""
        email = email.strip().lower()
        result = await self.db.execute(
            select(User).where(User.email == email, User.deleted_at.is_(None))
        )
        user = result.scalars().first()

        if not user or not user.password_hash:
            verify_password(password, _DUMMY_HASH)
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            raise InvalidCredentials()
        if not user.is_active:
            raise Unauthorized("Account is deactivated")

        await self.events.append(
            stream_id=f"user:{user.id}",
            event_type=USER_LOGGED_IN,
            data={"via": "password"},
        )
        return user

    async def get_user(self, user_id) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.id == user_id, User.deleted_at.is_(None))
        )
        return result.scalars().first()
