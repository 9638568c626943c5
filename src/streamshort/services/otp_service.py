"""OTP service — phone one-time-password challenges.

Learn: The OTP engine is a two-step state machine per transaction:

    created (used=false) --verify--> consumed (used=true)
    created --expiry--> dead (never swept, just ignored by lookups)

Verification rules:
1. Look up the newest transaction matching phone + code that is unused
   and unexpired — all four conditions in ONE query.
2. Wrong code, expired code and already-used code all produce the same
   InvalidOTP. Callers can't tell which one happened (anti-enumeration).
3. Consume with a conditional UPDATE ... WHERE used = false and check
   rowcount, so concurrent verifications of the same code can't both
   proceed to token issuance.

Several unexpired challenges per phone may coexist; requesting a new
code does not invalidate an earlier one.
"""

import re
import secrets
import string
from dataclasses import dataclass
from datetime import timedelta

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort.clock import Clock, system_clock
from streamshort.config import settings
from streamshort.db.models import OTPTransaction, User
from streamshort.errors import InvalidOTP, Unauthorized, ValidationError
from streamshort.events.store import EventStore
from streamshort.events.types import OTP_REQUESTED, OTP_VERIFIED, USER_CREATED
from streamshort.notifications.sms import LoggingSmsSender, SmsSender, mask_phone

logger = structlog.get_logger()

PHONE_PATTERN = re.compile(r"^\+?[0-9]{7,15}$")
_PHONE_NOISE = re.compile(r"[\s\-().]")
TXN_PREFIX = "otp_txn_"


def normalize_phone(phone: str | None) -> str:
    """Strip formatting characters and validate the result.

    Raises ValidationError for empty or malformed numbers.
    """
    cleaned = _PHONE_NOISE.sub("", phone or "")
    if not cleaned:
        raise ValidationError("Phone number is required")
    if not PHONE_PATTERN.match(cleaned):
        raise ValidationError("Invalid phone number")
    return cleaned


def generate_code(length: int = 6) -> str:
    """Uniform random digits from the OS CSPRNG."""
    return "".join(secrets.choice(string.digits) for _ in range(length))


def new_txn_id() -> str:
    return f"{TXN_PREFIX}{secrets.token_hex(4)}"


@dataclass(frozen=True)
class OTPChallenge:
    txn_id: str
    phone: str
    expires_in: int


@dataclass(frozen=True)
class OTPVerification:
    user: User
    newly_created: bool


class OTPService:
    """Issues and verifies phone OTP challenges."""

    def __init__(
        self,
        db: AsyncSession,
        sms: SmsSender | None = None,
        clock: Clock = system_clock,
    ):
        self.db = db
        self.sms = sms or LoggingSmsSender()
        self.clock = clock
        self.events = EventStore(db)

    async def request_otp(self, phone: str) -> OTPChallenge:
        """Create a challenge, commit it, then hand the code to the SMS sender."""
        phone = normalize_phone(phone)
        now = self.clock.now()
        code = generate_code(settings.otp_length)

        txn = OTPTransaction(
            txn_id=new_txn_id(),
            phone=phone,
            code=code,
            expires_at=now + timedelta(seconds=settings.otp_expire_seconds),
            used=False,
            created_at=now,
        )
        self.db.add(txn)
        await self.db.flush()

        await self.events.append(
            stream_id=f"otp:{txn.txn_id}",
            event_type=OTP_REQUESTED,
            data={"phone": mask_phone(phone)},
        )
        await self.db.commit()

        logger.info("otp.requested", txn_id=txn.txn_id, phone=mask_phone(phone))

        # Delivery problems never fail the request.
        try:
            await self.sms.send_otp(phone, code)
        except Exception as e:
            logger.warning(
                "otp.delivery_failed",
                txn_id=txn.txn_id,
                phone=mask_phone(phone),
                error=str(e),
            )

        return OTPChallenge(
            txn_id=txn.txn_id,
            phone=phone,
            expires_in=settings.otp_expire_seconds,
        )

    async def verify_otp(self, phone: str, code: str) -> OTPVerification:
        """Consume a matching challenge and return the (possibly new) user.

        Flushes but does not commit — the caller commits once the token
        pair has been issued, so consumption and issuance are atomic.

        Raises:
            ValidationError: phone or code missing/malformed
            InvalidOTP: no usable challenge (wrong, expired, or used)
            Unauthorized: the phone belongs to a deactivated account
        """
        phone = normalize_phone(phone)
        code = (code or "").strip()
        if not code:
            raise ValidationError("OTP is required")

        now = self.clock.now()
        result = await self.db.execute(
            select(OTPTransaction)
            .where(
                OTPTransaction.phone == phone,
                OTPTransaction.code == code,
                OTPTransaction.used.is_(False),
                OTPTransaction.expires_at > now,
            )
            .order_by(OTPTransaction.created_at.desc())
            .limit(1)
        )
        txn = result.scalars().first()
        if txn is None:
            logger.info("otp.rejected", phone=mask_phone(phone))
            raise InvalidOTP()

        consumed = await self.db.execute(
            update(OTPTransaction)
            .where(OTPTransaction.id == txn.id, OTPTransaction.used.is_(False))
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        if consumed.rowcount != 1:
            logger.warning("otp.race_lost", txn_id=txn.txn_id)
            raise InvalidOTP()

        user, newly_created = await self._get_or_create_user(phone)

        await self.events.append(
            stream_id=f"otp:{txn.txn_id}",
            event_type=OTP_VERIFIED,
            data={"user_id": str(user.id), "newly_created": newly_created},
        )

        logger.info(
            "otp.verified",
            txn_id=txn.txn_id,
            user_id=str(user.id),
            newly_created=newly_created,
        )
        return OTPVerification(user=user, newly_created=newly_created)

    async def _get_or_create_user(self, phone: str) -> tuple[User, bool]:
        user = await self._existing_user(phone)
        if user is not None:
            return user, False

        now = self.clock.now()
        user = User(phone=phone, role="user", is_active=True, created_at=now, updated_at=now)
        try:
            # Savepoint: losing the insert race must not undo the OTP consumption.
            async with self.db.begin_nested():
                self.db.add(user)
                await self.db.flush()
        except IntegrityError:
            logger.info("otp.user_created_concurrently", phone=mask_phone(phone))
            user = await self._existing_user(phone)
            if user is None:
                raise
            return user, False

        await self.events.append(
            stream_id=f"user:{user.id}",
            event_type=USER_CREATED,
            data={"via": "otp"},
        )
        return user, True

    async def _existing_user(self, phone: str) -> User | None:
        result = await self.db.execute(select(User).where(User.phone == phone))
        user = result.scalars().first()
        # Soft-deleted accounts keep their phone; they can't be revived by OTP.
        if user is not None and (user.deleted_at is not None or not user.is_active):
            raise Unauthorized("Account is deactivated")
        return user
