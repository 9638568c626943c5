"""SMS delivery for OTP codes.

Learn: Delivery is an external collaborator. The OTP engine only
guarantees the challenge row exists; whether the text actually
arrives is the gateway's problem, and a failure is logged rather
than surfaced to the caller (they can always request a new code).

Plug a real gateway in by implementing SmsSender and overriding the
get_sms_sender dependency.
"""

from typing import Protocol

import structlog

from streamshort.config import settings

logger = structlog.get_logger()


class SmsSender(Protocol):
    """Anything that can deliver a code to a phone number."""

    async def send_otp(self, phone: str, code: str) -> None:
        ...


def mask_phone(phone: str) -> str:
    """+15550001111 → +1555***1111"""
    if len(phone) <= 7:
        return "***"
    return f"{phone[:-7]}***{phone[-4:]}"


class LoggingSmsSender:
    """Writes the code to the log instead of sending a text.

    The code itself is only logged in development; elsewhere the
    entry records the delivery attempt without the secret.
    """

    async def send_otp(self, phone: str, code: str) -> None:
        if settings.environment == "development":
            logger.info("sms.otp_dispatched", phone=phone, code=code)
        else:
            logger.info("sms.otp_dispatched", phone=mask_phone(phone))


_sender: SmsSender = LoggingSmsSender()


def get_sms_sender() -> SmsSender:
    """FastAPI dependency — override with a real gateway or a test double."""
    return _sender
