"""Auth API — phone OTP, email/password, token refresh and logout.

Learn: Routes for the session lifecycle:
- POST /auth/otp/send → create an OTP challenge, code goes out by SMS
- POST /auth/otp/verify → phone + code → token pair (user created on first login)
- POST /auth/register → email/password account
- POST /auth/login → email/password → token pair
- POST /auth/refresh → refresh token → NEW token pair (old one is revoked)
- POST /auth/logout → revoke every refresh token the caller holds
- GET /auth/me → current user info

This router is mounted without the router-level auth dependency
(you can't require a token to obtain one). The two routes that do
need a caller, logout and me, declare get_current_user themselves.

Verification and login routes commit once, after the token pair is
issued: the OTP is consumed and the refresh token stored in the same
transaction, or neither happens.
"""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort.auth.dependencies import CurrentIdentity, get_current_user
from streamshort.clock import Clock, get_clock
from streamshort.db.engine import get_db
from streamshort.errors import UserNotFound
from streamshort.notifications.sms import SmsSender, get_sms_sender
from streamshort.services.account_service import AccountService
from streamshort.services.otp_service import OTPService
from streamshort.services.token_service import TokenPair, TokenService

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class OTPSendRequest(BaseModel):
    phone: Optional[str] = None


class OTPSendResponse(BaseModel):
    txn_id: str
    expires_in: int
    message: str


class OTPVerifyRequest(BaseModel):
    phone: Optional[str] = None
    otp: Optional[str] = None


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=8)
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


class UserRead(BaseModel):
    id: uuid.UUID
    phone: Optional[str] = None
    email: Optional[str] = None
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


def _token_response(pair: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


# ─── Phone OTP ───────────────────────────────────────────


@router.post("/otp/send", response_model=OTPSendResponse)
async def send_otp(
    body: OTPSendRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    sms: SmsSender = Depends(get_sms_sender),
):
    """Start a phone login. The code is delivered out of band."""
    challenge = await OTPService(db, sms=sms, clock=clock).request_otp(body.phone)
    return OTPSendResponse(
        txn_id=challenge.txn_id,
        expires_in=challenge.expires_in,
        message=f"OTP sent to {challenge.phone}",
    )


@router.post("/otp/verify", response_model=TokenResponse)
async def verify_otp(
    body: OTPVerifyRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Exchange phone + code for a token pair."""
    verification = await OTPService(db, clock=clock).verify_otp(body.phone, body.otp)
    pair = await TokenService(db, clock).issue_token_pair(verification.user)
    await db.commit()
    return _token_response(pair)


# ─── Email / password ────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Create a password account. Log in separately to get tokens."""
    return await AccountService(db, clock).register(
        email=body.email, password=body.password, phone=body.phone
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    user = await AccountService(db, clock).login(body.email, body.password)
    pair = await TokenService(db, clock).issue_token_pair(user)
    await db.commit()
    return _token_response(pair)


# ─── Session ─────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Rotate: the presented refresh token is revoked, a new pair issued."""
    pair = await TokenService(db, clock).refresh_token_pair(body.refresh_token or "")
    return _token_response(pair)


@router.post("/logout")
async def logout(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Revoke all refresh tokens. Access tokens stay valid until they expire."""
    count = await TokenService(db, clock).revoke(identity.user_id)
    return {"revoked": count}


@router.get("/me", response_model=UserRead)
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    user = await AccountService(db, clock).get_user(identity.user_id)
    if not user:
        raise UserNotFound()
    return user
