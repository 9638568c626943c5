"""Token service tests — issuance, verification, rotation, revocation.

Learn: The access token checks are pure (no DB): signature, pinned
algorithm, token type, expiry against the injected clock. Refresh
tokens are DB rows, so rotation and revocation are checked by
looking at what the database says afterwards.
"""

import base64
import json
import uuid

import jwt
import pytest
from sqlalchemy import func, select, update

from streamshort.auth.jwt import create_access_token
from streamshort.config import settings
from streamshort.db.models import RefreshToken, User
from streamshort.errors import InvalidRefreshToken, InvalidToken, UserNotFound
from streamshort.services.token_service import TokenService, generate_refresh_token


@pytest.fixture
def tokens(db_session, clock):
    return TokenService(db_session, clock)


@pytest.fixture
async def user(db_session):
    u = User(phone="+15550001111", role="user", is_active=True)
    db_session.add(u)
    await db_session.commit()
    return u


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


# ═══════════════════════════════════════════════════════════
# Issue + verify
# ═══════════════════════════════════════════════════════════


def test_refresh_token_has_256_bits():
    token = generate_refresh_token()
    assert len(token) == 64
    int(token, 16)  # hex


@pytest.mark.asyncio
async def test_issue_pair(tokens, user, db_session):
    pair = await tokens.issue_token_pair(user)
    await db_session.commit()

    assert pair.expires_in == 3600
    claims = tokens.verify_access_token(pair.access_token)
    assert claims.user_id == user.id
    assert claims.phone == "+15550001111"
    assert claims.role == "user"

    stored = (
        await db_session.execute(
            select(RefreshToken).where(RefreshToken.token == pair.refresh_token)
        )
    ).scalars().one()
    assert stored.user_id == user.id
    assert stored.revoked is False


@pytest.mark.asyncio
async def test_access_token_expires_after_an_hour(tokens, user, clock):
    pair = await tokens.issue_token_pair(user)

    clock.advance(minutes=59, seconds=59)
    tokens.verify_access_token(pair.access_token)

    clock.advance(seconds=1)  # now == exp
    with pytest.raises(InvalidToken, match="expired"):
        tokens.verify_access_token(pair.access_token)


def test_token_not_yet_valid(tokens, clock):
    """A token issued in the future is refused until its nbf."""
    future = clock.now().replace(year=clock.now().year + 1)
    token = create_access_token(str(uuid.uuid4()), now=future)
    with pytest.raises(InvalidToken, match="not yet valid"):
        tokens.verify_access_token(token)


# ═══════════════════════════════════════════════════════════
# Algorithm pinning and tampering
# ═══════════════════════════════════════════════════════════


def test_alg_none_rejected(tokens, clock):
    """An unsigned token with alg=none never validates."""
    now = int(clock.now().timestamp())
    header = _b64({"alg": "none", "typ": "JWT"})
    payload = _b64({
        "sub": str(uuid.uuid4()),
        "type": "access",
        "iat": now,
        "nbf": now,
        "exp": now + 3600,
    })
    with pytest.raises(InvalidToken):
        tokens.verify_access_token(f"{header}.{payload}.")


def test_other_algorithm_rejected(tokens, clock):
    """Same secret, different HMAC algorithm: still rejected."""
    now = int(clock.now().timestamp())
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "type": "access", "iat": now, "nbf": now, "exp": now + 3600},
        settings.jwt_secret,
        algorithm="HS512",
    )
    with pytest.raises(InvalidToken):
        tokens.verify_access_token(token)


def test_tampered_payload_rejected(tokens, clock):
    """Swapping the payload invalidates the signature."""
    token = create_access_token(str(uuid.uuid4()), now=clock.now())
    header, _, signature = token.split(".")
    now = int(clock.now().timestamp())
    forged = _b64({
        "sub": str(uuid.uuid4()),
        "role": "admin",
        "type": "access",
        "iat": now,
        "nbf": now,
        "exp": now + 3600,
    })
    with pytest.raises(InvalidToken):
        tokens.verify_access_token(f"{header}.{forged}.{signature}")


def test_wrong_secret_rejected(tokens, clock):
    now = int(clock.now().timestamp())
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "type": "access", "iat": now, "nbf": now, "exp": now + 3600},
        "some-other-secret-that-is-long-enough-0000",
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken):
        tokens.verify_access_token(token)


def test_non_access_token_rejected(tokens, clock):
    now = int(clock.now().timestamp())
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "type": "refresh", "iat": now, "nbf": now, "exp": now + 3600},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(InvalidToken):
        tokens.verify_access_token(token)


def test_missing_claims_rejected(tokens, clock):
    now = int(clock.now().timestamp())
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "type": "access", "exp": now + 3600},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(InvalidToken):
        tokens.verify_access_token(token)


def test_garbage_rejected(tokens):
    with pytest.raises(InvalidToken):
        tokens.verify_access_token("not-a-jwt")


# ═══════════════════════════════════════════════════════════
# Refresh (rotation)
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_refresh_rotates(tokens, user, db_session):
    """Refresh returns a new pair and revokes the presented token."""
    old = await tokens.issue_token_pair(user)
    await db_session.commit()

    new = await tokens.refresh_token_pair(old.refresh_token)
    assert new.refresh_token != old.refresh_token
    assert tokens.verify_access_token(new.access_token).user_id == user.id

    rows = await db_session.execute(
        select(RefreshToken.token, RefreshToken.revoked).where(
            RefreshToken.user_id == user.id
        )
    )
    state = dict(rows.all())
    assert state[old.refresh_token] is True
    assert state[new.refresh_token] is False


@pytest.mark.asyncio
async def test_refresh_token_single_use(tokens, user, db_session):
    """Refreshing twice with the same token: the second call fails."""
    pair = await tokens.issue_token_pair(user)
    await db_session.commit()

    await tokens.refresh_token_pair(pair.refresh_token)
    with pytest.raises(InvalidRefreshToken):
        await tokens.refresh_token_pair(pair.refresh_token)


@pytest.mark.asyncio
async def test_refresh_after_expiry_fails(tokens, user, db_session, clock):
    pair = await tokens.issue_token_pair(user)
    await db_session.commit()

    clock.advance(days=7)
    with pytest.raises(InvalidRefreshToken):
        await tokens.refresh_token_pair(pair.refresh_token)


@pytest.mark.asyncio
async def test_refresh_unknown_token_fails(tokens):
    with pytest.raises(InvalidRefreshToken):
        await tokens.refresh_token_pair(generate_refresh_token())
    with pytest.raises(InvalidRefreshToken):
        await tokens.refresh_token_pair("")


@pytest.mark.asyncio
async def test_refresh_for_deactivated_user_fails(tokens, user, db_session):
    pair = await tokens.issue_token_pair(user)
    user.is_active = False
    await db_session.commit()

    with pytest.raises(UserNotFound):
        await tokens.refresh_token_pair(pair.refresh_token)


@pytest.mark.asyncio
async def test_refresh_race_lost(tokens, user, db_session, after_select):
    """The token is revoked between lookup and revoke: no new pair is minted."""
    pair = await tokens.issue_token_pair(user)
    await db_session.commit()
    after_select(
        update(RefreshToken)
        .where(RefreshToken.token == pair.refresh_token)
        .values(revoked=True)
    )

    with pytest.raises(InvalidRefreshToken):
        await tokens.refresh_token_pair(pair.refresh_token)

    count = await db_session.execute(select(func.count(RefreshToken.id)))
    assert count.scalar_one() == 1


# ═══════════════════════════════════════════════════════════
# Revoke (logout)
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_revoke_all(tokens, user, db_session):
    """Logout revokes every active refresh token and is idempotent."""
    first = await tokens.issue_token_pair(user)
    second = await tokens.issue_token_pair(user)
    await db_session.commit()

    assert await tokens.revoke(user.id) == 2
    assert await tokens.revoke(user.id) == 0

    for pair in (first, second):
        with pytest.raises(InvalidRefreshToken):
            await tokens.refresh_token_pair(pair.refresh_token)
