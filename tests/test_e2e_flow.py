"""Full-flow E2E integration test — a phone user's whole session lifecycle.

Learn: This test walks through the login lifecycle using the API
alone, and moves the fake clock instead of sleeping. It proves the
pieces connect: OTP send → verify → protected call → access token
expires → refresh → new pair works → old refresh token is dead.
Then the same user onboards as a creator and publishes an episode,
so the ownership chain is exercised with a real token.

Run with: pytest tests/test_e2e_flow.py -v
"""

import pytest

from conftest import bearer

PHONE = "+15550001111"


# ═══════════════════════════════════════════════════════════
# Integration test: session lifecycle via API
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_full_session_lifecycle(client, sms, clock):
    # 1. Request an OTP
    r = await client.post("/api/v1/auth/otp/send", json={"phone": PHONE})
    assert r.status_code == 200
    assert r.json()["txn_id"].startswith("otp_txn_")
    code = sms.last_code(PHONE)

    # 2. Verify it → first token pair
    r = await client.post("/api/v1/auth/otp/verify", json={"phone": PHONE, "otp": code})
    assert r.status_code == 200
    first = r.json()

    # 3. Protected call works
    r = await client.get("/api/v1/auth/me", headers=bearer(first))
    assert r.status_code == 200
    user_id = r.json()["id"]
    assert r.json()["phone"] == PHONE

    # 4. An hour later the access token is dead
    clock.advance(hours=1)
    r = await client.get("/api/v1/auth/me", headers=bearer(first))
    assert r.status_code == 401
    assert r.json()["code"] == "invalid_token"

    # 5. Refresh → a new pair for the same user
    r = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": first["refresh_token"]}
    )
    assert r.status_code == 200
    second = r.json()
    assert second["access_token"] != first["access_token"]
    assert second["refresh_token"] != first["refresh_token"]

    r = await client.get("/api/v1/auth/me", headers=bearer(second))
    assert r.status_code == 200
    assert r.json()["id"] == user_id

    # 6. The old refresh token can't be replayed
    r = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": first["refresh_token"]}
    )
    assert r.status_code == 401

    # 7. The same code can't be used for a second login
    r = await client.post("/api/v1/auth/otp/verify", json={"phone": PHONE, "otp": code})
    assert r.status_code == 401

    # 8. Logout kills the current refresh token too
    r = await client.post("/api/v1/auth/logout", headers=bearer(second))
    assert r.json() == {"revoked": 1}
    r = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": second["refresh_token"]}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_creator_publishes_episode(client, login):
    headers = bearer(await login())

    r = await client.post(
        "/api/v1/creators/onboard",
        json={"display_name": "Maya", "kyc_document_s3_path": "s3://kyc/maya.pdf"},
        headers=headers,
    )
    assert r.status_code == 201

    r = await client.post(
        "/api/v1/content/series",
        json={"title": "Ten Seconds", "synopsis": "Tiny stories", "language": "en"},
        headers=headers,
    )
    series_id = r.json()["id"]

    r = await client.post(
        f"/api/v1/content/series/{series_id}/episodes",
        json={"title": "One", "episode_number": 1, "duration_seconds": 10},
        headers=headers,
    )
    episode_id = r.json()["id"]

    for status in ("queued_transcode", "ready", "published"):
        r = await client.post(
            f"/api/v1/content/episodes/{episode_id}/status",
            json={"status": status},
            headers=headers,
        )
        assert r.status_code == 200
        assert r.json()["status"] == status
    assert r.json()["published_at"] is not None

    r = await client.post(
        f"/api/v1/content/series/{series_id}/status",
        json={"status": "published"},
        headers=headers,
    )
    assert r.status_code == 200

    r = await client.get(f"/api/v1/content/series/{series_id}")
    assert r.status_code == 200
    assert r.json()["episodes"][0]["id"] == episode_id
