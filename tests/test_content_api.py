"""Content API tests — series, episodes, ownership over HTTP.

Learn: The interesting cases are the cross-creator ones. Bob trying
to touch Alice's series must get exactly the response he'd get for
an id that doesn't exist — same status, same body.
"""

import uuid

import pytest

from conftest import bearer

SERIES_BODY = {
    "title": "Midnight Shift",
    "synopsis": "A night nurse sees too much.",
    "language": "en",
    "category_tags": ["drama", "thriller"],
}


@pytest.fixture
def series_for(client):
    """Factory: create a series as the given creator, return its JSON."""

    async def _series(headers: dict, **overrides) -> dict:
        r = await client.post(
            "/api/v1/content/series", json={**SERIES_BODY, **overrides}, headers=headers
        )
        assert r.status_code == 201, r.text
        return r.json()

    return _series


async def _episode(client, headers, series_id, number=1, **extra) -> dict:
    r = await client.post(
        f"/api/v1/content/series/{series_id}/episodes",
        json={"title": f"Ep {number}", "episode_number": number, "duration_seconds": 90, **extra},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


# ═══════════════════════════════════════════════════════════
# Series
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_series(client, creator, series_for):
    headers, profile = await creator()
    series = await series_for(headers)
    assert series["creator_id"] == profile["id"]
    assert series["status"] == "draft"
    assert series["category_tags"] == ["drama", "thriller"]
    assert series["price_type"] == "free"


@pytest.mark.asyncio
async def test_create_series_requires_creator(client, login):
    headers = bearer(await login())
    r = await client.post("/api/v1/content/series", json=SERIES_BODY, headers=headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "User must be onboarded as a creator first"


@pytest.mark.asyncio
async def test_create_series_validates(client, creator):
    headers, _ = await creator()
    r = await client.post(
        "/api/v1/content/series", json={**SERIES_BODY, "synopsis": ""}, headers=headers
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/v1/content/series", json={**SERIES_BODY, "price_type": "gift"}, headers=headers
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_update_series_partial(client, creator, series_for):
    headers, _ = await creator()
    series = await series_for(headers)

    r = await client.put(
        f"/api/v1/content/series/{series['id']}",
        json={"title": "Day Shift"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["title"] == "Day Shift"
    assert r.json()["synopsis"] == SERIES_BODY["synopsis"]


@pytest.mark.asyncio
async def test_update_foreign_and_missing_series_look_identical(client, creator, series_for):
    """Bob can't tell Alice's series apart from one that doesn't exist."""
    alice_headers, _ = await creator("+15550000001", "Alice")
    bob_headers, _ = await creator("+15550000002", "Bob")
    alice_series = await series_for(alice_headers)

    foreign = await client.put(
        f"/api/v1/content/series/{alice_series['id']}",
        json={"title": "Hijacked"},
        headers=bob_headers,
    )
    missing = await client.put(
        f"/api/v1/content/series/{uuid.uuid4()}",
        json={"title": "Hijacked"},
        headers=bob_headers,
    )
    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json() == {
        "detail": "Series not found or access denied",
        "code": "not_found",
    }

    # Alice's series is untouched
    mine = await client.get("/api/v1/content/mine", headers=alice_headers)
    assert mine.json()[0]["title"] == SERIES_BODY["title"]


@pytest.mark.asyncio
async def test_series_status(client, creator, series_for):
    headers, _ = await creator()
    series = await series_for(headers)

    r = await client.post(
        f"/api/v1/content/series/{series['id']}/status",
        json={"status": "PUBLISH"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json() == {"id": series["id"], "status": "published"}

    r = await client.post(
        f"/api/v1/content/series/{series['id']}/status",
        json={"status": "archived"},
        headers=headers,
    )
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Public catalog
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_catalog_lists_published_only(client, creator, series_for):
    headers, _ = await creator()
    draft = await series_for(headers, title="Draft Show")
    published = await series_for(headers, title="Live Show")
    await client.post(
        f"/api/v1/content/series/{published['id']}/status",
        json={"status": "published"},
        headers=headers,
    )

    r = await client.get("/api/v1/content/series")  # no auth needed
    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 1
    assert [s["id"] for s in data["items"]] == [published["id"]]

    hidden = await client.get(f"/api/v1/content/series/{draft['id']}")
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_catalog_filters_and_pagination(client, creator, series_for):
    headers, _ = await creator()
    specs = [
        ("en", ["drama"]),
        ("en", ["comedy"]),
        ("hi", ["drama", "romance"]),
    ]
    for language, tags in specs:
        s = await series_for(headers, language=language, category_tags=tags)
        await client.post(
            f"/api/v1/content/series/{s['id']}/status",
            json={"status": "published"},
            headers=headers,
        )

    r = await client.get("/api/v1/content/series", params={"language": "en"})
    assert r.json()["total"] == 2

    r = await client.get("/api/v1/content/series", params={"category": "drama"})
    assert r.json()["total"] == 2

    r = await client.get(
        "/api/v1/content/series", params={"language": "hi", "category": "romance"}
    )
    assert r.json()["total"] == 1

    r = await client.get("/api/v1/content/series", params={"page": 2, "per_page": 2})
    data = r.json()
    assert data["total"] == 3
    assert len(data["items"]) == 1

    r = await client.get("/api/v1/content/series", params={"per_page": 101})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_catalog_detail_shows_published_episodes(client, creator, series_for):
    headers, _ = await creator()
    series = await series_for(headers)
    ep1 = await _episode(client, headers, series["id"], 1)
    await _episode(client, headers, series["id"], 2)
    await client.post(
        f"/api/v1/content/episodes/{ep1['id']}/status",
        json={"status": "published"},
        headers=headers,
    )
    await client.post(
        f"/api/v1/content/series/{series['id']}/status",
        json={"status": "published"},
        headers=headers,
    )

    r = await client.get(f"/api/v1/content/series/{series['id']}")
    assert r.status_code == 200
    assert [e["id"] for e in r.json()["episodes"]] == [ep1["id"]]


# ═══════════════════════════════════════════════════════════
# Episodes
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_episode(client, creator, series_for):
    headers, _ = await creator()
    series = await series_for(headers)
    ep = await _episode(client, headers, series["id"], 1)
    assert ep["series_id"] == series["id"]
    assert ep["status"] == "pending_upload"
    assert ep["published_at"] is None


@pytest.mark.asyncio
async def test_duplicate_episode_number_conflicts(client, creator, series_for):
    """Same number twice in one series → 409; in another series → fine."""
    headers, _ = await creator()
    first = await series_for(headers)
    second = await series_for(headers, title="Spin-off")

    await _episode(client, headers, first["id"], 1)
    r = await client.post(
        f"/api/v1/content/series/{first['id']}/episodes",
        json={"title": "Again", "episode_number": 1, "duration_seconds": 90},
        headers=headers,
    )
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"

    await _episode(client, headers, second["id"], 1)


@pytest.mark.asyncio
async def test_create_episode_validates_numbers(client, creator, series_for):
    headers, _ = await creator()
    series = await series_for(headers)
    for body in (
        {"title": "Zero", "episode_number": 0, "duration_seconds": 90},
        {"title": "Short", "episode_number": 1, "duration_seconds": 0},
        {"title": "", "episode_number": 1, "duration_seconds": 90},
    ):
        r = await client.post(
            f"/api/v1/content/series/{series['id']}/episodes", json=body, headers=headers
        )
        assert r.status_code == 400, body


@pytest.mark.asyncio
async def test_create_episode_in_foreign_series(client, creator, series_for):
    alice_headers, _ = await creator("+15550000001", "Alice")
    bob_headers, _ = await creator("+15550000002", "Bob")
    alice_series = await series_for(alice_headers)

    r = await client.post(
        f"/api/v1/content/series/{alice_series['id']}/episodes",
        json={"title": "Sneaky", "episode_number": 9, "duration_seconds": 90},
        headers=bob_headers,
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_update_episode(client, creator, series_for):
    headers, _ = await creator()
    series = await series_for(headers)
    ep1 = await _episode(client, headers, series["id"], 1)
    await _episode(client, headers, series["id"], 2)

    # Keeping its own number is not a conflict
    r = await client.put(
        f"/api/v1/content/episodes/{ep1['id']}",
        json={"title": "Pilot", "episode_number": 1},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["title"] == "Pilot"

    # Taking a sibling's number is
    r = await client.put(
        f"/api/v1/content/episodes/{ep1['id']}",
        json={"episode_number": 2},
        headers=headers,
    )
    assert r.status_code == 409

    r = await client.put(
        f"/api/v1/content/episodes/{ep1['id']}",
        json={"duration_seconds": -5},
        headers=headers,
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_episode_status_and_published_at(client, creator, series_for, clock):
    headers, _ = await creator()
    series = await series_for(headers)
    ep = await _episode(client, headers, series["id"], 1)
    url = f"/api/v1/content/episodes/{ep['id']}/status"

    r = await client.post(url, json={"status": "Ready"}, headers=headers)
    assert r.json()["status"] == "ready"
    assert r.json()["published_at"] is None

    r = await client.post(url, json={"status": "publish"}, headers=headers)
    assert r.json()["status"] == "published"
    published_at = r.json()["published_at"]
    assert published_at is not None

    # Still inside the access token lifetime
    clock.advance(minutes=30)
    r = await client.post(url, json={"status": "ready"}, headers=headers)
    assert r.json()["status"] == "ready"
    assert r.json()["published_at"] == published_at

    r = await client.post(url, json={"status": "streaming"}, headers=headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_foreign_episode_status_and_delete(client, creator, series_for):
    alice_headers, _ = await creator("+15550000001", "Alice")
    bob_headers, _ = await creator("+15550000002", "Bob")
    series = await series_for(alice_headers)
    ep = await _episode(client, alice_headers, series["id"], 1)

    r = await client.post(
        f"/api/v1/content/episodes/{ep['id']}/status",
        json={"status": "published"},
        headers=bob_headers,
    )
    assert r.status_code == 404
    assert r.json()["detail"] == "Episode not found or access denied"

    r = await client.delete(f"/api/v1/content/episodes/{ep['id']}", headers=bob_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_delete_episode(client, creator, series_for):
    headers, _ = await creator()
    series = await series_for(headers)
    ep = await _episode(client, headers, series["id"], 1)

    r = await client.delete(f"/api/v1/content/episodes/{ep['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"deleted": True}

    r = await client.delete(f"/api/v1/content/episodes/{ep['id']}", headers=headers)
    assert r.status_code == 404

    # The number is free again
    await _episode(client, headers, series["id"], 1)


@pytest.mark.asyncio
async def test_my_content_lists_drafts_with_episodes(client, creator, series_for):
    alice_headers, _ = await creator("+15550000001", "Alice")
    bob_headers, _ = await creator("+15550000002", "Bob")
    series = await series_for(alice_headers)
    await _episode(client, alice_headers, series["id"], 2)
    await _episode(client, alice_headers, series["id"], 1)
    await series_for(bob_headers, title="Bob's Show")

    r = await client.get("/api/v1/content/mine", headers=alice_headers)
    assert r.status_code == 200
    mine = r.json()
    assert len(mine) == 1
    assert mine[0]["status"] == "draft"
    assert [e["episode_number"] for e in mine[0]["episodes"]] == [1, 2]
