"""StreamShort CLI — run the API and drive the login flow from a terminal.

Usage:
    streamshort serve                              # Run the API with uvicorn
    streamshort send-otp +15550001111              # Request a code
    streamshort verify-otp +15550001111 123456     # Code → token pair
    streamshort refresh <refresh_token>            # Rotate the pair
    streamshort whoami --token <access_token>      # Who does this token belong to?
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8080"


def _api_url() -> str:
    return os.environ.get("STREAMSHORT_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the StreamShort backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else None
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0, headers=headers)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _check(resp: httpx.Response) -> dict:
    """Exit non-zero with the API's error message on a failed request."""
    if resp.status_code >= 400:
        try:
            detail = resp.json().get("detail", resp.text)
        except ValueError:
            detail = resp.text
        click.secho(f"Error ({resp.status_code}): {detail}", fg="red", err=True)
        sys.exit(1)
    return resp.json()


async def _post(path: str, payload: dict, token: Optional[str] = None) -> dict:
    async with _client(token) as c:
        try:
            resp = await c.post(path, json=payload)
        except httpx.HTTPError as e:
            click.secho(f"Error: cannot reach {_api_url()} ({e})", fg="red", err=True)
            sys.exit(1)
    return _check(resp)


async def _get(path: str, token: Optional[str] = None) -> dict:
    async with _client(token) as c:
        try:
            resp = await c.get(path)
        except httpx.HTTPError as e:
            click.secho(f"Error: cannot reach {_api_url()} ({e})", fg="red", err=True)
            sys.exit(1)
    return _check(resp)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="streamshort")
def main():
    """StreamShort — phone login and creator content API."""


@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", default=None, type=int, help="Port (default from settings)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from streamshort.config import settings

    uvicorn.run(
        "streamshort.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command("send-otp")
@click.argument("phone")
def send_otp(phone: str):
    """Request a one-time code for PHONE."""
    data = _run(_post("/api/v1/auth/otp/send", {"phone": phone}))
    click.secho(data["message"], fg="green")
    click.echo(f"txn_id:     {data['txn_id']}")
    click.echo(f"expires_in: {data['expires_in']}s")


@main.command("verify-otp")
@click.argument("phone")
@click.argument("code")
def verify_otp(phone: str, code: str):
    """Exchange PHONE + CODE for an access/refresh token pair."""
    data = _run(_post("/api/v1/auth/otp/verify", {"phone": phone, "otp": code}))
    click.echo(_pretty_json(data))


@main.command()
@click.argument("refresh_token")
def refresh(refresh_token: str):
    """Rotate REFRESH_TOKEN into a new pair. The old token stops working."""
    data = _run(_post("/api/v1/auth/refresh", {"refresh_token": refresh_token}))
    click.echo(_pretty_json(data))


@main.command()
@click.option(
    "--token",
    envvar="STREAMSHORT_ACCESS_TOKEN",
    required=True,
    help="Access token (or set STREAMSHORT_ACCESS_TOKEN)",
)
def whoami(token: str):
    """Show the user an access token belongs to."""
    data = _run(_get("/api/v1/auth/me", token=token))
    click.echo(f"id:    {data['id']}")
    click.echo(f"phone: {data.get('phone') or '—'}")
    click.echo(f"email: {data.get('email') or '—'}")
    click.echo(f"role:  {data['role']}")


if __name__ == "__main__":
    main()
