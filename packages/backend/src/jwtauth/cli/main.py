"""jwt-auth CLI — run the server and drive the token lifecycle over HTTP.

Usage:
    jwtauth serve                              # Run the API with uvicorn
    jwtauth signup alice@example.com           # Create an identity
    jwtauth tokens 7d9c...                     # Issue an access/refresh pair
    jwtauth refresh eyJhbGciOi...              # Redeem a refresh token
    jwtauth whoami eyJhbGciOi...               # Resolve an access token
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("JWTAUTH_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the jwt-auth API."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


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


def _check(r: httpx.Response) -> dict:
    """Return the JSON body of a 2xx response, or print the error and exit 1."""
    if r.is_success:
        return r.json()
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    click.secho(f"Error {r.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="jwtauth")
def main():
    """jwt-auth — issue, refresh and resolve access/refresh tokens."""


# ---------------------------------------------------------------------------
# jwtauth serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address [default: JWTAUTH_HOST]")
@click.option("--port", default=None, type=int, help="Bind port [default: JWTAUTH_PORT]")
@click.option("--reload", is_flag=True, help="Reload on code changes (development)")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the API server."""
    import uvicorn

    # Server settings need the full config, so only this command loads it
    from jwtauth.config import settings

    host = host or settings.host
    port = port or settings.port
    uvicorn.run("jwtauth.main:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# jwtauth signup
# ---------------------------------------------------------------------------


@main.command()
@click.argument("email")
def signup(email: str):
    """Create an identity for EMAIL and print its id."""
    _run(_signup_impl(email))


async def _signup_impl(email: str):
    async with _client() as c:
        r = await c.post("/api/v1/auth/create", json={"email": email})
        body = _check(r)
    click.secho(f"Created user {body['id']}", fg="green")


# ---------------------------------------------------------------------------
# jwtauth tokens
# ---------------------------------------------------------------------------


@main.command()
@click.argument("user_id")
def tokens(user_id: str):
    """Issue an access/refresh token pair for USER_ID."""
    _run(_tokens_impl(user_id))


async def _tokens_impl(user_id: str):
    async with _client() as c:
        r = await c.get(f"/api/v1/auth/tokens/{user_id}")
        body = _check(r)
    click.echo(_pretty_json(body))


# ---------------------------------------------------------------------------
# jwtauth refresh
# ---------------------------------------------------------------------------


@main.command()
@click.argument("refresh_token")
def refresh(refresh_token: str):
    """Redeem REFRESH_TOKEN for a new pair. The old token stops working."""
    _run(_refresh_impl(refresh_token))


async def _refresh_impl(refresh_token: str):
    async with _client() as c:
        r = await c.get("/api/v1/auth/refresh-tokens", headers=_bearer(refresh_token))
        body = _check(r)
    click.echo(_pretty_json(body))


# ---------------------------------------------------------------------------
# jwtauth whoami
# ---------------------------------------------------------------------------


@main.command()
@click.argument("access_token")
def whoami(access_token: str):
    """Show the identity behind ACCESS_TOKEN."""
    _run(_whoami_impl(access_token))


async def _whoami_impl(access_token: str):
    async with _client() as c:
        r = await c.get("/api/v1/auth/current-user", headers=_bearer(access_token))
        body = _check(r)
    click.echo(f"{body['email']}  ({body['id']})")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
