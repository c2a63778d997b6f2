"""Shared fixtures: an in-process fake of Tesla SSO and the owner API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from tesla_auth import AuthConfig, TeslaAuth
from tesla_auth.const import SSO_REDIRECT_URI

LOGIN_PAGE = """<!DOCTYPE html>
<html><body>
<form method="post" id="form">
  <input type="hidden" name="_csrf" value="csrf-token" />
  <input type="hidden" name="_phase" value="authenticate" />
  <input type="hidden" name="_process" value="1" />
  <input type="hidden" name="transaction_id" value="txn-42" />
  <input type="hidden" name="cancel" value="" />
  <input type="text" name="identity" value="" />
</form>
</body></html>
"""

MFA_PAGE = """<!DOCTYPE html>
<html><body>
<form method="post"><input type="text" name="passcode" /></form>
</body></html>
"""

SESSION_COOKIE = "tesla-auth.sid=abc123"
USERNAME = "elon@example.com"
PASSWORD = "hunter2"
MFA_CODE = "123456"


@dataclass
class FakeTesla:
    """Behaviour knobs and request log of the fake Tesla servers."""

    password: str = PASSWORD
    mfa_enabled: bool = False
    mfa_code: str = MFA_CODE
    factors: list[dict[str, Any]] = field(
        default_factory=lambda: [{"id": "factor-1", "name": "Phone"}]
    )
    authorize_status: int = 200
    authorize_location: str | None = None
    set_cookie: str | None = f"{SESSION_COOKIE}; Path=/; HttpOnly"
    # (status, body, location) overriding the credential POST outcome
    credentials_response: tuple[int, str, str | None] | None = None
    verify_error: str | None = None
    mfa_authorize_status: int = 302
    upgrade_status: int = 200
    upgrade_body: bytes | None = None
    # seconds to stall before answering, keyed by request path
    delays: dict[str, float] = field(default_factory=dict)
    created_at: int = 1_700_000_000
    expires_in: int = 3_888_000
    requests: list[tuple[str, str]] = field(default_factory=list)
    authorize_query: dict[str, str] = field(default_factory=dict)
    credential_form: dict[str, str] = field(default_factory=dict)
    token_requests: list[dict[str, Any]] = field(default_factory=list)
    upgrade_requests: list[dict[str, Any]] = field(default_factory=list)
    mfa_attempts: int = 0
    mfa_verified: bool = False
    refresh_count: int = 0
    upgrade_count: int = 0

    def paths(self) -> list[str]:
        return [path for _, path in self.requests]


def _has_session_cookie(request: web.Request) -> bool:
    return SESSION_COOKIE in request.headers.get("Cookie", "")


def _code_redirect(query: dict[str, str], code: str) -> web.Response:
    location = f"{SSO_REDIRECT_URI}?code={code}&state={query.get('state', '')}"
    return web.Response(status=302, headers={"Location": location})


def build_app(fake: FakeTesla) -> web.Application:
    """Return an aiohttp app mimicking the endpoints the flow consumes."""

    @web.middleware
    async def record(request: web.Request, handler):
        fake.requests.append((request.method, request.path))
        if fake.delays.get(request.path):
            await asyncio.sleep(fake.delays[request.path])
        return await handler(request)

    async def authorize_get(request: web.Request) -> web.Response:
        fake.authorize_query = dict(request.query)
        if fake.authorize_status != 200:
            headers = {}
            if fake.authorize_location:
                headers["Location"] = fake.authorize_location
            return web.Response(status=fake.authorize_status, headers=headers)
        headers = {}
        if fake.set_cookie is not None:
            headers["Set-Cookie"] = fake.set_cookie
        return web.Response(
            text=LOGIN_PAGE, content_type="text/html", headers=headers
        )

    async def authorize_post(request: web.Request) -> web.Response:
        form = dict(await request.post())
        if not _has_session_cookie(request):
            return web.Response(status=400, text="missing session")

        if "identity" not in form:
            # Second authorize POST after a verified passcode
            if form.get("transaction_id") != "txn-42" or not fake.mfa_verified:
                return web.Response(status=200, text=MFA_PAGE)
            if fake.mfa_authorize_status != 302:
                return web.Response(status=fake.mfa_authorize_status)
            return _code_redirect(dict(request.query), "auth-code-1")

        fake.credential_form = form
        if fake.credentials_response is not None:
            status, body, location = fake.credentials_response
            headers = {"Location": location} if location else {}
            return web.Response(status=status, text=body, headers=headers)
        if form.get("credential") != fake.password:
            return web.Response(status=401, text="Unauthorized")
        if fake.mfa_enabled:
            return web.Response(text=MFA_PAGE, content_type="text/html")
        return _code_redirect(dict(request.query), "auth-code-1")

    async def mfa_factors(request: web.Request) -> web.Response:
        if not _has_session_cookie(request):
            return web.Response(status=400, text="missing session")
        assert request.query.get("transaction_id") == "txn-42"
        return web.json_response({"data": fake.factors})

    async def mfa_verify(request: web.Request) -> web.Response:
        if not _has_session_cookie(request):
            return web.Response(status=400, text="missing session")
        body = await request.json()
        fake.mfa_attempts += 1
        if fake.verify_error is not None:
            return web.json_response({"error": {"message": fake.verify_error}})
        valid = (
            body.get("factor_id") == fake.factors[0]["id"]
            and body.get("passcode") == fake.mfa_code
            and body.get("transaction_id") == "txn-42"
        )
        fake.mfa_verified = valid
        return web.json_response(
            {"data": {"id": "verify-1", "valid": valid, "approved": valid}}
        )

    async def sso_token(request: web.Request) -> web.Response:
        body = await request.json()
        fake.token_requests.append(body)
        if body.get("grant_type") == "authorization_code":
            if body.get("code") != "auth-code-1" or not body.get("code_verifier"):
                return web.json_response(
                    {"error": "invalid_grant"}, status=400
                )
            return web.json_response(
                {
                    "access_token": "sso-access-1",
                    "refresh_token": "sso-refresh-1",
                    "id_token": "id-token",
                    "expires_in": 300,
                    "token_type": "Bearer",
                }
            )
        if body.get("grant_type") == "refresh_token":
            expected = f"sso-refresh-{fake.refresh_count + 1}"
            if body.get("refresh_token") != expected:
                return web.json_response(
                    {"error": "invalid_grant", "refresh_token": "leaked"},
                    status=401,
                )
            fake.refresh_count += 1
            return web.json_response(
                {
                    "access_token": f"sso-access-{fake.refresh_count + 1}",
                    "refresh_token": f"sso-refresh-{fake.refresh_count + 1}",
                    "expires_in": 300,
                }
            )
        return web.json_response({"error": "unsupported_grant_type"}, status=400)

    async def owner_token(request: web.Request) -> web.Response:
        body = await request.json()
        fake.upgrade_requests.append(
            {**body, "authorization": request.headers.get("Authorization")}
        )
        if fake.upgrade_status != 200:
            if fake.upgrade_body is not None:
                return web.Response(
                    status=fake.upgrade_status,
                    body=fake.upgrade_body,
                    content_type="text/html",
                )
            return web.Response(status=fake.upgrade_status, text="upgrade refused")
        fake.upgrade_count += 1
        return web.json_response(
            {
                "access_token": f"qts-{fake.upgrade_count}",
                "token_type": "bearer",
                "expires_in": fake.expires_in,
                "refresh_token": "owner-refresh",
                "created_at": fake.created_at + fake.upgrade_count * 60,
            }
        )

    app = web.Application(middlewares=[record])
    app.router.add_get("/oauth2/v3/authorize", authorize_get)
    app.router.add_post("/oauth2/v3/authorize", authorize_post)
    app.router.add_get("/oauth2/v3/authorize/mfa/factors", mfa_factors)
    app.router.add_post("/oauth2/v3/authorize/mfa/verify", mfa_verify)
    app.router.add_post("/oauth2/v3/token", sso_token)
    app.router.add_post("/oauth/token", owner_token)
    return app


@pytest.fixture
def fake_tesla() -> FakeTesla:
    return FakeTesla()


@pytest.fixture
async def tesla_server(fake_tesla):
    server = TestServer(build_app(fake_tesla))
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def auth_config(tesla_server) -> AuthConfig:
    base_url = f"http://{tesla_server.host}:{tesla_server.port}"
    return AuthConfig(
        auth_base_url=base_url,
        owner_api_token_url=f"{base_url}/oauth/token",
        request_timeout=5.0,
        token_timeout=1.0,
    )


@pytest.fixture
async def tesla_auth(auth_config):
    async with aiohttp.ClientSession() as session:
        yield TeslaAuth(session, auth_config)
