"""Tesla SSO authentication handler (OAuth2 + PKCE + MFA)."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any

import aiohttp

from .config import AuthConfig
from .const import (
    AUTHORIZE_PATH,
    CODE_CHALLENGE_METHOD,
    JWT_BEARER_GRANT,
    MFA_FACTORS_PATH,
    MFA_PASSCODE_MARKER,
    MFA_VERIFY_PATH,
    SSO_CLIENT_ID,
    SSO_REDIRECT_URI,
    SSO_SCOPES,
    TOKEN_PATH,
)
from .exceptions import (
    AccountLockedError,
    AuthConnectionError,
    AuthInitError,
    AuthTimeoutError,
    InvalidCredentialsError,
    MfaExchangeFailedError,
    MfaInvalidError,
    MfaRequiredError,
    NoMfaFactorError,
    RegionMismatchError,
    TeslaAuthError,
    TokenExchangeError,
    UnexpectedRedirectError,
    UnexpectedStatusError,
    UnsupportedRegionError,
)
from .models import (
    FlowState,
    LoginResult,
    LoginSession,
    LoginSucceeded,
    MfaCodeInvalid,
    MfaRequired,
    Region,
    TokenPair,
)
from .parsing import (
    extract_code_from_redirect,
    extract_hidden_fields,
    extract_session_cookie,
)
from .pkce import generate_pkce, generate_state

_LOGGER = logging.getLogger(__name__)

_JSON_HEADERS: dict[str, str] = {
    "Accept": "application/json",
    "Accept-Encoding": "gzip, deflate",
}


def mask_token(token: str | None) -> str:
    """Mask a token for safe logging."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}...{token[-4:]}"


def _is_success(status: int) -> bool:
    return 200 <= status < 300


class TeslaAuth:
    """Authenticate against Tesla SSO and obtain owner API tokens.

    The login is a forward-only sequence of round-trips::

        initiate -> submit credentials -> [MFA] -> exchange code -> upgrade

    and refresh re-enters at the upgrade step. Nothing is retried; every
    failure is raised as a TeslaAuthError subclass and retry policy is
    left to the caller.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        config: AuthConfig | None = None,
    ) -> None:
        """Initialise the auth handler.

        Args:
            session: aiohttp session used for the token endpoints.
                     The cookie-sensitive login steps run on a private
                     session per request so flows never share cookies.
            config: Client settings, defaults to AuthConfig().
        """
        self._session = session
        self._config = config or AuthConfig()

    @property
    def config(self) -> AuthConfig:
        """Return the client configuration."""
        return self._config

    def get_base_url(self, region: Region | str) -> str:
        """Return the identity provider address for a region.

        Raises:
            UnsupportedRegionError: If the region is not a known Region.
        """
        try:
            region = Region(region)
        except ValueError as err:
            raise UnsupportedRegionError(
                f"No Tesla identity provider for region {region!r}"
            ) from err
        return self._config.auth_base_url or region.base_url

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def async_authenticate(
        self,
        username: str,
        password: str,
        mfa_code: str | None = None,
        region: Region | str = Region.UNKNOWN,
    ) -> TokenPair:
        """Log in and return owner API tokens, without interactive MFA.

        Raises:
            MfaRequiredError: If the account needs a passcode and none was given.
            MfaInvalidError: If the passcode was rejected.
        """
        result = await self.async_login(username, password, mfa_code, region)
        if isinstance(result, MfaRequired):
            raise MfaRequiredError(
                f"Multi-factor code required to authenticate Tesla user {username}"
            )
        if isinstance(result, MfaCodeInvalid):
            raise MfaInvalidError(
                f"Multi-factor authentication code was invalid for Tesla user "
                f"{username}: {result.message}"
            )
        return result.tokens

    async def async_login(
        self,
        username: str,
        password: str,
        mfa_code: str | None = None,
        region: Region | str = Region.UNKNOWN,
    ) -> LoginResult:
        """Log in with username and password.

        Returns:
            LoginSucceeded with the tokens, MfaRequired when the account asks
            for a passcode that was not supplied, or MfaCodeInvalid when the
            supplied passcode was rejected. The last two carry the session to
            pass to async_submit_mfa_code().
        """
        login = await self.async_initiate_login(region, username)
        code = await self.async_submit_credentials(login, username, password)
        if code is not None:
            return LoginSucceeded(await self._async_finish_login(login, code))

        if not mfa_code:
            _LOGGER.debug("Tesla login: passcode required for %s", username)
            return MfaRequired(login)
        return await self.async_submit_mfa_code(login, mfa_code)

    async def async_submit_mfa_code(
        self, login: LoginSession, mfa_code: str
    ) -> LoginResult:
        """Verify a passcode for a pending login and finish it.

        May be called again with the same session after MfaCodeInvalid,
        as long as Tesla has not expired the transaction.
        """
        if login.mfa_factor_id is None:
            login.mfa_factor_id = await self.async_get_mfa_factor_id(login)

        message = await self.async_verify_mfa_code(
            login, mfa_code, login.mfa_factor_id
        )
        if message is not None:
            _LOGGER.warning(
                "Tesla login: MFA code rejected for %s: %s",
                login.username,
                message,
            )
            login.flow_state = FlowState.MFA_PENDING
            return MfaCodeInvalid(login, message)

        login.flow_state = FlowState.MFA_VERIFIED
        code = await self.async_get_code_after_mfa(login)
        return LoginSucceeded(await self._async_finish_login(login, code))

    async def _async_finish_login(
        self, login: LoginSession, code: str
    ) -> TokenPair:
        """Exchange the authorization code and upgrade to owner API tokens."""
        sso_tokens = await self.async_exchange_code(login, code)
        async with self._track_failure(login):
            owner_tokens = await self.async_upgrade_token(sso_tokens.access_token)
        login.flow_state = FlowState.UPGRADED
        _LOGGER.debug(
            "Tesla login complete for %s, access_token=%s",
            login.username,
            mask_token(owner_tokens.access_token),
        )
        # The SSO refresh token is the one async_refresh_token() accepts
        return TokenPair(
            access_token=owner_tokens.access_token,
            refresh_token=sso_tokens.refresh_token,
            created_at=owner_tokens.created_at,
            expires_in=owner_tokens.expires_in,
        )

    async def async_refresh_token(
        self,
        refresh_token: str,
        region: Region | str = Region.UNKNOWN,
    ) -> TokenPair:
        """Use a stored SSO refresh token to obtain fresh owner API tokens.

        Raises:
            TokenExchangeError: If either token endpoint rejects the request.
        """
        url = f"{self.get_base_url(region)}{TOKEN_PATH}"
        payload = {
            "grant_type": "refresh_token",
            "client_id": SSO_CLIENT_ID,
            "refresh_token": refresh_token,
            "scope": SSO_SCOPES,
        }
        _LOGGER.debug(
            "Tesla refresh: refresh_token=%s", mask_token(refresh_token)
        )
        async with self._request_errors("token refresh"):
            async with self._session.post(
                url,
                json=payload,
                headers={**_JSON_HEADERS, "User-Agent": self._config.user_agent},
                timeout=aiohttp.ClientTimeout(total=self._config.token_timeout),
            ) as resp:
                data = await self._async_read_token_response(
                    resp, "Token refresh"
                )

        owner_tokens = await self.async_upgrade_token(data["access_token"])
        # Unlike the owner API pair, the stored refresh token stays the SSO
        # one (rotated when Tesla sends a new one) so the next refresh works.
        return TokenPair(
            access_token=owner_tokens.access_token,
            refresh_token=data.get("refresh_token") or refresh_token,
            created_at=owner_tokens.created_at,
            expires_in=owner_tokens.expires_in,
        )

    # ------------------------------------------------------------------
    # Login steps
    # ------------------------------------------------------------------

    async def async_initiate_login(
        self,
        region: Region | str = Region.UNKNOWN,
        username: str | None = None,
    ) -> LoginSession:
        """GET the authorize page and capture its session cookie and form.

        Raises:
            RegionMismatchError: If Tesla redirects to another region (303).
            AuthInitError: If the page fails or sets no session cookie.
        """
        base_url = self.get_base_url(region)
        code_verifier, code_challenge = generate_pkce()
        login = LoginSession(
            username=username,
            base_url=base_url,
            code_verifier=code_verifier,
            code_challenge=code_challenge,
            state=generate_state(),
        )

        params = self._authorize_params(login)
        if username:
            params["login_hint"] = username

        async with self._request_errors("authorize", login):
            async with self._create_login_session() as http:
                async with http.get(
                    f"{base_url}{AUTHORIZE_PATH}",
                    params=params,
                    allow_redirects=False,
                ) as resp:
                    _LOGGER.debug("Tesla authorize: HTTP %s", resp.status)
                    if resp.status == HTTPStatus.SEE_OTHER:
                        location = resp.headers.get("Location")
                        _LOGGER.warning(
                            "Tesla authorize: redirected to another region: %s",
                            location,
                        )
                        raise RegionMismatchError(
                            "Tesla account belongs to another region, "
                            "redirect following is not supported",
                            redirect_url=location,
                        )
                    if not _is_success(resp.status):
                        raise AuthInitError(
                            f"Initializing a Tesla login failed "
                            f"(HTTP {resp.status} {resp.reason})"
                        )
                    html = await resp.text(errors="replace")
                    cookie = extract_session_cookie(
                        resp.headers.getall("Set-Cookie", [])
                    )

            if not cookie:
                raise AuthInitError(
                    "Tesla login page did not set a session cookie"
                )

        login.session_cookie = cookie
        login.form_fields = extract_hidden_fields(html)
        login.flow_state = FlowState.INITIATED
        _LOGGER.debug(
            "Tesla authorize: %d hidden field(s), cookie=%s",
            len(login.form_fields),
            mask_token(cookie),
        )
        return login

    async def async_submit_credentials(
        self,
        login: LoginSession,
        username: str,
        password: str,
    ) -> str | None:
        """POST the credentials to the authorize form.

        Returns:
            The authorization code, or None when Tesla asks for a passcode.

        Raises:
            InvalidCredentialsError: On HTTP 401.
            UnexpectedStatusError: On any other failure status.
            UnexpectedRedirectError: On a success status other than 200.
            AccountLockedError: If the redirect carries no Location.
        """
        login.username = username
        form = {**login.form_fields, "identity": username, "credential": password}

        async with self._request_errors("credential submission", login):
            async with self._create_login_session() as http:
                async with http.post(
                    f"{login.base_url}{AUTHORIZE_PATH}",
                    params=self._authorize_params(login),
                    data=form,
                    headers={"Cookie": login.session_cookie},
                    allow_redirects=False,
                ) as resp:
                    status = resp.status
                    body = await resp.text(errors="replace")
                    location = resp.headers.get("Location")
            _LOGGER.debug("Tesla credentials: HTTP %s", status)
            login.flow_state = FlowState.CREDENTIALS_SUBMITTED

            if status != HTTPStatus.FOUND and not _is_success(status):
                if status == HTTPStatus.UNAUTHORIZED:
                    raise InvalidCredentialsError(
                        f"Logging in failed for Tesla account {username}. "
                        "Is your password correct? Does your Tesla account "
                        "allow mobile access?"
                    )
                raise UnexpectedStatusError(
                    f"Tesla login failed (HTTP {status})", status
                )

            if status != HTTPStatus.FOUND:
                if status == HTTPStatus.OK and MFA_PASSCODE_MARKER in body:
                    login.flow_state = FlowState.MFA_PENDING
                    return None
                if status != HTTPStatus.OK:
                    raise UnexpectedRedirectError(
                        f"Expected redirect did not occur (HTTP {status})",
                        status,
                    )

            if not location:
                raise AccountLockedError(
                    f"Logging in failed for {username}. "
                    "The account may be locked."
                )

            code = extract_code_from_redirect(location)
            if not code:
                raise UnexpectedRedirectError(
                    "Tesla login redirect carried no authorization code",
                    status,
                )

        login.authorization_code = code
        login.flow_state = FlowState.CODE_RECEIVED
        _LOGGER.debug("Tesla credentials: auth code=%s", mask_token(code))
        return code

    async def async_get_mfa_factor_id(self, login: LoginSession) -> str:
        """Return the id of the first MFA factor registered on the account.

        Raises:
            NoMfaFactorError: If the account lists no factor.
        """
        transaction_id = self._require_transaction_id(login)

        async with self._request_errors("MFA factor lookup", login):
            async with self._create_login_session() as http:
                async with http.get(
                    f"{login.base_url}{MFA_FACTORS_PATH}",
                    params={"transaction_id": transaction_id},
                    headers={
                        "Cookie": login.session_cookie,
                        "Accept": "application/json",
                    },
                    allow_redirects=False,
                ) as resp:
                    data = await self._async_read_json(resp, "MFA factor lookup")

            factors = data.get("data") if isinstance(data, dict) else None
            factor_id = None
            if isinstance(factors, list) and factors:
                first = factors[0]
                if isinstance(first, dict):
                    factor_id = first.get("id")
            if not factor_id:
                raise NoMfaFactorError(
                    f"No MFA factor registered for Tesla user {login.username}"
                )

        _LOGGER.debug("Tesla MFA: factor_id=%s", mask_token(factor_id))
        return factor_id

    async def async_verify_mfa_code(
        self, login: LoginSession, mfa_code: str, factor_id: str
    ) -> str | None:
        """Submit a passcode for verification.

        Returns:
            None if Tesla accepted the passcode, otherwise the reason it
            was rejected. A rejection is not raised so the caller can retry
            with the same session.
        """
        transaction_id = self._require_transaction_id(login)
        payload = {
            "factor_id": factor_id,
            "passcode": mfa_code,
            "transaction_id": transaction_id,
        }

        async with self._request_errors("MFA verification", login):
            async with self._create_login_session() as http:
                async with http.post(
                    f"{login.base_url}{MFA_VERIFY_PATH}",
                    json=payload,
                    headers={
                        "Cookie": login.session_cookie,
                        "Accept": "application/json",
                        "Referer": login.base_url,
                    },
                    allow_redirects=False,
                ) as resp:
                    data = await self._async_read_json(resp, "MFA verification")

        if not isinstance(data, dict):
            return "MFA code is invalid"
        result = data.get("data")
        if isinstance(result, dict):
            return None if result.get("valid") else "MFA code is invalid"
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return "MFA code is invalid"

    async def async_get_code_after_mfa(self, login: LoginSession) -> str:
        """POST the verified transaction back to authorize for the code.

        Raises:
            MfaExchangeFailedError: If no redirect with a code comes back.
        """
        transaction_id = self._require_transaction_id(login)

        async with self._request_errors("MFA code exchange", login):
            async with self._create_login_session() as http:
                async with http.post(
                    f"{login.base_url}{AUTHORIZE_PATH}",
                    params=self._authorize_params(login),
                    data={"transaction_id": transaction_id},
                    headers={"Cookie": login.session_cookie},
                    allow_redirects=False,
                ) as resp:
                    status = resp.status
                    location = resp.headers.get("Location")
            _LOGGER.debug("Tesla MFA authorize: HTTP %s", status)

            code = (
                extract_code_from_redirect(location)
                if status == HTTPStatus.FOUND
                else None
            )
            if not code:
                raise MfaExchangeFailedError(
                    f"Unable to get authorization code after MFA "
                    f"(HTTP {status})"
                )

        login.authorization_code = code
        login.flow_state = FlowState.CODE_RECEIVED
        return code

    async def async_exchange_code(
        self, login: LoginSession, code: str
    ) -> TokenPair:
        """Exchange the authorization code for SSO tokens (no expiry data).

        Raises:
            TokenExchangeError: If the token endpoint rejects the code.
        """
        payload = {
            "grant_type": "authorization_code",
            "client_id": SSO_CLIENT_ID,
            "code": code,
            "code_verifier": login.code_verifier,
            "redirect_uri": SSO_REDIRECT_URI,
        }

        async with self._request_errors("code exchange", login):
            async with self._session.post(
                f"{login.base_url}{TOKEN_PATH}",
                json=payload,
                headers={**_JSON_HEADERS, "User-Agent": self._config.user_agent},
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout),
            ) as resp:
                data = await self._async_read_token_response(
                    resp, "Token exchange", require=("refresh_token",)
                )

        login.flow_state = FlowState.EXCHANGED
        return TokenPair(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
        )

    async def async_upgrade_token(self, access_token: str) -> TokenPair:
        """Exchange an SSO access token for owner API tokens.

        Raises:
            TokenExchangeError: If the owner API rejects the token.
        """
        payload = {
            "grant_type": JWT_BEARER_GRANT,
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
        }

        async with self._request_errors("token upgrade"):
            async with self._session.post(
                self._config.owner_api_token_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "User-Agent": self._config.user_agent,
                    "Accept": "application/json",
                },
                timeout=aiohttp.ClientTimeout(total=self._config.token_timeout),
            ) as resp:
                data = await self._async_read_token_response(
                    resp,
                    "Token upgrade",
                    require=("refresh_token", "created_at", "expires_in"),
                )

        tokens = TokenPair.from_dict(data)
        _LOGGER.debug(
            "Tesla token upgrade: access_token=%s, expires_in=%s",
            mask_token(tokens.access_token),
            tokens.expires_in,
        )
        return tokens

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _create_login_session(self) -> aiohttp.ClientSession:
        """Create a cookie-less session for one identity provider call."""
        return aiohttp.ClientSession(
            cookie_jar=aiohttp.DummyCookieJar(),
            headers={"User-Agent": self._config.user_agent},
            timeout=aiohttp.ClientTimeout(total=self._config.request_timeout),
        )

    @staticmethod
    def _authorize_params(login: LoginSession) -> dict[str, str]:
        """Return the query parameters shared by every authorize call."""
        return {
            "client_id": SSO_CLIENT_ID,
            "code_challenge": login.code_challenge,
            "code_challenge_method": CODE_CHALLENGE_METHOD,
            "redirect_uri": SSO_REDIRECT_URI,
            "response_type": "code",
            "scope": SSO_SCOPES,
            "state": login.state,
        }

    @staticmethod
    def _require_transaction_id(login: LoginSession) -> str:
        transaction_id = login.transaction_id
        if not transaction_id:
            login.flow_state = FlowState.FAILED
            raise AuthInitError(
                "Tesla login page did not provide a transaction_id"
            )
        return transaction_id

    @staticmethod
    async def _async_read_json(
        resp: aiohttp.ClientResponse, step: str
    ) -> Any:
        """Return the decoded JSON body of a successful response."""
        body = await resp.text(errors="replace")
        if not _is_success(resp.status):
            raise UnexpectedStatusError(
                f"{step} failed (HTTP {resp.status}): {body[:200]}",
                resp.status,
            )
        try:
            return json.loads(body)
        except ValueError as err:
            raise UnexpectedStatusError(
                f"{step} returned invalid JSON", resp.status
            ) from err

    @staticmethod
    async def _async_read_token_response(
        resp: aiohttp.ClientResponse,
        step: str,
        require: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        """Decode a token endpoint response.

        Raises:
            TokenExchangeError: With status and raw body on any failure.
        """
        body = await resp.text(errors="replace")
        if not _is_success(resp.status):
            _LOGGER.error(
                "%s failed (HTTP %s): %s", step, resp.status, body[:200]
            )
            raise TokenExchangeError(
                f"{step} failed (HTTP {resp.status} {resp.reason})",
                status=resp.status,
                body=body,
            )
        try:
            data = json.loads(body)
        except ValueError as err:
            raise TokenExchangeError(
                f"{step} returned invalid JSON",
                status=resp.status,
                body=body,
            ) from err

        missing = [
            key
            for key in ("access_token", *require)
            if not isinstance(data, dict) or data.get(key) is None
        ]
        if missing:
            raise TokenExchangeError(
                f"{step} response is missing {', '.join(missing)}",
                status=resp.status,
                body=body,
            )
        return data

    @asynccontextmanager
    async def _track_failure(
        self, login: LoginSession | None
    ) -> AsyncIterator[None]:
        """Mark the login as failed when the wrapped step raises."""
        try:
            yield
        except Exception:
            if login is not None:
                login.flow_state = FlowState.FAILED
            raise

    @asynccontextmanager
    async def _request_errors(
        self, step: str, login: LoginSession | None = None
    ) -> AsyncIterator[None]:
        """Translate transport errors of one step into TeslaAuthError."""
        async with self._track_failure(login):
            try:
                yield
            except TeslaAuthError:
                raise
            except asyncio.TimeoutError as err:
                _LOGGER.warning("Tesla %s: request timed out", step)
                raise AuthTimeoutError(f"Tesla {step} timed out") from err
            except aiohttp.ClientError as err:
                _LOGGER.warning("Tesla %s: connection error: %s", step, err)
                raise AuthConnectionError(
                    f"Error communicating with Tesla during {step}: {err}"
                ) from err
