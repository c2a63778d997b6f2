"""Data models for the Tesla SSO authentication client."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Union

from .const import (
    AUTH_BASE_URL_CHINA,
    AUTH_BASE_URL_USA,
    CONF_ACCESS_TOKEN,
    CONF_CREATED_AT,
    CONF_EXPIRES_IN,
    CONF_REFRESH_TOKEN,
    TOKEN_EXPIRY_MARGIN,
)


class Region(str, Enum):
    """Tesla account region, selects the identity provider."""

    UNKNOWN = "unknown"
    USA = "usa"
    CHINA = "china"

    @property
    def base_url(self) -> str:
        """Return the identity provider address, no trailing slash."""
        return _REGION_BASE_URLS[self]


_REGION_BASE_URLS: dict[Region, str] = {
    Region.UNKNOWN: AUTH_BASE_URL_USA,
    Region.USA: AUTH_BASE_URL_USA,
    Region.CHINA: AUTH_BASE_URL_CHINA,
}


class FlowState(str, Enum):
    """Progress of a single login attempt."""

    START = "start"
    INITIATED = "initiated"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    MFA_PENDING = "mfa_pending"
    MFA_VERIFIED = "mfa_verified"
    CODE_RECEIVED = "code_received"
    EXCHANGED = "exchanged"
    UPGRADED = "upgraded"
    FAILED = "failed"


@dataclass
class LoginSession:
    """Ephemeral state of one login attempt.

    Owned by a single flow invocation and never persisted. The session
    cookie is replayed explicitly on every call to the identity provider.
    """

    username: str | None
    base_url: str
    code_verifier: str
    code_challenge: str
    state: str
    session_cookie: str = ""
    form_fields: dict[str, str] = field(default_factory=dict)
    flow_state: FlowState = FlowState.START
    authorization_code: str | None = None
    mfa_factor_id: str | None = None

    @property
    def transaction_id(self) -> str | None:
        """Return the MFA transaction id scraped from the login page."""
        return self.form_fields.get("transaction_id")


@dataclass
class TokenPair:
    """Access and refresh tokens returned to the caller.

    ``created_at`` and ``expires_in`` are only known once the owner API
    has issued the token; the intermediate SSO pair leaves them unset.
    """

    access_token: str
    refresh_token: str
    created_at: datetime | None = None
    expires_in: timedelta | None = None

    @property
    def expires_at(self) -> datetime | None:
        """Return the absolute expiry time, if known."""
        if self.created_at is None or self.expires_in is None:
            return None
        return self.created_at + self.expires_in

    def is_expired(
        self,
        now: datetime | None = None,
        margin: timedelta = timedelta(seconds=TOKEN_EXPIRY_MARGIN),
    ) -> bool:
        """Return True if the access token is (nearly) expired."""
        expires_at = self.expires_at
        if expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now >= expires_at - margin

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly dict for caller-side storage."""
        return {
            CONF_ACCESS_TOKEN: self.access_token,
            CONF_REFRESH_TOKEN: self.refresh_token,
            CONF_CREATED_AT: (
                int(self.created_at.timestamp()) if self.created_at else None
            ),
            CONF_EXPIRES_IN: (
                int(self.expires_in.total_seconds()) if self.expires_in else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenPair:
        """Create a TokenPair from a token endpoint response or as_dict().

        ``created_at`` is Unix seconds, ``expires_in`` is seconds.
        """
        created_at = data.get(CONF_CREATED_AT)
        expires_in = data.get(CONF_EXPIRES_IN)
        return cls(
            access_token=data[CONF_ACCESS_TOKEN],
            refresh_token=data.get(CONF_REFRESH_TOKEN) or "",
            created_at=(
                datetime.fromtimestamp(int(created_at), tz=timezone.utc)
                if created_at is not None
                else None
            ),
            expires_in=(
                timedelta(seconds=int(expires_in))
                if expires_in is not None
                else None
            ),
        )


@dataclass
class LoginSucceeded:
    """The login completed and produced owner API tokens."""

    tokens: TokenPair


@dataclass
class MfaRequired:
    """A passcode is needed; continue with async_submit_mfa_code()."""

    session: LoginSession


@dataclass
class MfaCodeInvalid:
    """The passcode was rejected; the session may be retried."""

    session: LoginSession
    message: str


LoginResult = Union[LoginSucceeded, MfaRequired, MfaCodeInvalid]


@dataclass
class UsageSample:
    """A single power reading of an energy site, in watts."""

    timestamp: datetime | None
    solar_power: float = 0.0
    battery_power: float = 0.0
    grid_power: float = 0.0
    grid_services_power: float = 0.0
    generator_power: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsageSample:
        """Create a UsageSample from API response dict."""
        raw_ts = data.get("timestamp")
        return cls(
            timestamp=datetime.fromisoformat(raw_ts) if raw_ts else None,
            solar_power=float(data.get("solar_power", 0.0)),
            battery_power=float(data.get("battery_power", 0.0)),
            grid_power=float(data.get("grid_power", 0.0)),
            grid_services_power=float(data.get("grid_services_power", 0.0)),
            generator_power=float(data.get("generator_power", 0.0)),
        )


@dataclass
class UsageHistory:
    """Power usage history of an energy site."""

    serial_number: str
    installation_time_zone: str = ""
    time_series: list[UsageSample] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsageHistory:
        """Create a UsageHistory from API response dict."""
        return cls(
            serial_number=data.get("serial_number", ""),
            installation_time_zone=data.get("installation_time_zone", ""),
            time_series=[
                UsageSample.from_dict(sample)
                for sample in data.get("time_series") or []
            ],
        )
