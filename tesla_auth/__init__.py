"""Tesla SSO authentication client (OAuth2 + PKCE + MFA) for the owner API."""

from __future__ import annotations

from .auth import TeslaAuth
from .config import AuthConfig
from .exceptions import (
    AccountLockedError,
    AuthConnectionError,
    AuthInitError,
    AuthTimeoutError,
    ConfigError,
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
    UsageHistory,
    UsageSample,
)

__all__ = [
    "AccountLockedError",
    "AuthConfig",
    "AuthConnectionError",
    "AuthInitError",
    "AuthTimeoutError",
    "ConfigError",
    "FlowState",
    "InvalidCredentialsError",
    "LoginResult",
    "LoginSession",
    "LoginSucceeded",
    "MfaCodeInvalid",
    "MfaExchangeFailedError",
    "MfaInvalidError",
    "MfaRequired",
    "MfaRequiredError",
    "NoMfaFactorError",
    "Region",
    "RegionMismatchError",
    "TeslaAuth",
    "TeslaAuthError",
    "TokenExchangeError",
    "TokenPair",
    "UnexpectedRedirectError",
    "UnexpectedStatusError",
    "UnsupportedRegionError",
    "UsageHistory",
    "UsageSample",
]
