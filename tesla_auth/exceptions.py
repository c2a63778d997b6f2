"""Exceptions for the Tesla SSO authentication client."""

from __future__ import annotations


class TeslaAuthError(Exception):
    """Base exception for the Tesla authentication client."""


class ConfigError(TeslaAuthError):
    """Invalid client configuration."""


class AuthInitError(TeslaAuthError):
    """Could not start a login session with the identity provider."""


class RegionMismatchError(TeslaAuthError):
    """The identity provider redirected the login to another region."""

    def __init__(self, message: str, redirect_url: str | None = None) -> None:
        super().__init__(message)
        self.redirect_url = redirect_url


class UnsupportedRegionError(TeslaAuthError):
    """Region value without a known identity provider."""


class InvalidCredentialsError(TeslaAuthError):
    """Wrong username or password."""


class UnexpectedStatusError(TeslaAuthError):
    """The identity provider answered with an unexpected HTTP status."""

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.status = status


class UnexpectedRedirectError(UnexpectedStatusError):
    """Expected a redirect carrying the authorization code."""


class AccountLockedError(TeslaAuthError):
    """Redirect without a Location header, the account may be locked."""


class MfaRequiredError(TeslaAuthError):
    """A multi-factor passcode is required but none was supplied."""


class NoMfaFactorError(TeslaAuthError):
    """The account has no registered MFA factor."""


class MfaInvalidError(TeslaAuthError):
    """The MFA passcode was rejected."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MfaExchangeFailedError(TeslaAuthError):
    """No authorization code after a verified MFA passcode."""


class TokenExchangeError(TeslaAuthError):
    """A token endpoint rejected the request."""

    def __init__(self, message: str, status: int, body: str) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class AuthTimeoutError(TeslaAuthError):
    """A request to Tesla timed out."""


class AuthConnectionError(TeslaAuthError):
    """Error communicating with Tesla."""
