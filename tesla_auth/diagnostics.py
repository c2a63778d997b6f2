"""Diagnostics support for Tesla authentication failures."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from .exceptions import TokenExchangeError, UnexpectedStatusError

REDACTED = "**REDACTED**"

TO_REDACT = {
    "access_token",
    "refresh_token",
    "id_token",
    "code",
    "code_verifier",
    "client_secret",
    "password",
    "credential",
    "passcode",
}


def redact_data(data: Any, to_redact: Iterable[str] = TO_REDACT) -> Any:
    """Return a copy of data with sensitive values replaced."""
    keys = set(to_redact)
    if isinstance(data, Mapping):
        return {
            key: REDACTED if key in keys and value else redact_data(value, keys)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact_data(item, keys) for item in data]
    return data


def error_diagnostics(err: BaseException) -> dict[str, Any]:
    """Return a redacted description of an error for support requests."""
    diagnostics: dict[str, Any] = {
        "error": type(err).__name__,
        "message": str(err),
    }

    if isinstance(err, (TokenExchangeError, UnexpectedStatusError)):
        diagnostics["status"] = err.status

    if isinstance(err, TokenExchangeError):
        try:
            body: Any = json.loads(err.body)
        except ValueError:
            body = err.body[:500]
        diagnostics["body"] = redact_data(body)

    return diagnostics
