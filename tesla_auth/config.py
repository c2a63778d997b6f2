"""Client configuration for the Tesla SSO authentication client."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import voluptuous as vol

from .const import (
    CONF_AUTH_BASE_URL,
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_OWNER_API_TOKEN_URL,
    CONF_REQUEST_TIMEOUT,
    CONF_TOKEN_TIMEOUT,
    CONF_USER_AGENT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TOKEN_TIMEOUT,
    DEFAULT_USER_AGENT,
    OWNER_API_CLIENT_ID,
    OWNER_API_CLIENT_SECRET,
    OWNER_API_TOKEN_URL,
)
from .exceptions import ConfigError


def _http_url(value: Any) -> str:
    """Validate an absolute http(s) URL and strip the trailing slash."""
    url = vol.Coerce(str)(value).strip()
    if not url.startswith(("http://", "https://")):
        raise vol.Invalid(f"expected an http(s) URL, got {value!r}")
    return url.rstrip("/")


_TIMEOUT = vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False))

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_CLIENT_ID, default=OWNER_API_CLIENT_ID): vol.All(
            str, vol.Length(min=1)
        ),
        vol.Optional(
            CONF_CLIENT_SECRET, default=OWNER_API_CLIENT_SECRET
        ): vol.All(str, vol.Length(min=1)),
        vol.Optional(
            CONF_OWNER_API_TOKEN_URL, default=OWNER_API_TOKEN_URL
        ): _http_url,
        vol.Optional(CONF_AUTH_BASE_URL, default=None): vol.Any(None, _http_url),
        vol.Optional(
            CONF_REQUEST_TIMEOUT, default=DEFAULT_REQUEST_TIMEOUT
        ): _TIMEOUT,
        vol.Optional(CONF_TOKEN_TIMEOUT, default=DEFAULT_TOKEN_TIMEOUT): _TIMEOUT,
        vol.Optional(CONF_USER_AGENT, default=DEFAULT_USER_AGENT): str,
    }
)


@dataclass(frozen=True)
class AuthConfig:
    """Settings injected into TeslaAuth.

    The owner API client id/secret live here rather than in the flow so
    they can be rotated without touching code.
    """

    client_id: str = OWNER_API_CLIENT_ID
    client_secret: str = OWNER_API_CLIENT_SECRET
    owner_api_token_url: str = OWNER_API_TOKEN_URL
    auth_base_url: str | None = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    token_timeout: float = DEFAULT_TOKEN_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None = None) -> AuthConfig:
        """Create an AuthConfig from a mapping, applying defaults.

        Raises:
            ConfigError: If a value fails validation or a key is unknown.
        """
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ConfigError(
                f"Invalid configuration: expected a mapping, "
                f"got {type(data).__name__}"
            )
        try:
            conf = CONFIG_SCHEMA(dict(data))
        except vol.Invalid as err:
            raise ConfigError(f"Invalid configuration: {err}") from err
        return cls(
            client_id=conf[CONF_CLIENT_ID],
            client_secret=conf[CONF_CLIENT_SECRET],
            owner_api_token_url=conf[CONF_OWNER_API_TOKEN_URL],
            auth_base_url=conf[CONF_AUTH_BASE_URL],
            request_timeout=conf[CONF_REQUEST_TIMEOUT],
            token_timeout=conf[CONF_TOKEN_TIMEOUT],
            user_agent=conf[CONF_USER_AGENT],
        )
