"""Constants for the Tesla SSO authentication client."""

from __future__ import annotations

from typing import Final

# Identity provider (Tesla SSO) per-region base addresses, no trailing slash
AUTH_BASE_URL_USA: Final = "https://auth.tesla.com"
AUTH_BASE_URL_CHINA: Final = "https://auth.tesla.cn"

AUTHORIZE_PATH: Final = "/oauth2/v3/authorize"
TOKEN_PATH: Final = "/oauth2/v3/token"
MFA_FACTORS_PATH: Final = "/oauth2/v3/authorize/mfa/factors"
MFA_VERIFY_PATH: Final = "/oauth2/v3/authorize/mfa/verify"

# OAuth2 parameters for the identity provider
SSO_CLIENT_ID: Final = "ownerapi"
SSO_REDIRECT_URI: Final = "https://auth.tesla.com/void/callback"
SSO_SCOPES: Final = "openid email offline_access"
CODE_CHALLENGE_METHOD: Final = "S256"

# Owner API token upgrade (jwt-bearer grant)
OWNER_API_TOKEN_URL: Final = "https://owner-api.teslamotors.com/oauth/token"
OWNER_API_CLIENT_ID: Final = (
    "81527cff06843c8634fdc09e8ac0abefb46ac849f38fe1e431c2ef2106796384"
)
OWNER_API_CLIENT_SECRET: Final = (
    "c7257eb71a564034f9419ee651c7d0e5f7aa6bfbd18bafb5c5c033b093bb2fa3"
)
JWT_BEARER_GRANT: Final = "urn:ietf:params:oauth:grant-type:jwt-bearer"

# PKCE / state generation
RANDOM_ALPHABET: Final = "abcdefghijklmnopqrstuvwxyz0123456789"
CODE_VERIFIER_LENGTH: Final = 86
STATE_LENGTH: Final = 20

# Marker in the credential response page when a passcode is required
MFA_PASSCODE_MARKER: Final = "passcode"

# Timeouts in seconds
DEFAULT_REQUEST_TIMEOUT: Final = 30.0
DEFAULT_TOKEN_TIMEOUT: Final = 5.0

DEFAULT_USER_AGENT: Final = "tesla-auth"

# Seconds before expiry at which a token pair is treated as expired
TOKEN_EXPIRY_MARGIN: Final = 60

# Config keys
CONF_CLIENT_ID: Final = "client_id"
CONF_CLIENT_SECRET: Final = "client_secret"
CONF_OWNER_API_TOKEN_URL: Final = "owner_api_token_url"
CONF_AUTH_BASE_URL: Final = "auth_base_url"
CONF_REQUEST_TIMEOUT: Final = "request_timeout"
CONF_TOKEN_TIMEOUT: Final = "token_timeout"
CONF_USER_AGENT: Final = "user_agent"

# Token dict keys (TokenPair.as_dict / from_dict)
CONF_ACCESS_TOKEN: Final = "access_token"
CONF_REFRESH_TOKEN: Final = "refresh_token"
CONF_CREATED_AT: Final = "created_at"
CONF_EXPIRES_IN: Final = "expires_in"
