"""PKCE verifier, challenge and state generation for Tesla SSO."""

from __future__ import annotations

import base64
import hashlib
import secrets

from .const import CODE_VERIFIER_LENGTH, RANDOM_ALPHABET, STATE_LENGTH


def random_string(length: int) -> str:
    """Return a random lowercase alphanumeric string.

    ``secrets`` is safe to call from concurrent flows.
    """
    return "".join(secrets.choice(RANDOM_ALPHABET) for _ in range(length))


def compute_code_challenge(code_verifier: str) -> str:
    """Derive the code challenge Tesla SSO expects.

    This is base64 of the *hex digest text* of SHA-256(verifier), with
    padding, not the RFC 7636 base64url of the raw digest. Tesla accepts
    this form and it must stay bit-for-bit identical.
    """
    hex_digest = hashlib.sha256(code_verifier.encode("utf-8")).hexdigest()
    return base64.b64encode(hex_digest.encode("utf-8")).decode("ascii")


def generate_pkce() -> tuple[str, str]:
    """Generate a (code_verifier, code_challenge) pair."""
    code_verifier = random_string(CODE_VERIFIER_LENGTH)
    return code_verifier, compute_code_challenge(code_verifier)


def generate_state() -> str:
    """Generate the OAuth2 state parameter."""
    return random_string(STATE_LENGTH)
