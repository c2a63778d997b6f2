"""Command line login/refresh for Tesla owner API tokens.

Prints the resulting token pair as JSON to stdout so it can be stored by
whatever owns the credentials.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import sys
from collections.abc import Callable

import aiohttp

from .auth import TeslaAuth
from .config import AuthConfig
from .diagnostics import error_diagnostics
from .exceptions import ConfigError, TeslaAuthError
from .models import LoginSucceeded, MfaCodeInvalid, Region, TokenPair

_LOGGER = logging.getLogger(__name__)

MAX_MFA_ATTEMPTS = 3
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="tesla-auth",
        description="Obtain or refresh Tesla owner API tokens.",
    )
    p.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=LOG_LEVELS,
        help='Logging level (e.g. "DEBUG", "INFO").',
    )
    p.add_argument(
        "--region",
        default=Region.UNKNOWN.value,
        choices=[region.value for region in Region],
        help="Tesla account region (default: unknown, uses auth.tesla.com).",
    )
    p.add_argument(
        "--config",
        default=None,
        help="JSON file with client settings (client_id, client_secret, ...).",
    )
    sub = p.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in with username and password.")
    login.add_argument("--username", required=True)
    login.add_argument(
        "--password",
        default=None,
        help="Account password (prompted for when omitted).",
    )
    login.add_argument(
        "--mfa-code",
        default=None,
        help="Passcode from the authenticator app (prompted for when needed).",
    )

    refresh = sub.add_parser("refresh", help="Refresh a stored token.")
    refresh.add_argument("--refresh-token", required=True)

    return p.parse_args(sys.argv[1:] if argv is None else argv)


def _load_config(path: str | None) -> AuthConfig:
    if not path:
        return AuthConfig()
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as err:
        raise ConfigError(f"Could not read config file {path}: {err}") from err
    return AuthConfig.from_dict(data)


async def _async_login(
    auth: TeslaAuth,
    args: argparse.Namespace,
    prompt: Callable[[str], str],
) -> TokenPair:
    password = args.password or getpass.getpass("Tesla password: ")
    result = await auth.async_login(
        args.username, password, args.mfa_code, args.region
    )

    attempts = 0
    while not isinstance(result, LoginSucceeded):
        if isinstance(result, MfaCodeInvalid):
            print(f"Passcode rejected: {result.message}", file=sys.stderr)
        attempts += 1
        if attempts > MAX_MFA_ATTEMPTS:
            raise TeslaAuthError("Too many invalid passcodes")
        code = prompt("Tesla passcode: ").strip()
        result = await auth.async_submit_mfa_code(result.session, code)

    return result.tokens


async def _async_run(
    args: argparse.Namespace, prompt: Callable[[str], str]
) -> TokenPair:
    config = _load_config(args.config)
    async with aiohttp.ClientSession() as session:
        auth = TeslaAuth(session, config)
        if args.command == "refresh":
            return await auth.async_refresh_token(args.refresh_token, args.region)
        return await _async_login(auth, args, prompt)


def main(
    argv: list[str] | None = None,
    prompt: Callable[[str], str] = input,
) -> int:
    """
    CLI entrypoint: print the token pair as JSON.

    Returns 0 on success, 1 on authentication errors, 2 on config errors.
    """
    args = _parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        tokens = asyncio.run(_async_run(args, prompt))
    except ConfigError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 2
    except TeslaAuthError as err:
        print(f"Error: {err}", file=sys.stderr)
        _LOGGER.debug("Diagnostics: %s", error_diagnostics(err))
        return 1

    print(json.dumps(tokens.as_dict()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
