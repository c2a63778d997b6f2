"""Scraping helpers for Tesla SSO pages and headers.

Kept apart from the flow so the pattern matching can be replaced by a
real HTML parser without touching auth.py.
"""

from __future__ import annotations

import re
import urllib.parse
from collections.abc import Iterable
from html import unescape as html_unescape

_HIDDEN_INPUT_RE = re.compile(r'type="hidden" name="(.*?)" value="(.*?)"')


def extract_hidden_fields(html: str) -> dict[str, str]:
    """Return name -> value for every hidden input, in page order.

    The first occurrence of a name wins.
    """
    fields: dict[str, str] = {}
    for match in _HIDDEN_INPUT_RE.finditer(html):
        fields.setdefault(
            html_unescape(match.group(1)), html_unescape(match.group(2))
        )
    return fields


def extract_session_cookie(set_cookie_headers: Iterable[str]) -> str | None:
    """Return the first Set-Cookie value up to its first whitespace.

    For ``tesla-auth.sid=abc; Path=/`` this is ``tesla-auth.sid=abc;``.
    Returns None when there is no header or it carries no name=value pair.
    """
    header = next(iter(set_cookie_headers), "").strip()
    if not header:
        return None
    cookie = header.split(None, 1)[0]
    name, sep, _ = cookie.partition("=")
    return cookie if sep and name else None


def extract_code_from_redirect(location: str | None) -> str | None:
    """Extract the authorization code from a redirect Location header."""
    if not location:
        return None
    parsed = urllib.parse.urlparse(location)
    params = urllib.parse.parse_qs(parsed.query)
    codes = params.get("code")
    return codes[0] if codes else None
