"""Client fingerprints used as rate limit keys.

A fingerprint combines the user-agent, preferred language and timezone into
a short opaque token. It is a heuristic grouping, not an identity: any
client controlling its own headers can present a new fingerprint on every
request and sidestep throttling. Use an authenticated identity where abuse
resistance matters.
"""

from __future__ import annotations

import hashlib

from fastapi import Request

from tourcompanion.core.config import settings

FINGERPRINT_LENGTH = 16

UNKNOWN_USER_AGENT = "unknown"
UNKNOWN_LANGUAGE = "unknown"
DEFAULT_TIMEZONE = "UTC"


def generate_rate_limit_key(user_agent: str, language: str, timezone: str) -> str:
    """Derive a fingerprint token from ambient client signals.

    Args:
        user_agent: Raw User-Agent string.
        language: Preferred locale tag (e.g., ``it-IT``).
        timezone: IANA timezone name (e.g., ``Europe/Rome``).

    Returns:
        A 16-character lowercase hex token; equal inputs give equal tokens.

    Examples:
        >>> len(generate_rate_limit_key("Mozilla/5.0", "it-IT", "Europe/Rome"))
        16
    """
    key_data = f"{user_agent}:{language}:{timezone}"
    return hashlib.sha256(key_data.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def _primary_language(accept_language: str | None) -> str:
    """Return the first language tag of an Accept-Language header."""

    if not accept_language:
        return UNKNOWN_LANGUAGE
    first = accept_language.split(",", 1)[0].split(";", 1)[0].strip()
    return first or UNKNOWN_LANGUAGE


def fingerprint_from_request(request: Request) -> str:
    """Build the rate limit key for an incoming HTTP request.

    Args:
        request: FastAPI request.

    Returns:
        Fingerprint token for the caller.
    """

    user_agent = request.headers.get("user-agent") or UNKNOWN_USER_AGENT
    language = _primary_language(request.headers.get("accept-language"))
    timezone = request.headers.get(settings.app.timezone_header) or DEFAULT_TIMEZONE
    return generate_rate_limit_key(user_agent, language, timezone)
