"""URL validation shared by link creation and standalone QR rendering.

Only absolute ``http``/``https`` URLs with a host are accepted. The URL is
stored and encoded exactly as submitted (after trimming surrounding
whitespace); no normalisation is applied.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from app.core.errors import ValidationAppError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})
MAX_URL_LENGTH = 2048


def _reject(reason: str, message: str) -> ValidationAppError:
    logger.info("url_validation.rejected", extra={"reason": reason})
    return ValidationAppError(
        code="invalid_url",
        message=message,
        details={"field": "url", "hint": reason},
    )


def validate_target_url(raw: str) -> str:
    """Validate and return a well-formed absolute http(s) URL.

    Args:
        raw: URL as supplied by the client.

    Returns:
        The trimmed URL.

    Raises:
        ValidationAppError: If the URL is empty, too long, contains
            whitespace/control characters, is relative, uses another scheme,
            or has no host.
    """
    if not isinstance(raw, str):
        raise _reject("not_a_string", "URL must be a string")

    url = raw.strip()
    if not url:
        raise _reject("empty", "URL must not be empty")
    if len(url) > MAX_URL_LENGTH:
        raise _reject("too_long", f"URL exceeds {MAX_URL_LENGTH} characters")
    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in url):
        raise _reject("illegal_characters", "URL contains whitespace or control characters")

    try:
        parts = urlsplit(url)
        # Accessing .port validates the port component.
        parts.port
    except ValueError:
        raise _reject("unparseable", "URL could not be parsed") from None

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise _reject("unsupported_scheme", "URL must be an absolute http or https URL")
    if not parts.hostname:
        raise _reject("missing_host", "URL must include a host")

    return url
