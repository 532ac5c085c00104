"""Domain extraction from free-form address text."""

from __future__ import annotations

import logging
import re

from sitescrape.errors import ValidationError

logger = logging.getLogger(__name__)

# Labels of letters, digits and inner hyphens separated by dots, ending in an
# alphabetic TLD of at least two characters.
HOSTNAME_PATTERN = re.compile(
    r"(?<![\w.-])"
    r"((?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63})"
    r"(?![\w-])",
    re.IGNORECASE,
)


def extract_domain(text: object) -> str | None:
    """
    Extract the first hostname-shaped token from free-form text.

    Args:
        text: Address text, e.g. a URL, a search query or a form field value

    Returns:
        The lower-cased hostname, or None when nothing matches
    """
    if not isinstance(text, str) or not text.strip():
        return None

    match = HOSTNAME_PATTERN.search(text)
    if match is None:
        logger.debug(f"No domain found in address: {text!r}")
        return None

    return match.group(1).lower()


def require_domain(text: object) -> str:
    """Like extract_domain, but raise ValidationError when nothing matches."""
    domain = extract_domain(text)
    if domain is None:
        raise ValidationError(f"No domain found in address: {text!r}")
    return domain
