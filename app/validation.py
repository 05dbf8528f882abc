"""URL well-formedness checks shared by creation and update."""

from urllib.parse import urlsplit

import validators

__all__ = ["ALLOWED_SCHEMES", "MAX_URL_LENGTH", "is_valid_url"]

ALLOWED_SCHEMES = frozenset({"http", "https"})
MAX_URL_LENGTH = 2048


def is_valid_url(candidate: str) -> bool:
    """Return True if ``candidate`` is an absolute http(s) URL.

    Never raises: anything that is not a string, is too long, has no scheme,
    uses another scheme, or fails ``validators.url`` is simply rejected.
    """
    if not isinstance(candidate, str) or not candidate:
        return False
    if len(candidate) > MAX_URL_LENGTH:
        return False

    try:
        scheme = urlsplit(candidate).scheme
    except ValueError:
        return False
    # Schemes are case-insensitive; urlsplit has already lowercased this one
    if scheme not in ALLOWED_SCHEMES:
        return False
    prefix, rest = candidate[: len(scheme)], candidate[len(scheme) :]
    if prefix.lower() != scheme or not rest.startswith("://"):
        return False

    try:
        return bool(validators.url(scheme + rest, strict_query=False))
    except Exception:
        return False
