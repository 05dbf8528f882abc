"""Random short-code generation.

Codes are drawn uniformly from a 62-character alphabet with nanoid. Uniqueness
is not guaranteed here: the store's unique index is the arbiter and the
assignment protocol retries on collision.
"""

import re

from nanoid import generate

from app.config import get_settings

__all__ = [
    "ALPHABET",
    "MAX_SHORT_CODE_LENGTH",
    "generate_short_code",
    "is_valid_short_code",
]

settings = get_settings()

ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
MAX_SHORT_CODE_LENGTH = 64

_SHORT_CODE_RE = re.compile(rf"[0-9A-Za-z]{{1,{MAX_SHORT_CODE_LENGTH}}}")


def generate_short_code(length: int = settings.SHORT_CODE_LENGTH) -> str:
    if not isinstance(length, int) or isinstance(length, bool) or length <= 0:
        raise ValueError(f"length must be a positive integer, got {length!r}")
    return generate(ALPHABET, length)


def is_valid_short_code(code: str) -> bool:
    """Custom codes follow the same alphabet and length bound as stored codes."""
    return isinstance(code, str) and _SHORT_CODE_RE.fullmatch(code) is not None
