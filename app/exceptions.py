"""Domain errors raised by the URL shortening service.

Routes translate these into HTTP responses; nothing below the service layer
should raise them except ``DuplicateShortCodeError``, which is the store's
signal that an insert hit the ``short_code`` unique constraint.
"""

__all__ = [
    "URLShortenerError",
    "InvalidInputError",
    "CustomCodeTakenError",
    "CouldNotGenerateUniqueCodeError",
    "ShortURLNotFoundError",
    "StoreError",
    "DuplicateShortCodeError",
]


class URLShortenerError(Exception):
    """Base class for every error the service raises on purpose."""


class InvalidInputError(URLShortenerError):
    """Malformed URL, bad custom code or missing field. Always user-correctable."""


class CustomCodeTakenError(URLShortenerError):
    def __init__(self, short_code: str) -> None:
        super().__init__(f"Custom code '{short_code}' is already taken")
        self.short_code = short_code


class CouldNotGenerateUniqueCodeError(URLShortenerError):
    """Every attempt in the retry budget collided with an existing code."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Could not generate a unique short code after {attempts} attempts")
        self.attempts = attempts


class ShortURLNotFoundError(URLShortenerError):
    def __init__(self, short_code: str) -> None:
        super().__init__(f"Short code '{short_code}' not found")
        self.short_code = short_code


class StoreError(URLShortenerError):
    """Unexpected failure of the relational store."""


class DuplicateShortCodeError(Exception):
    """Raised by the repository when an insert violates the short_code unique index."""

    def __init__(self, short_code: str) -> None:
        super().__init__(f"short_code '{short_code}' already exists")
        self.short_code = short_code
