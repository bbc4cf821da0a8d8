"""Book identifier helpers."""

from bookrecon.identifiers.isbn import (
    clean,
    normalize,
    normalize_other_code,
    to_isbn13,
    validate,
    validate_isbn10,
    validate_isbn13,
)

__all__ = [
    "clean",
    "normalize",
    "normalize_other_code",
    "to_isbn13",
    "validate",
    "validate_isbn10",
    "validate_isbn13",
]
