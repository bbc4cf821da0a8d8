"""ISBN-10/13 cleaning, checksum validation and normalization.

The cleaned form is the canonical stored identifier: digits only, plus a
trailing ``X`` check character for ISBN-10. ISBN-13 has no check letter, so
any ``X`` in a candidate longer than ten characters is dropped.
"""

from __future__ import annotations

import re

ISBN10_WEIGHTS = [10, 9, 8, 7, 6, 5, 4, 3, 2]
ISBN13_WEIGHTS = [1, 3, 1, 3, 1, 3, 1, 3, 1, 3, 1, 3]
ISBN13_PREFIX = "978"

_NON_ISBN_CHARS = re.compile(r"[^0-9X]")
_ISBN10_PATTERN = re.compile(r"^\d{9}[\dX]$")
_ISBN13_PATTERN = re.compile(r"^\d{13}$")


def clean(raw: str | None) -> str:
    """Uppercase, keep digits and ``X``, and place ``X`` only where it is legal.

    >>> clean("978-0-7432-7356-5")
    '9780743273565'
    >>> clean("080442957x")
    '080442957X'
    """
    if not raw:
        return ""
    cleaned = _NON_ISBN_CHARS.sub("", str(raw).upper())
    if len(cleaned) > 10:
        return cleaned.replace("X", "")
    return cleaned[:-1].replace("X", "") + cleaned[-1:]


def validate_isbn10(value: str) -> bool:
    if not _ISBN10_PATTERN.match(value or ""):
        return False
    checksum = sum(w * int(d) for w, d in zip(ISBN10_WEIGHTS, value[:9]))
    checksum += 10 if value[9] == "X" else int(value[9])
    return checksum % 11 == 0


def validate_isbn13(value: str) -> bool:
    if not _ISBN13_PATTERN.match(value or ""):
        return False
    return _isbn13_check_digit(value[:12]) == int(value[12])


def validate(raw: str | None) -> bool:
    """Clean ``raw`` and run the checksum matching its length."""
    cleaned = clean(raw)
    if len(cleaned) == 10:
        return validate_isbn10(cleaned)
    if len(cleaned) == 13:
        return validate_isbn13(cleaned)
    return False


def normalize(raw: str | None) -> str:
    """Canonical identifier for storage and comparison. Idempotent."""
    return clean(raw)


def normalize_other_code(raw: str | None) -> str:
    """Canonical form of a non-ISBN catalog code (trimmed, single-spaced, upper)."""
    if not raw:
        return ""
    return " ".join(str(raw).split()).upper()


def to_isbn13(raw: str | None) -> str | None:
    """Convert a valid ISBN-10 to ISBN-13; valid ISBN-13 passes through.

    Returns None for anything that does not validate.
    """
    if not validate(raw):
        return None
    cleaned = clean(raw)
    if len(cleaned) == 13:
        return cleaned
    body = ISBN13_PREFIX + cleaned[:9]
    return body + str(_isbn13_check_digit(body))


def _isbn13_check_digit(first_twelve: str) -> int:
    checksum = sum(w * int(d) for w, d in zip(ISBN13_WEIGHTS, first_twelve))
    return (10 - checksum % 10) % 10
