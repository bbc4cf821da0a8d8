"""Exception types shared by the engine, the API client and the CLI."""

from __future__ import annotations

from typing import Any


class BookreconError(Exception):
    """Base class for all engine errors."""


class ApiError(BookreconError):
    """Uniform wrapper for transport failures and non-2xx API responses.

    ``status_code`` is None when no response was received at all.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


class LocalValidationError(BookreconError, ValueError):
    """Input rejected before any network call.

    Carries a field -> message map so callers can render errors inline.
    """

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        summary = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(summary or "invalid input")


class SubmissionValidationError(LocalValidationError):
    """Book or pricing form data failed local validation."""


class QuotationValidationError(LocalValidationError):
    """Quotation draft cannot be saved as-is."""


class InvalidResolutionError(BookreconError, ValueError):
    """Action is not offered for the classification it was chosen from."""


class ResolutionInProgressError(BookreconError):
    """A resolution request for the same target is still outstanding."""

    def __init__(self, target_id: str):
        super().__init__(f"A resolution for {target_id} is already in progress")
        self.target_id = target_id


class CatalogNotFoundError(BookreconError, LookupError):
    """A referenced book or quotation does not exist in the catalog."""


class StaleResolutionError(BookreconError):
    """The catalog changed since the submission was classified.

    ``current`` is the fresh classification the client should re-evaluate.
    """

    def __init__(self, message: str, current: Any = None):
        super().__init__(message)
        self.current = current
