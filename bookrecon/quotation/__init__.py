"""Quotation pricing and draft editing."""

from bookrecon.quotation.calculator import (
    LineInput,
    LineResult,
    QuotationSummary,
    calculate,
    price_line,
)
from bookrecon.quotation.draft import DraftLine, QuotationDraft
from bookrecon.quotation.models import (
    PreviewBook,
    Quotation,
    QuotationItem,
    QuotationPayload,
    QuotationStatus,
)

__all__ = [
    "DraftLine",
    "LineInput",
    "LineResult",
    "PreviewBook",
    "Quotation",
    "QuotationDraft",
    "QuotationItem",
    "QuotationPayload",
    "QuotationStatus",
    "QuotationSummary",
    "calculate",
    "price_line",
]
