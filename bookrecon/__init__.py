"""bookrecon - book reconciliation and quotation pricing engine."""

__version__ = "0.1.0"
