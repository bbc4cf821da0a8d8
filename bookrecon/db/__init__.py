"""Persistence for the reference catalog service."""

from bookrecon.db.connection import (
    close_db,
    get_db,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
)
from bookrecon.db.models import (
    Base,
    BookModel,
    PricingModel,
    PublisherModel,
    QuotationItemModel,
    QuotationModel,
)

__all__ = [
    "Base",
    "BookModel",
    "PricingModel",
    "PublisherModel",
    "QuotationItemModel",
    "QuotationModel",
    "close_db",
    "get_db",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
]
