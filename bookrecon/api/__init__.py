"""Catalog API client and typeahead helpers."""

from bookrecon.api.client import CatalogApiClient
from bookrecon.api.typeahead import Debouncer, SuggestionFetcher

__all__ = ["CatalogApiClient", "Debouncer", "SuggestionFetcher"]
