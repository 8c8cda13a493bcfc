"""Client-side pieces of Swift Invoice: the immutable draft editor state and the API client."""

from .api import ApiError, InvoiceApiClient
from .draft import Draft, DraftItem, reduce

__all__ = ["ApiError", "InvoiceApiClient", "Draft", "DraftItem", "reduce"]
