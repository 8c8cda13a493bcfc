"""Models package marker.

Exposes Base and the model classes for simplified imports.
"""
from .database import Base, Invoice, InvoiceStatus, User  # noqa: F401
