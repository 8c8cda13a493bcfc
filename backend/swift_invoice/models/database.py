"""
Database models for the Swift Invoice system.

Invoices are stored document-style: party details and line items live in JSON
columns on the invoice row, while aggregate totals are plain float columns so
they keep the full precision produced by the totals calculator.
"""

from datetime import datetime, UTC
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean, DateTime, Float, String, Text, JSON, Uuid,
    ForeignKey, Column, Index, CheckConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship, validates


Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InvoiceStatus(str, Enum):
    """Invoice status enumeration."""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class User(Base):
    """User model for authentication and invoice ownership."""
    __tablename__ = 'users'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    # Sender profile used to pre-fill new invoices
    business_details = Column(JSONDocument, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow,
                        onupdate=_utcnow, nullable=False)

    invoices = relationship("Invoice", back_populates="owner")

    @validates('email')
    def validate_email(self, key, email):
        """Validate email format."""
        import re
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(pattern, email):
            raise ValueError(f"Invalid email format: {email}")
        return email.lower()


# Column widths; request schemas validate against the same limits
INVOICE_NUMBER_MAX = 50
TAX_NAME_MAX = 50
CURRENCY_MAX = 10
SHORT_TEXT_MAX = 255


class Invoice(Base):
    """Invoice document: parties, line items, derived totals and payment display fields."""
    __tablename__ = 'invoices'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_number = Column(String(INVOICE_NUMBER_MAX), unique=True, nullable=False, index=True)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'),
                      nullable=True, index=True)
    status = Column(String(20), nullable=False, default=InvoiceStatus.PENDING.value)
    is_draft = Column(Boolean, nullable=False, default=False)

    # Parties (embedded documents)
    sender = Column(JSONDocument, nullable=False, default=dict)
    client = Column(JSONDocument, nullable=False, default=dict)

    # Ordered line items: [{description, quantity, rate, amount}]
    items = Column(JSONDocument, nullable=False, default=list)

    # Financials (always recomputed server-side)
    subtotal = Column(Float, nullable=False, default=0.0)
    tax_name = Column(String(TAX_NAME_MAX))
    tax_percentage = Column(Float, nullable=False, default=0.0)
    tax_amount = Column(Float, nullable=False, default=0.0)
    discount = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False, default=0.0)
    currency = Column(String(CURRENCY_MAX), nullable=False, default="USD")

    # Metadata
    issue_date = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    due_date = Column(DateTime(timezone=True))
    payment_terms = Column(String(SHORT_TEXT_MAX))
    notes = Column(Text)

    # Payment display
    payment_qr = Column(String(SHORT_TEXT_MAX))
    qr_code_image = Column(Text)
    # Deprecated: read-only, kept so older records still render their QR
    qr_image_url = Column(Text)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow,
                        onupdate=_utcnow, nullable=False)

    owner = relationship("User", back_populates="invoices")

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'paid', 'cancelled')",
                        name='check_valid_invoice_status'),
        Index('idx_invoice_owner_updated', 'owner_id', 'updated_at'),
    )
