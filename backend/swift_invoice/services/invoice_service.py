"""Invoice domain service layer.

Holds all persistence and business rules for invoices so the router stays a thin
HTTP adapter.

Design goals:
 - Totals are always recomputed here from the submitted items; caller-supplied
   aggregates never reach the database.
 - Ownership is enforced on every single-record operation: an invoice with an
   owner is only visible to that owner, guest invoices (no owner) to anyone.
 - Do not leak FastAPI/HTTP concerns (no HTTPException here). Raise domain exceptions instead.
"""
from __future__ import annotations

import logging
import math
import random
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.settings import get_default_currency
from ..models.database import Invoice, InvoiceStatus
from ..utils.errors import (
    InvoiceNotFound,
    InvoiceValidationError,
    NotAuthorized,
    PersistenceError,
)
from .totals import InvoiceTotals, compute_totals

logger = logging.getLogger(__name__)

INVOICE_NUMBER_ATTEMPTS = 20


# ------------------------------- Validation ---------------------------------- #


def validate_final_invoice(payload: Dict[str, Any]) -> None:
    """Apply the non-draft content rules; drafts skip this entirely."""
    items = payload.get("items")
    if not items:
        raise InvoiceValidationError("Invoice must have at least one item")
    for item in items:
        quantity = item.get("quantity")
        if quantity is None or quantity <= 0:
            raise InvoiceValidationError("Item quantity must be greater than 0")
        rate = item.get("rate")
        if rate is not None and rate < 0:
            raise InvoiceValidationError("Item rate cannot be negative")
    for role in ("sender", "client"):
        party = payload.get(role) or {}
        if not party.get("name") or not party.get("email"):
            raise InvoiceValidationError(f"{role.capitalize()} name and email are required")


# ------------------------------- Helpers ------------------------------------- #


def _generate_invoice_number() -> str:
    return f"INV-{random.randint(10000, 99999)}"


async def _invoice_number_taken(db: AsyncSession, number: str, exclude_id: Optional[UUID] = None) -> bool:
    stmt = select(Invoice.id).where(Invoice.invoice_number == number)
    if exclude_id is not None:
        stmt = stmt.where(Invoice.id != exclude_id)
    result = await db.execute(stmt)
    return result.first() is not None


async def _resolve_invoice_number(
    db: AsyncSession, requested: Optional[str], exclude_id: Optional[UUID] = None
) -> str:
    if requested:
        if await _invoice_number_taken(db, requested, exclude_id):
            raise InvoiceValidationError(f"Invoice number {requested} already exists")
        return requested
    for _ in range(INVOICE_NUMBER_ATTEMPTS):
        candidate = _generate_invoice_number()
        if not await _invoice_number_taken(db, candidate, exclude_id):
            return candidate
    raise PersistenceError("Failed to allocate a unique invoice number")


def _party(data: Optional[Dict[str, Any]], fields: tuple) -> Dict[str, Any]:
    data = data or {}
    return {name: data.get(name) for name in fields}


def _price_document(payload: Dict[str, Any]) -> InvoiceTotals:
    """Recompute totals from the items; overflowing amounts are a validation error."""
    totals = compute_totals(
        payload.get("items"),
        payload.get("tax_percentage"),
        payload.get("discount"),
    )
    amounts = [item.amount for item in totals.items]
    amounts += [totals.subtotal, totals.tax_amount, totals.total_amount]
    if not all(math.isfinite(value) for value in amounts):
        raise InvoiceValidationError("Invoice amounts are too large to store")
    return totals


def _apply_document(invoice: Invoice, payload: Dict[str, Any], totals: InvoiceTotals) -> None:
    """Replace every editable field with the payload and the recomputed totals."""
    invoice.is_draft = bool(payload.get("is_draft"))
    invoice.sender = _party(payload.get("sender"),
                            ("name", "email", "address", "logo_image", "company_name"))
    invoice.client = _party(payload.get("client"), ("name", "email", "address"))
    invoice.items = [item.to_dict() for item in totals.items]
    invoice.subtotal = totals.subtotal
    invoice.tax_name = payload.get("tax_name")
    invoice.tax_percentage = float(payload.get("tax_percentage") or 0)
    invoice.tax_amount = totals.tax_amount
    invoice.discount = float(payload.get("discount") or 0)
    invoice.total_amount = totals.total_amount
    invoice.currency = payload.get("currency") or get_default_currency()
    if payload.get("issue_date") is not None:
        invoice.issue_date = payload["issue_date"]
    invoice.due_date = payload.get("due_date")
    invoice.payment_terms = payload.get("payment_terms")
    invoice.notes = payload.get("notes")
    invoice.payment_qr = payload.get("payment_qr")
    invoice.qr_code_image = payload.get("qr_code_image")


def _ensure_owner(invoice: Invoice, caller_id: Optional[UUID]) -> None:
    if invoice.owner_id is not None and invoice.owner_id != caller_id:
        raise NotAuthorized()


async def _commit(db: AsyncSession, invoice: Optional[Invoice] = None) -> None:
    try:
        await db.commit()
        if invoice is not None:
            await db.refresh(invoice)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Invoice persistence failed: %s", exc)
        raise PersistenceError(str(exc)) from exc


async def _load_invoice(db: AsyncSession, invoice_id: UUID) -> Invoice:
    try:
        result = await db.execute(select(Invoice).where(Invoice.id == invoice_id))
    except SQLAlchemyError as exc:
        raise PersistenceError(str(exc)) from exc
    invoice = result.scalar_one_or_none()
    if not invoice:
        raise InvoiceNotFound()
    return invoice


# ------------------------------- Operations ---------------------------------- #


async def create_invoice_service(
    db: AsyncSession,
    payload: Dict[str, Any],
    owner_id: Optional[UUID] = None,
) -> Invoice:
    """Validate (unless draft), recompute totals and persist a new invoice."""
    if not payload.get("is_draft"):
        validate_final_invoice(payload)
    totals = _price_document(payload)
    invoice = Invoice(
        invoice_number=await _resolve_invoice_number(db, payload.get("invoice_number")),
        owner_id=owner_id,
        status=InvoiceStatus.PENDING.value,
        issue_date=datetime.now(UTC),
    )
    _apply_document(invoice, payload, totals)
    db.add(invoice)
    await _commit(db, invoice)
    logger.info("Invoice created", extra={"invoice_id": str(invoice.id)})
    return invoice


async def get_invoice_service(
    db: AsyncSession, invoice_id: UUID, caller_id: Optional[UUID]
) -> Invoice:
    invoice = await _load_invoice(db, invoice_id)
    _ensure_owner(invoice, caller_id)
    return invoice


async def update_invoice_service(
    db: AsyncSession,
    invoice_id: UUID,
    payload: Dict[str, Any],
    caller_id: Optional[UUID],
) -> Invoice:
    """Full replace of editable fields; id, owner and status are untouched."""
    invoice = await get_invoice_service(db, invoice_id, caller_id)
    if not payload.get("is_draft"):
        validate_final_invoice(payload)
    totals = _price_document(payload)
    requested_number = payload.get("invoice_number")
    if requested_number and requested_number != invoice.invoice_number:
        invoice.invoice_number = await _resolve_invoice_number(db, requested_number, invoice.id)
    _apply_document(invoice, payload, totals)
    invoice.updated_at = datetime.now(UTC)
    await _commit(db, invoice)
    return invoice


async def update_invoice_status_service(
    db: AsyncSession,
    invoice_id: UUID,
    status: InvoiceStatus | str,
    caller_id: Optional[UUID],
) -> Invoice:
    invoice = await get_invoice_service(db, invoice_id, caller_id)
    try:
        invoice.status = InvoiceStatus(status).value
    except ValueError as exc:
        raise InvoiceValidationError(f"Invalid status: {status}") from exc
    invoice.updated_at = datetime.now(UTC)
    await _commit(db, invoice)
    return invoice


async def delete_invoice_service(
    db: AsyncSession, invoice_id: UUID, caller_id: Optional[UUID]
) -> None:
    invoice = await get_invoice_service(db, invoice_id, caller_id)
    await db.delete(invoice)
    await _commit(db)
    logger.info("Invoice deleted", extra={"invoice_id": str(invoice_id)})


def _matches_search(invoice: Invoice, term: str) -> bool:
    client_name = (invoice.client or {}).get("name") or ""
    return term in invoice.invoice_number.lower() or term in client_name.lower()


async def list_invoices_service(
    db: AsyncSession,
    owner_id: UUID,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Invoice]:
    """Caller's invoices, most recently updated first, optionally filtered."""
    stmt = select(Invoice).where(Invoice.owner_id == owner_id)
    if status:
        try:
            stmt = stmt.where(Invoice.status == InvoiceStatus(status).value)
        except ValueError as exc:
            raise InvoiceValidationError(f"Invalid status: {status}") from exc
    stmt = stmt.order_by(Invoice.updated_at.desc(), Invoice.created_at.desc())
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        raise PersistenceError(str(exc)) from exc
    invoices = list(result.scalars().all())
    if search and search.strip():
        term = search.strip().lower()
        invoices = [inv for inv in invoices if _matches_search(inv, term)]
    return invoices


__all__ = [
    "validate_final_invoice",
    "create_invoice_service",
    "get_invoice_service",
    "update_invoice_service",
    "update_invoice_status_service",
    "delete_invoice_service",
    "list_invoices_service",
]
