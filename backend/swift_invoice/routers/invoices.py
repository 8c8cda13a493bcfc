"""Invoice router: create, list, read, replace, delete, status change and PDF download.

The router is a thin HTTP adapter over services/invoice_service.py:
 - request bodies accept camelCase (frontend) and snake_case keys
 - domain exceptions are translated to HTTP errors carrying a standardized `code`
 - every JSON response uses the success envelope; the PDF route streams bytes
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from ..config.database import get_async_db_dependency
from ..config.observability import (
    invoice_create_counter,
    invoice_status_counter,
    invoice_update_counter,
    invoice_delete_counter,
    invoice_download_counter,
    record_invoice_operation,
    trace_operation,
)
from ..models.database import (
    CURRENCY_MAX,
    INVOICE_NUMBER_MAX,
    SHORT_TEXT_MAX,
    TAX_NAME_MAX,
    Invoice,
    User,
)
from ..services.invoice_service import (
    create_invoice_service,
    get_invoice_service,
    update_invoice_service,
    update_invoice_status_service,
    delete_invoice_service,
    list_invoices_service,
)
from ..services.pdf_service import generate_invoice_pdf
from ..utils.api_shapes import success
from ..utils.errors import DomainError
from .auth import get_current_user, get_invoice_caller

router = APIRouter()


def _copy_aliases(values: Dict[str, Any], key_map: Dict[str, str]) -> None:
    for src_key, dest_key in key_map.items():
        if src_key in values and dest_key not in values:
            values[dest_key] = values[src_key]


def _blank_to_none(values: Dict[str, Any], fields) -> None:
    for field in fields:
        if isinstance(values.get(field), str) and values[field].strip() == '':
            values[field] = None

# Pydantic schemas


class SenderIn(BaseModel):
    model_config = ConfigDict(extra='ignore')

    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    logo_image: Optional[str] = None
    company_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        if not isinstance(values, dict):
            return values
        _copy_aliases(values, {'logoImage': 'logo_image', 'logo': 'logo_image',
                               'companyName': 'company_name'})
        return values


class ClientIn(BaseModel):
    model_config = ConfigDict(extra='ignore')

    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class LineItemIn(BaseModel):
    """One line item; any submitted `amount` is ignored and recomputed."""
    model_config = ConfigDict(extra='ignore', allow_inf_nan=False)

    description: Optional[str] = None
    quantity: Optional[float] = None
    rate: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        if not isinstance(values, dict):
            return values
        _blank_to_none(values, ('quantity', 'rate'))
        return values


class InvoiceCreate(BaseModel):
    """Invoice document as sent by the editor.

    Frontend sends camelCase keys (invoiceNumber, isDraft, taxPercentage, issueDate,
    paymentQr, qrCodeImage, ...); snake_case is accepted as well. Aggregates such as
    subtotal/taxAmount/totalAmount are ignored if present.
    """
    model_config = ConfigDict(extra='ignore', allow_inf_nan=False)

    invoice_number: Optional[str] = Field(default=None, max_length=INVOICE_NUMBER_MAX)
    is_draft: bool = False
    sender: SenderIn = Field(default_factory=SenderIn)
    client: ClientIn = Field(default_factory=ClientIn)
    items: List[LineItemIn] = Field(default_factory=list)
    tax_name: Optional[str] = Field(default=None, max_length=TAX_NAME_MAX)
    tax_percentage: Optional[float] = 0
    discount: Optional[float] = 0
    currency: Optional[str] = Field(default=None, max_length=CURRENCY_MAX)
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    payment_terms: Optional[str] = Field(default=None, max_length=SHORT_TEXT_MAX)
    notes: Optional[str] = None
    payment_qr: Optional[str] = Field(default=None, max_length=SHORT_TEXT_MAX)
    qr_code_image: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        """Normalize camelCase keys; empty strings -> None; ISO 8601 date strings -> datetime."""
        if not isinstance(values, dict):
            return values
        _copy_aliases(values, {
            'invoiceNumber': 'invoice_number',
            'isDraft': 'is_draft',
            'taxName': 'tax_name',
            'taxPercentage': 'tax_percentage',
            'issueDate': 'issue_date',
            'dueDate': 'due_date',
            'paymentTerms': 'payment_terms',
            'paymentQr': 'payment_qr',
            'qrCodeImage': 'qr_code_image',
        })
        _blank_to_none(values, (
            'invoice_number', 'tax_name', 'tax_percentage', 'discount', 'currency',
            'payment_terms', 'payment_qr', 'qr_code_image',
        ))
        for party in ('sender', 'client', 'items'):
            if values.get(party) is None:
                values.pop(party, None)

        for date_field in ('issue_date', 'due_date'):
            raw = values.get(date_field)
            if isinstance(raw, str):
                if raw.strip() == '':
                    values[date_field] = None
                else:
                    try:
                        values[date_field] = datetime.fromisoformat(raw)
                    except ValueError as exc:
                        raise ValueError(
                            f"Field '{date_field}' must be ISO 8601 date/datetime string") from exc
        return values


class InvoiceUpdate(InvoiceCreate):
    """Full replacement document; same shape as create."""


class StatusUpdate(BaseModel):
    status: str

# Serialization


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _to_frontend_invoice(invoice: Invoice) -> dict:
    """Transform a stored invoice into the camelCase shape the frontend reads."""
    sender = invoice.sender or {}
    client = invoice.client or {}
    return {
        "id": str(invoice.id),
        "invoiceNumber": invoice.invoice_number,
        "ownerId": str(invoice.owner_id) if invoice.owner_id else None,
        "status": invoice.status,
        "isDraft": bool(invoice.is_draft),
        "sender": {
            "name": sender.get("name"),
            "email": sender.get("email"),
            "address": sender.get("address"),
            "logoImage": sender.get("logo_image"),
            "companyName": sender.get("company_name"),
        },
        "client": {
            "name": client.get("name"),
            "email": client.get("email"),
            "address": client.get("address"),
        },
        "items": [dict(item) for item in invoice.items or []],
        "subtotal": float(invoice.subtotal or 0),
        "taxName": invoice.tax_name,
        "taxPercentage": float(invoice.tax_percentage or 0),
        "taxAmount": float(invoice.tax_amount or 0),
        "discount": float(invoice.discount or 0),
        "totalAmount": float(invoice.total_amount or 0),
        "currency": invoice.currency,
        "issueDate": _iso(invoice.issue_date),
        "dueDate": _iso(invoice.due_date),
        "paymentTerms": invoice.payment_terms,
        "notes": invoice.notes,
        "paymentQr": invoice.payment_qr,
        "qrCodeImage": invoice.qr_code_image,
        "qrImageUrl": invoice.qr_image_url,
        "createdAt": _iso(invoice.created_at),
        "updatedAt": _iso(invoice.updated_at),
    }


def _caller_id(user: Optional[User]) -> Optional[UUID]:
    return user.id if user is not None else None

# Routes


@router.post('/', status_code=status.HTTP_201_CREATED)
@router.post('', status_code=status.HTTP_201_CREATED)
async def create_invoice(
    payload: InvoiceCreate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Optional[User] = Depends(get_invoice_caller),
):
    with trace_operation("invoice_create", draft=payload.is_draft):
        try:
            created = await create_invoice_service(db, payload.model_dump(), _caller_id(current_user))
        except DomainError as exc:
            raise exc.to_http() from exc
    invoice_create_counter.add(1, {"draft": str(created.is_draft).lower()})
    record_invoice_operation("create")
    return success(_to_frontend_invoice(created))


@router.get('/')
@router.get('')
async def list_invoices(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """Caller's invoices, most recently updated first."""
    try:
        invoices = await list_invoices_service(db, current_user.id, status=status_filter, search=search)
    except DomainError as exc:
        raise exc.to_http() from exc
    data_list = [_to_frontend_invoice(inv) for inv in invoices]
    return success(data_list, total=len(data_list))


@router.get('/{invoice_id}')
async def get_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: User = Depends(get_current_user),
):
    try:
        invoice = await get_invoice_service(db, invoice_id, current_user.id)
    except DomainError as exc:
        raise exc.to_http() from exc
    return success(_to_frontend_invoice(invoice))


@router.put('/{invoice_id}')
async def replace_invoice(
    invoice_id: UUID,
    payload: InvoiceUpdate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: User = Depends(get_current_user),
):
    """Full update of the editable fields; totals are recomputed."""
    with trace_operation("invoice_update", invoice_id=str(invoice_id)):
        try:
            invoice = await update_invoice_service(db, invoice_id, payload.model_dump(), current_user.id)
        except DomainError as exc:
            raise exc.to_http() from exc
    invoice_update_counter.add(1, {"draft": str(invoice.is_draft).lower()})
    record_invoice_operation("update")
    return success(_to_frontend_invoice(invoice))


@router.patch('/{invoice_id}/status')
async def update_invoice_status(
    invoice_id: UUID,
    payload: StatusUpdate,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: User = Depends(get_current_user),
):
    try:
        invoice = await update_invoice_status_service(db, invoice_id, payload.status, current_user.id)
    except DomainError as exc:
        raise exc.to_http() from exc
    invoice_status_counter.add(1, {"status": str(invoice.status)})
    record_invoice_operation("status")
    return success(_to_frontend_invoice(invoice))


@router.delete('/{invoice_id}')
async def delete_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: User = Depends(get_current_user),
):
    with trace_operation("invoice_delete", invoice_id=str(invoice_id)):
        try:
            await delete_invoice_service(db, invoice_id, current_user.id)
        except DomainError as exc:
            raise exc.to_http() from exc
    invoice_delete_counter.add(1, {})
    record_invoice_operation("delete")
    return success({"message": "Invoice removed"})


def _attachment_disposition(filename: str) -> str:
    """Latin-1 safe Content-Disposition; the exact name travels in filename* (RFC 6266)."""
    fallback = re.sub(r"[^A-Za-z0-9._-]", "_", filename)
    if fallback == filename:
        return f"attachment; filename={filename}"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


@router.get('/{invoice_id}/download')
async def download_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_async_db_dependency),
    current_user: Optional[User] = Depends(get_invoice_caller),
):
    """Render the invoice to PDF and return it as an attachment."""
    with trace_operation("invoice_download", invoice_id=str(invoice_id)):
        try:
            invoice = await get_invoice_service(db, invoice_id, _caller_id(current_user))
            pdf_bytes = await run_in_threadpool(generate_invoice_pdf, invoice)
        except DomainError as exc:
            raise exc.to_http() from exc
    invoice_download_counter.add(1, {})
    record_invoice_operation("download")
    return Response(
        content=pdf_bytes,
        media_type='application/pdf',
        headers={"Content-Disposition": _attachment_disposition(f"invoice-{invoice.invoice_number}.pdf")},
    )
