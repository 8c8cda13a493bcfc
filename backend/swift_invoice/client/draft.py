"""Client-side invoice draft state.

The editor never mutates a draft in place: every edit is an action passed to
:func:`reduce`, which returns a new :class:`Draft`. Totals are a derived
property computed with the same calculator the API uses, so the live preview
and the stored invoice agree.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..services.totals import InvoiceTotals, compute_totals
from ..utils.money_format import format_money


def new_invoice_number() -> str:
    return f"INV-{random.randint(10000, 99999)}"


@dataclass(frozen=True)
class DraftItem:
    description: str = ""
    quantity: Optional[float] = 1
    rate: Optional[float] = 0


@dataclass(frozen=True)
class Sender:
    name: str = ""
    email: str = ""
    address: str = ""
    logo_image: str = ""
    company_name: str = ""


@dataclass(frozen=True)
class Client:
    name: str = ""
    email: str = ""
    address: str = ""


@dataclass(frozen=True)
class Draft:
    """Immutable invoice being edited; `invoice_id` is set once it has been stored."""
    invoice_number: str = field(default_factory=new_invoice_number)
    invoice_id: Optional[str] = None
    issue_date: Optional[date] = field(default_factory=date.today)
    due_date: Optional[date] = None
    sender: Sender = field(default_factory=Sender)
    client: Client = field(default_factory=Client)
    items: Tuple[DraftItem, ...] = (DraftItem(),)
    tax_name: str = "VAT"
    tax_percentage: float = 0
    discount: float = 0
    payment_terms: str = ""
    notes: str = ""
    payment_qr: str = ""
    qr_code_image: str = ""
    currency: str = "USD"

    @property
    def totals(self) -> InvoiceTotals:
        return compute_totals(self.items, self.tax_percentage, self.discount)

    @property
    def is_editing(self) -> bool:
        return self.invoice_id is not None

    def display_total(self) -> str:
        return format_money(self.totals.total_amount, self.currency)

    def missing_required(self) -> List[str]:
        """Fields the API would reject on a final (non-draft) submit, in display order."""
        missing = [
            f"{role}.{name}"
            for role, party in (("sender", self.sender), ("client", self.client))
            for name in ("name", "email")
            if not getattr(party, name)
        ]
        for index, item in enumerate(self.items):
            if item.quantity is None or item.quantity <= 0:
                missing.append(f"items[{index}].quantity")
            if item.rate is not None and item.rate < 0:
                missing.append(f"items[{index}].rate")
        return missing

    def to_payload(self, is_draft: bool) -> Dict[str, Any]:
        """Request body for create/update. Totals are left to the server."""
        return {
            "invoiceNumber": self.invoice_number,
            "isDraft": is_draft,
            "issueDate": self.issue_date.isoformat() if self.issue_date else None,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "sender": {
                "name": self.sender.name,
                "email": self.sender.email,
                "address": self.sender.address,
                "logoImage": self.sender.logo_image,
                "companyName": self.sender.company_name,
            },
            "client": {
                "name": self.client.name,
                "email": self.client.email,
                "address": self.client.address,
            },
            "items": [
                {"description": item.description, "quantity": item.quantity, "rate": item.rate}
                for item in self.items
            ],
            "taxName": self.tax_name,
            "taxPercentage": self.tax_percentage,
            "discount": self.discount,
            "currency": self.currency,
            "paymentTerms": self.payment_terms,
            "notes": self.notes,
            "paymentQr": self.payment_qr,
            "qrCodeImage": self.qr_code_image,
        }

    @classmethod
    def from_invoice(cls, data: Mapping[str, Any]) -> "Draft":
        """Build a draft from an invoice as returned by the API."""
        sender = data.get("sender") or {}
        client = data.get("client") or {}
        items = tuple(
            DraftItem(
                description=item.get("description") or "",
                quantity=item.get("quantity"),
                rate=item.get("rate"),
            )
            for item in data.get("items") or ()
        )
        return cls(
            invoice_number=data.get("invoiceNumber") or new_invoice_number(),
            invoice_id=data.get("id"),
            issue_date=_parse_date(data.get("issueDate")),
            due_date=_parse_date(data.get("dueDate")),
            sender=Sender(
                name=sender.get("name") or "",
                email=sender.get("email") or "",
                address=sender.get("address") or "",
                logo_image=sender.get("logoImage") or "",
                company_name=sender.get("companyName") or "",
            ),
            client=Client(
                name=client.get("name") or "",
                email=client.get("email") or "",
                address=client.get("address") or "",
            ),
            items=items or (DraftItem(),),
            tax_name=data.get("taxName") or "",
            tax_percentage=data.get("taxPercentage") or 0,
            discount=data.get("discount") or 0,
            payment_terms=data.get("paymentTerms") or "",
            notes=data.get("notes") or "",
            payment_qr=data.get("paymentQr") or "",
            qr_code_image=data.get("qrCodeImage") or data.get("qrImageUrl") or "",
            currency=data.get("currency") or "USD",
        )


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(value).date()

# Actions


@dataclass(frozen=True)
class SetField:
    """Set a top-level scalar field (tax, discount, notes, currency, dates, ...)."""
    name: str
    value: Any


@dataclass(frozen=True)
class SetSenderField:
    name: str
    value: Any


@dataclass(frozen=True)
class SetClientField:
    name: str
    value: Any


@dataclass(frozen=True)
class AddItem:
    item: DraftItem = field(default_factory=DraftItem)


@dataclass(frozen=True)
class UpdateItem:
    index: int
    name: str
    value: Any


@dataclass(frozen=True)
class RemoveItem:
    index: int


@dataclass(frozen=True)
class LoadInvoice:
    """Replace the draft with a stored invoice (edit mode)."""
    data: Mapping[str, Any]


@dataclass(frozen=True)
class PrefillSender:
    """Copy the user's saved business details into the sender block."""
    business_details: Mapping[str, Any]


@dataclass(frozen=True)
class Reset:
    pass


_SCALAR_FIELDS = frozenset(
    f.name for f in fields(Draft) if f.name not in ("sender", "client", "items", "invoice_id")
)


def _field_names(cls) -> frozenset:
    return frozenset(f.name for f in fields(cls))


def _check_field(name: str, allowed: frozenset, owner: str) -> None:
    if name not in allowed:
        raise ValueError(f"Unknown {owner} field: {name}")


def reduce(draft: Draft, action: Any) -> Draft:
    """Apply one editor action and return the next draft."""
    if isinstance(action, SetField):
        _check_field(action.name, _SCALAR_FIELDS, "invoice")
        return replace(draft, **{action.name: action.value})

    if isinstance(action, SetSenderField):
        _check_field(action.name, _field_names(Sender), "sender")
        return replace(draft, sender=replace(draft.sender, **{action.name: action.value}))

    if isinstance(action, SetClientField):
        _check_field(action.name, _field_names(Client), "client")
        return replace(draft, client=replace(draft.client, **{action.name: action.value}))

    if isinstance(action, AddItem):
        return replace(draft, items=draft.items + (action.item,))

    if isinstance(action, UpdateItem):
        _check_field(action.name, _field_names(DraftItem), "item")
        if not 0 <= action.index < len(draft.items):
            raise IndexError(f"No item at position {action.index}")
        items = list(draft.items)
        items[action.index] = replace(items[action.index], **{action.name: action.value})
        return replace(draft, items=tuple(items))

    if isinstance(action, RemoveItem):
        # The editor always keeps one row
        if len(draft.items) <= 1 or not 0 <= action.index < len(draft.items):
            return draft
        return replace(draft, items=draft.items[:action.index] + draft.items[action.index + 1:])

    if isinstance(action, LoadInvoice):
        return Draft.from_invoice(action.data)

    if isinstance(action, PrefillSender):
        details = action.business_details
        return replace(draft, sender=Sender(
            name=details.get("name") or "",
            email=details.get("email") or "",
            address=details.get("address") or "",
            logo_image=details.get("logoImage") or details.get("logo") or "",
            company_name=details.get("companyName") or "",
        ))

    if isinstance(action, Reset):
        return Draft()

    raise TypeError(f"Unsupported action: {type(action).__name__}")


__all__ = [
    "Draft",
    "DraftItem",
    "Sender",
    "Client",
    "SetField",
    "SetSenderField",
    "SetClientField",
    "AddItem",
    "UpdateItem",
    "RemoveItem",
    "LoadInvoice",
    "PrefillSender",
    "Reset",
    "reduce",
    "new_invoice_number",
]
