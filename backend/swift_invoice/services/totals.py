"""Invoice totals calculator.

Single source of truth for invoice arithmetic. The API recomputes every stored
invoice through :func:`compute_totals` and the client draft derives its live
preview from the same function, so the two can never disagree.

Rules:
  amount      = quantity * rate            (missing quantity/rate -> 0)
  subtotal    = sum(amount) in item order
  tax_amount  = subtotal * tax_percentage / 100
  total       = subtotal + tax_amount - discount   (not clamped at zero)

No rounding is applied here; two-decimal formatting happens at display time.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class PricedItem:
    description: str
    quantity: float
    rate: float
    amount: float

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "quantity": self.quantity,
            "rate": self.rate,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class InvoiceTotals:
    items: Tuple[PricedItem, ...] = field(default_factory=tuple)
    subtotal: float = 0.0
    tax_amount: float = 0.0
    total_amount: float = 0.0


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _number(value: Optional[float]) -> float:
    return float(value) if value is not None else 0.0


def line_amount(quantity: Optional[float], rate: Optional[float]) -> float:
    return _number(quantity) * _number(rate)


def compute_totals(
    items: Optional[Iterable[Any]],
    tax_percentage: Optional[float] = 0,
    discount: Optional[float] = 0,
) -> InvoiceTotals:
    """Price each item and aggregate subtotal, tax and total.

    `items` may hold mappings or objects exposing description/quantity/rate;
    any caller-supplied `amount` is ignored.
    """
    priced: List[PricedItem] = []
    subtotal = 0.0
    for item in items or ():
        quantity = _number(_field(item, "quantity"))
        rate = _number(_field(item, "rate"))
        amount = quantity * rate
        priced.append(PricedItem(
            description=_field(item, "description") or "",
            quantity=quantity,
            rate=rate,
            amount=amount,
        ))
        subtotal += amount
    tax_amount = subtotal * _number(tax_percentage) / 100
    total_amount = subtotal + tax_amount - _number(discount)
    return InvoiceTotals(
        items=tuple(priced),
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=total_amount,
    )


__all__ = ["PricedItem", "InvoiceTotals", "line_amount", "compute_totals"]
