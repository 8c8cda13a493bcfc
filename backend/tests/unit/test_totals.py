import pytest

from swift_invoice.client.draft import DraftItem
from swift_invoice.services.totals import compute_totals, line_amount

pytestmark = [pytest.mark.unit]


def test_compute_totals_example_invoice():
    totals = compute_totals(
        [
            {"description": "Design work", "quantity": 2, "rate": 100},
            {"description": "Hosting", "quantity": 1, "rate": 50},
        ],
        tax_percentage=10,
        discount=20,
    )
    assert [item.amount for item in totals.items] == [200, 50]
    assert totals.subtotal == 250
    assert totals.tax_amount == 25
    assert totals.total_amount == 255


def test_submitted_amount_is_ignored():
    totals = compute_totals([{"description": "x", "quantity": 3, "rate": 5, "amount": 9999}])
    assert totals.items[0].amount == 15
    assert totals.subtotal == 15


def test_item_order_does_not_change_aggregates():
    items = [
        {"quantity": 2, "rate": 100},
        {"quantity": 1, "rate": 50},
        {"quantity": 4, "rate": 12.5},
    ]
    forward = compute_totals(items, 18, 5)
    backward = compute_totals(list(reversed(items)), 18, 5)
    assert forward.subtotal == backward.subtotal
    assert forward.total_amount == backward.total_amount


def test_missing_quantity_or_rate_counts_as_zero():
    totals = compute_totals([
        {"description": "no qty", "rate": 40},
        {"description": "no rate", "quantity": 3},
        {"description": "both None", "quantity": None, "rate": None},
    ])
    assert [item.amount for item in totals.items] == [0, 0, 0]
    assert totals.subtotal == 0
    assert totals.total_amount == 0


def test_empty_items_and_missing_tax_discount():
    totals = compute_totals(None, None, None)
    assert totals.items == ()
    assert totals.subtotal == 0
    assert totals.tax_amount == 0
    assert totals.total_amount == 0


def test_discount_can_drive_total_negative():
    totals = compute_totals([{"quantity": 1, "rate": 50}], 0, 80)
    assert totals.total_amount == -30


def test_no_rounding_is_applied():
    totals = compute_totals([{"quantity": 3, "rate": 0.1}], tax_percentage=7)
    assert totals.subtotal == 3 * 0.1
    assert totals.tax_amount == (3 * 0.1) * 7 / 100


def test_accepts_objects_with_attributes():
    totals = compute_totals((DraftItem("a", 2, 3), DraftItem("b", 1, 4)))
    assert totals.subtotal == 10
    assert totals.items[0].to_dict() == {"description": "a", "quantity": 2, "rate": 3, "amount": 6}


def test_line_amount():
    assert line_amount(2.5, 4) == 10
    assert line_amount(None, 4) == 0
