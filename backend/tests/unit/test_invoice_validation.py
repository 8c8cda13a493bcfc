import pytest

from swift_invoice.services.invoice_service import validate_final_invoice
from swift_invoice.utils.errors import InvoiceValidationError

pytestmark = [pytest.mark.unit]


def _payload(**overrides):
    payload = {
        "sender": {"name": "Ada", "email": "ada@example.com"},
        "client": {"name": "Charles", "email": "charles@example.com"},
        "items": [{"description": "Work", "quantity": 1, "rate": 10}],
    }
    payload.update(overrides)
    return payload


def test_valid_payload_passes():
    validate_final_invoice(_payload())


def test_rate_zero_is_accepted():
    validate_final_invoice(_payload(items=[{"quantity": 1, "rate": 0}]))


@pytest.mark.parametrize("items,message", [
    ([], "Invoice must have at least one item"),
    (None, "Invoice must have at least one item"),
    ([{"quantity": 0, "rate": 10}], "Item quantity must be greater than 0"),
    ([{"quantity": -1, "rate": 10}], "Item quantity must be greater than 0"),
    ([{"quantity": None, "rate": 10}], "Item quantity must be greater than 0"),
    ([{"quantity": 1, "rate": -1}], "Item rate cannot be negative"),
    ([{"quantity": 1, "rate": 5}, {"quantity": 2, "rate": -0.01}], "Item rate cannot be negative"),
])
def test_item_rules(items, message):
    with pytest.raises(InvoiceValidationError) as exc_info:
        validate_final_invoice(_payload(items=items))
    assert exc_info.value.message == message


def test_party_name_and_email_required():
    with pytest.raises(InvoiceValidationError, match="Sender name and email are required"):
        validate_final_invoice(_payload(sender={"name": "Ada"}))
    with pytest.raises(InvoiceValidationError, match="Client name and email are required"):
        validate_final_invoice(_payload(client=None))
