from uuid import uuid4

import pytest
from httpx import ASGITransport

from swift_invoice.client import ApiError, Draft, InvoiceApiClient, reduce
from swift_invoice.client.draft import (
    AddItem,
    DraftItem,
    LoadInvoice,
    PrefillSender,
    SetClientField,
    SetField,
    UpdateItem,
)
from swift_invoice.main import app

pytestmark = [pytest.mark.integration]


def _api() -> InvoiceApiClient:
    return InvoiceApiClient(base_url="http://test", transport=ASGITransport(app=app))


@pytest.mark.asyncio
async def test_editor_round_trip(fake_pdf):
    async with _api() as api:
        user = await api.register(
            f"ada-{uuid4().hex[:8]}@example.com", "secure_password", "Ada Lovelace",
            business_details={"name": "Ada Lovelace", "email": "ada@engines.example",
                              "companyName": "Analytical Engines"},
        )
        draft = reduce(Draft(), PrefillSender(user["businessDetails"]))
        draft = reduce(draft, SetClientField("name", "Charles Babbage"))
        assert draft.sender.company_name == "Analytical Engines"

        saved = await api.save_draft(draft)
        assert saved["isDraft"] is True
        assert saved["invoiceNumber"] == draft.invoice_number
        assert saved["totalAmount"] == draft.totals.total_amount

        draft = reduce(draft, LoadInvoice(saved))
        assert draft.is_editing
        draft = reduce(draft, SetClientField("email", "charles@difference.example"))
        draft = reduce(draft, UpdateItem(0, "description", "Design work"))
        draft = reduce(draft, UpdateItem(0, "quantity", 2))
        draft = reduce(draft, UpdateItem(0, "rate", 100))
        draft = reduce(draft, AddItem(DraftItem("Hosting", 1, 50)))
        draft = reduce(draft, SetField("tax_percentage", 10))
        draft = reduce(draft, SetField("discount", 20))

        submitted = await api.submit(draft)
        assert submitted["id"] == saved["id"]
        assert submitted["isDraft"] is False
        assert submitted["subtotal"] == draft.totals.subtotal == 250
        assert submitted["totalAmount"] == draft.totals.total_amount == 255

        listed = await api.list_invoices()
        assert [inv["id"] for inv in listed] == [saved["id"]]

        paid = await api.set_status(saved["id"], "paid")
        assert paid["status"] == "paid"
        assert [inv["id"] for inv in await api.list_invoices(status="paid")] == [saved["id"]]

        assert await api.download_pdf(saved["id"]) == b"%PDF-1.4 fake"
        assert fake_pdf == [draft.invoice_number]

        removed = await api.delete_invoice(saved["id"])
        assert removed == {"message": "Invoice removed"}
        with pytest.raises(ApiError) as exc_info:
            await api.get_invoice(saved["id"])
        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "INVOICE_NOT_FOUND"


@pytest.mark.asyncio
async def test_submit_surfaces_validation_errors():
    async with _api() as api:
        await api.register(f"v-{uuid4().hex[:8]}@example.com", "secure_password", "Val")
        draft = reduce(Draft(), SetClientField("name", "No Email"))
        with pytest.raises(ApiError) as exc_info:
            await api.submit(draft)
        assert exc_info.value.status_code == 422
        assert exc_info.value.code == "VALIDATION_ERROR"
        assert await api.list_invoices() == []


@pytest.mark.asyncio
async def test_login_and_profile():
    email = f"login-{uuid4().hex[:8]}@example.com"
    async with _api() as api:
        await api.register(email, "secure_password", "Login User")
    async with _api() as api:
        with pytest.raises(ApiError) as exc_info:
            await api.me()
        assert exc_info.value.code == "AUTH_INVALID_CREDENTIALS"
        user = await api.login(email, "secure_password")
        assert user["email"] == email
        updated = await api.update_business_details({"companyName": "Login Co"})
        assert updated["businessDetails"]["companyName"] == "Login Co"
        assert (await api.me())["businessDetails"]["companyName"] == "Login Co"
