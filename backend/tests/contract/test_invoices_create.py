import re

import pytest
from httpx import AsyncClient
from fastapi import status

from swift_invoice.utils.errors import ERROR_CODES

pytestmark = [pytest.mark.contract]


async def _post(client: AsyncClient, payload):
    return await client.post("/api/v1/invoices", json=payload)


@pytest.mark.asyncio
async def test_create_recomputes_totals(auth_client: AsyncClient, invoice_payload):
    payload = dict(invoice_payload)
    # Client-side aggregates are advisory and must be ignored
    payload.update({"subtotal": 1, "taxAmount": 1, "totalAmount": 1})
    payload["items"] = [dict(item, amount=12345) for item in payload["items"]]
    resp = await _post(auth_client, payload)
    assert resp.status_code == status.HTTP_201_CREATED, resp.text
    body = resp.json()
    assert body["status"] == "success"
    data = body["data"]
    assert data["id"]
    assert [item["amount"] for item in data["items"]] == [200, 50]
    assert data["subtotal"] == 250
    assert data["taxAmount"] == 25
    assert data["totalAmount"] == 255
    assert data["status"] == "pending"
    assert data["isDraft"] is False
    assert data["ownerId"] == auth_client.user["id"]
    assert re.fullmatch(r"INV-\d{5}", data["invoiceNumber"])
    assert data["issueDate"].startswith("2026-01-15")
    assert data["dueDate"].startswith("2026-02-14")
    assert data["sender"]["companyName"] == "Analytical Engines Ltd"
    assert data["qrImageUrl"] is None


@pytest.mark.asyncio
async def test_create_keeps_requested_invoice_number(auth_client: AsyncClient, invoice_payload):
    resp = await _post(auth_client, {**invoice_payload, "invoiceNumber": "INV-77777"})
    assert resp.status_code == 201
    assert resp.json()["data"]["invoiceNumber"] == "INV-77777"

    dup = await _post(auth_client, {**invoice_payload, "invoiceNumber": "INV-77777"})
    assert dup.status_code == 422
    assert dup.json()["error"]["code"] == ERROR_CODES["validation"]


@pytest.mark.asyncio
async def test_full_precision_is_stored(auth_client: AsyncClient, invoice_payload):
    payload = {**invoice_payload, "items": [{"description": "x", "quantity": 3, "rate": 0.1}],
               "taxPercentage": 0, "discount": 0}
    data = (await _post(auth_client, payload)).json()["data"]
    assert data["subtotal"] == 3 * 0.1
    assert data["totalAmount"] == 3 * 0.1


@pytest.mark.asyncio
async def test_discount_may_make_total_negative(auth_client: AsyncClient, invoice_payload):
    data = (await _post(auth_client, {**invoice_payload, "discount": 300})).json()["data"]
    assert data["totalAmount"] == -25


@pytest.mark.asyncio
async def test_currency_defaults_when_omitted(auth_client: AsyncClient, invoice_payload):
    payload = dict(invoice_payload)
    payload.pop("currency")
    data = (await _post(auth_client, payload)).json()["data"]
    assert data["currency"] == "USD"


@pytest.mark.asyncio
async def test_non_draft_requires_items(auth_client: AsyncClient, invoice_payload):
    resp = await _post(auth_client, {**invoice_payload, "items": []})
    assert resp.status_code == 422
    err = resp.json()["error"]
    assert err["code"] == ERROR_CODES["validation"]
    assert err["message"] == "Invoice must have at least one item"


@pytest.mark.asyncio
async def test_draft_with_no_items_is_accepted(auth_client: AsyncClient):
    resp = await _post(auth_client, {"isDraft": True, "items": []})
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["isDraft"] is True
    assert data["items"] == []
    assert data["subtotal"] == 0
    assert data["totalAmount"] == 0


@pytest.mark.asyncio
async def test_draft_with_partial_items_gets_totals(auth_client: AsyncClient):
    resp = await _post(auth_client, {"isDraft": True, "items": [
        {"description": "tbd", "quantity": 0, "rate": 10},
        {"description": "half", "rate": 10},
        {"description": "ok", "quantity": 2, "rate": 10},
    ]})
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert [item["amount"] for item in data["items"]] == [0, 0, 20]
    assert data["subtotal"] == 20


@pytest.mark.asyncio
@pytest.mark.parametrize("item,message", [
    ({"description": "zero", "quantity": 0, "rate": 10}, "Item quantity must be greater than 0"),
    ({"description": "negative", "quantity": -1, "rate": 10}, "Item quantity must be greater than 0"),
    ({"description": "refund", "quantity": 1, "rate": -1}, "Item rate cannot be negative"),
])
async def test_non_draft_item_rules(auth_client: AsyncClient, invoice_payload, item, message):
    resp = await _post(auth_client, {**invoice_payload, "items": [item]})
    assert resp.status_code == 422, resp.text
    assert resp.json()["error"]["message"] == message


@pytest.mark.asyncio
async def test_rate_zero_is_accepted(auth_client: AsyncClient, invoice_payload):
    resp = await _post(auth_client, {**invoice_payload, "items": [
        {"description": "free", "quantity": 1, "rate": 0}], "discount": 0})
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["subtotal"] == 0
    assert data["totalAmount"] == 0


@pytest.mark.asyncio
async def test_non_draft_requires_client_contact(auth_client: AsyncClient, invoice_payload):
    resp = await _post(auth_client, {**invoice_payload, "client": {"name": "No Email"}})
    assert resp.status_code == 422
    assert resp.json()["error"]["message"] == "Client name and email are required"


@pytest.mark.asyncio
async def test_malformed_body_is_validation_error(auth_client: AsyncClient, invoice_payload):
    resp = await _post(auth_client, {**invoice_payload, "items": [{"quantity": "lots", "rate": 1}]})
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["path"] == "/api/v1/invoices"


@pytest.mark.asyncio
async def test_create_requires_authentication(anon_client: AsyncClient, invoice_payload):
    resp = await _post(anon_client, invoice_payload)
    assert resp.status_code == status.HTTP_401_UNAUTHORIZED
    assert resp.json()["error"]["code"] == "AUTH_INVALID_CREDENTIALS"
