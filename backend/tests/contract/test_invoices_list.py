import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.contract]


@pytest.mark.asyncio
async def test_list_is_empty_for_new_user(auth_client: AsyncClient):
    resp = await auth_client.get("/api/v1/invoices")
    assert resp.status_code == 200
    body = resp.json()
    assert body["data"] == []
    assert body["meta"] == {"total": 0}


@pytest.mark.asyncio
async def test_list_orders_by_most_recent_update(auth_client: AsyncClient, create_invoice, invoice_payload):
    first = await create_invoice(auth_client, invoiceNumber="INV-10001")
    second = await create_invoice(auth_client, invoiceNumber="INV-10002")
    third = await create_invoice(auth_client, invoiceNumber="INV-10003")

    numbers = [inv["invoiceNumber"] for inv in (await auth_client.get("/api/v1/invoices")).json()["data"]]
    assert numbers == ["INV-10003", "INV-10002", "INV-10001"]

    await auth_client.put(f"/api/v1/invoices/{first['id']}", json={**invoice_payload, "notes": "edited"})
    await auth_client.patch(f"/api/v1/invoices/{second['id']}/status", json={"status": "paid"})

    body = (await auth_client.get("/api/v1/invoices")).json()
    assert [inv["id"] for inv in body["data"]] == [second["id"], first["id"], third["id"]]
    assert body["meta"]["total"] == 3


@pytest.mark.asyncio
async def test_list_is_scoped_to_caller(auth_client: AsyncClient, other_client: AsyncClient, create_invoice):
    mine = await create_invoice(auth_client)
    theirs = await create_invoice(other_client)

    my_ids = [inv["id"] for inv in (await auth_client.get("/api/v1/invoices")).json()["data"]]
    their_ids = [inv["id"] for inv in (await other_client.get("/api/v1/invoices")).json()["data"]]
    assert my_ids == [mine["id"]]
    assert their_ids == [theirs["id"]]


@pytest.mark.asyncio
async def test_list_filters_by_status(auth_client: AsyncClient, create_invoice):
    paid = await create_invoice(auth_client)
    await create_invoice(auth_client)
    await auth_client.patch(f"/api/v1/invoices/{paid['id']}/status", json={"status": "paid"})

    resp = await auth_client.get("/api/v1/invoices", params={"status": "paid"})
    assert [inv["id"] for inv in resp.json()["data"]] == [paid["id"]]

    bad = await auth_client.get("/api/v1/invoices", params={"status": "archived"})
    assert bad.status_code == 422


@pytest.mark.asyncio
async def test_list_search_matches_number_or_client(auth_client: AsyncClient, create_invoice, invoice_payload):
    babbage = await create_invoice(auth_client, invoiceNumber="INV-40001")
    hopper = await create_invoice(auth_client, invoiceNumber="INV-40002",
                                  client={"name": "Grace Hopper", "email": "grace@navy.example"})

    by_client = await auth_client.get("/api/v1/invoices", params={"search": "hopper"})
    assert [inv["id"] for inv in by_client.json()["data"]] == [hopper["id"]]

    by_number = await auth_client.get("/api/v1/invoices", params={"search": "inv-40001"})
    assert [inv["id"] for inv in by_number.json()["data"]] == [babbage["id"]]

    blank = await auth_client.get("/api/v1/invoices", params={"search": "   "})
    assert len(blank.json()["data"]) == 2


@pytest.mark.asyncio
async def test_list_requires_authentication(anon_client: AsyncClient):
    resp = await anon_client.get("/api/v1/invoices")
    assert resp.status_code == 401
