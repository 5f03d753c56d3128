"""Tests for the admin invoice endpoints."""
import re
import uuid
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest


API = "/api/v1/admin"

ALL_PERMISSIONS = ("invoices.generate", "invoices.view", "invoices.download", "invoices.manage")


@pytest.fixture
def admin_headers(headers):
    return headers(*ALL_PERMISSIONS)


@pytest.fixture
def generate(client, admin_headers):
    async def _generate(order):
        response = await client.post(f"{API}/invoice/{order.id}/generate", headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()["invoice"]

    return _generate


class TestAuth:
    async def test_missing_token(self, client):
        response = await client.get(f"{API}/invoices")
        assert response.status_code in (401, 403)

    async def test_invalid_token(self, client):
        response = await client.get(f"{API}/invoices", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    async def test_missing_permission(self, client, headers, make_order):
        order = await make_order()

        response = await client.post(
            f"{API}/invoice/{order.id}/generate",
            headers=headers("invoices.view"),
        )

        assert response.status_code == 403

    async def test_wildcard_permission(self, client, headers):
        response = await client.get(f"{API}/invoices", headers=headers("*"))
        assert response.status_code == 200


class TestGenerate:
    async def test_generate(self, client, headers, make_order):
        order = await make_order()
        admin_id = uuid.uuid4()

        response = await client.post(
            f"{API}/invoice/{order.id}/generate",
            headers=headers("invoices.generate", admin_id=admin_id),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        invoice = body["invoice"]
        assert re.fullmatch(r"INV_[A-Z0-9]{4}_[0-9]{4,}", invoice["invoice_number"])
        assert invoice["order_id"] == str(order.id)
        assert invoice["generated_by"] == str(admin_id)
        assert invoice["state"] == "GENERATED"
        assert invoice["download_count"] == 0
        assert invoice["customer_name"] == "Priya Sharma"

    async def test_generate_twice_conflicts(self, client, admin_headers, generate, make_order):
        order = await make_order()
        invoice = await generate(order)

        response = await client.post(f"{API}/invoice/{order.id}/generate", headers=admin_headers)

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "DUPLICATE_INVOICE"
        assert body["existing_invoice_number"] == invoice["invoice_number"]

    async def test_unknown_order(self, client, admin_headers):
        response = await client.post(f"{API}/invoice/{uuid.uuid4()}/generate", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "ORDER_NOT_FOUND"

    async def test_incomplete_order(self, client, admin_headers, make_order):
        order = await make_order(shipping_address=None)

        response = await client.post(f"{API}/invoice/{order.id}/generate", headers=admin_headers)

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "INCOMPLETE_ORDER_DATA"
        assert body["missing_fields"] == ["shipping_address"]

    async def test_invalid_order_id(self, client, admin_headers):
        response = await client.post(f"{API}/invoice/not-a-uuid/generate", headers=admin_headers)
        assert response.status_code == 422


class TestLookup:
    async def test_status_without_invoice(self, client, admin_headers, make_order):
        order = await make_order()

        response = await client.get(f"{API}/invoice/{order.id}/status", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["exists"] is False
        assert response.json()["invoice"] is None

    async def test_status_with_invoice(self, client, admin_headers, generate, make_order):
        order = await make_order()
        invoice = await generate(order)

        response = await client.get(f"{API}/invoice/{order.id}/status", headers=admin_headers)

        body = response.json()
        assert body["exists"] is True
        assert body["invoice"]["invoice_number"] == invoice["invoice_number"]
        assert body["invoice"]["state"] == "GENERATED"

    async def test_details_by_number(self, client, admin_headers, generate, make_order):
        invoice = await generate(await make_order())

        response = await client.get(
            f"{API}/invoice/details/{invoice['invoice_number']}",
            headers=admin_headers,
        )

        assert response.status_code == 200
        detail = response.json()["invoice"]
        assert detail["id"] == invoice["id"]
        pricing = detail["snapshot"]["pricing"]
        assert pricing["supply_type"] == "INTRA_STATE"
        assert pricing["final_amount"] == "1239"
        assert pricing["cgst"]["amount"] == "95"
        assert pricing["sgst"]["amount"] == "94"
        assert detail["snapshot"]["business"]["gstin"] == "27ABCDE1234F1Z5"

    async def test_details_by_order(self, client, admin_headers, generate, make_order):
        order = await make_order()
        invoice = await generate(order)

        response = await client.get(f"{API}/invoice/{order.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["invoice"]["invoice_number"] == invoice["invoice_number"]

    async def test_details_by_order_without_invoice(self, client, admin_headers, make_order):
        order = await make_order()

        response = await client.get(f"{API}/invoice/{order.id}", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "INVOICE_NOT_FOUND"

    async def test_malformed_number(self, client, admin_headers):
        response = await client.get(f"{API}/invoice/details/INV-K7Q2-0001", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "MALFORMED_INVOICE_NUMBER"

    async def test_unknown_number(self, client, admin_headers):
        response = await client.get(f"{API}/invoice/details/INV_ZZZZ_0001", headers=admin_headers)
        assert response.status_code == 404


class TestDownload:
    async def test_download_by_order(self, client, admin_headers, generate, make_order):
        order = await make_order()
        invoice = await generate(order)

        response = await client.get(f"{API}/invoice/{order.id}/download", headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == (
            f'attachment; filename="Invoice_{invoice["invoice_number"]}.pdf"'
        )
        assert response.content.startswith(b"%PDF")

    async def test_download_by_number_counts(self, client, admin_headers, generate, make_order):
        order = await make_order()
        invoice = await generate(order)
        number = invoice["invoice_number"]

        for _ in range(2):
            response = await client.get(f"{API}/invoice/pdf/{number}", headers=admin_headers)
            assert response.status_code == 200

        status_response = await client.get(f"{API}/invoice/{order.id}", headers=admin_headers)
        detail = status_response.json()["invoice"]
        assert detail["download_count"] == 2
        assert detail["state"] == "DOWNLOADED"
        assert detail["last_downloaded_at"] is not None

    async def test_download_requires_permission(self, client, headers, generate, make_order):
        order = await make_order()
        await generate(order)

        response = await client.get(
            f"{API}/invoice/{order.id}/download",
            headers=headers("invoices.view"),
        )

        assert response.status_code == 403

    async def test_download_malformed_number(self, client, admin_headers):
        response = await client.get(f"{API}/invoice/pdf/nope", headers=admin_headers)
        assert response.status_code == 400


class TestList:
    async def test_list(self, client, admin_headers, generate, make_order):
        numbers = [
            (await generate(await make_order(customer_name=name)))["invoice_number"]
            for name in ("Priya Sharma", "Rahul Verma", "Anita Rao")
        ]

        response = await client.get(f"{API}/invoices", params={"limit": 2}, headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["total_pages"] == 2
        assert body["page"] == 1
        assert len(body["items"]) == 2
        assert {item["invoice_number"] for item in body["items"]} <= set(numbers)

    async def test_list_filters(self, client, admin_headers, generate, make_order):
        first = await generate(await make_order(customer_name="Priya Sharma"))
        await generate(await make_order(customer_name="Rahul Verma"))
        await client.get(f"{API}/invoice/pdf/{first['invoice_number']}", headers=admin_headers)

        downloaded = await client.get(
            f"{API}/invoices", params={"status": "DOWNLOADED"}, headers=admin_headers
        )
        assert [i["invoice_number"] for i in downloaded.json()["items"]] == [first["invoice_number"]]

        searched = await client.get(f"{API}/invoices", params={"search": "rahul"}, headers=admin_headers)
        assert [i["customer_name"] for i in searched.json()["items"]] == ["Rahul Verma"]

        today = datetime.now(timezone.utc).date().isoformat()
        dated = await client.get(
            f"{API}/invoices",
            params={"start_date": today, "end_date": today},
            headers=admin_headers,
        )
        assert dated.json()["total"] == 2

        past = await client.get(
            f"{API}/invoices",
            params={"start_date": "2020-01-01", "end_date": "2020-12-31"},
            headers=admin_headers,
        )
        assert past.json()["total"] == 0

    async def test_list_rejects_unknown_status(self, client, admin_headers):
        response = await client.get(f"{API}/invoices", params={"status": "PAID"}, headers=admin_headers)
        assert response.status_code == 422

    async def test_list_requires_manage_permission(self, client, headers):
        response = await client.get(f"{API}/invoices", headers=headers("invoices.view"))
        assert response.status_code == 403


class TestSequence:
    async def test_sequence_info(self, client, admin_headers, generate, make_order, test_settings):
        year = datetime.now(ZoneInfo(test_settings.BUSINESS_TIMEZONE)).year

        empty = await client.get(f"{API}/invoice-sequence/{year}", headers=admin_headers)
        assert empty.json()["current_sequence"] == 0
        assert empty.json()["next_invoice_number_preview"].endswith("_0001")

        await generate(await make_order())

        response = await client.get(f"{API}/invoice-sequence/{year}", headers=admin_headers)
        body = response.json()
        assert response.status_code == 200
        assert body["year"] == year
        assert body["current_sequence"] == 1
        assert body["next_invoice_number_preview"].endswith("_0002")

    @pytest.mark.parametrize("year", ["0", "10000", "abcd"])
    async def test_invalid_year(self, client, admin_headers, year):
        response = await client.get(f"{API}/invoice-sequence/{year}", headers=admin_headers)
        assert response.status_code == 422
