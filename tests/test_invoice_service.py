"""Tests for InvoiceService generation and download flows."""
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from invoicing.core.exceptions import (
    DuplicateInvoiceError,
    IncompleteOrderData,
    InvoiceNotFound,
    MalformedInvoiceNumber,
    OrderNotFound,
    RenderingError,
    SequenceAllocationError,
)
from invoicing.models.invoice import InvoiceState
from invoicing.models.order import OrderItem
from invoicing.schemas.invoice import TaxSnapshot
from invoicing.services.invoice_service import InvoiceService


class StubRenderer:
    """Renderer that fails a configurable number of times before succeeding."""

    def __init__(self, failures=0):
        self.failures = failures
        self.calls = 0
        self.templates = []

    def render(self, template):
        self.calls += 1
        if self.calls <= self.failures:
            raise OSError("renderer crashed")
        self.templates.append(template)
        return b"%PDF-1.4 stub"


@pytest.fixture
def renderer():
    return StubRenderer()


@pytest.fixture
def service(db, session_factory, test_settings, renderer):
    return InvoiceService(db, session_factory, settings=test_settings, renderer=renderer)


@pytest.fixture
def actor():
    return uuid.uuid4()


@pytest.fixture
def generate(service, db, actor):
    async def _generate(order, year=2026):
        invoice = await service.generate_invoice(order.id, actor, year=year)
        await db.commit()
        return invoice

    return _generate


class TestGenerate:
    async def test_generate_invoice(self, service, generate, make_order, actor):
        order = await make_order()

        invoice = await generate(order)

        assert re.fullmatch(r"INV_[A-Z0-9]{4}_0001", invoice.invoice_number)
        assert invoice.order_id == order.id
        assert invoice.order_number == order.order_number
        assert invoice.generated_by == actor
        assert invoice.state == InvoiceState.GENERATED.value
        assert invoice.download_count == 0
        assert invoice.final_amount == Decimal("1239")

        snapshot = TaxSnapshot.from_storage(invoice.snapshot)
        assert snapshot.pricing.cgst.amount == Decimal("95")
        assert snapshot.pricing.sgst.amount == Decimal("94")

    async def test_sequences_increase_per_invoice(self, generate, make_order):
        first = await generate(await make_order())
        second = await generate(await make_order())

        assert first.invoice_number.endswith("_0001")
        assert second.invoice_number.endswith("_0002")

    async def test_second_generation_rejected(self, service, generate, make_order, actor):
        order = await make_order()
        invoice = await generate(order)

        with pytest.raises(DuplicateInvoiceError) as exc_info:
            await service.generate_invoice(order.id, actor, year=2026)

        assert exc_info.value.existing_invoice_number == invoice.invoice_number
        # No number was consumed by the rejected attempt
        assert await service.allocator.current_sequence(2026) == 1

    async def test_snapshot_unaffected_by_later_order_edits(
        self, service, generate, make_order, session_factory, renderer
    ):
        order = await make_order()
        invoice = await generate(order)

        async with session_factory() as session:
            await session.execute(
                update(OrderItem).where(OrderItem.order_id == order.id).values(unit_price=Decimal("9999"))
            )
            await session.commit()

        stored = await service.get_by_order(order.id)
        assert stored.snapshot == invoice.snapshot
        assert TaxSnapshot.from_storage(stored.snapshot).pricing.final_amount == Decimal("1239")

        await service.download_by_order(order.id)
        assert renderer.templates[0]["final_amount"] == "₹1,239.00"

    async def test_order_not_found(self, service, actor):
        with pytest.raises(OrderNotFound):
            await service.generate_invoice(uuid.uuid4(), actor, year=2026)

    async def test_incomplete_order_consumes_no_number(self, service, make_order, actor):
        order = await make_order(shipping_address=None)

        with pytest.raises(IncompleteOrderData) as exc_info:
            await service.generate_invoice(order.id, actor, year=2026)

        assert "shipping_address" in exc_info.value.missing_fields
        assert await service.allocator.current_sequence(2026) == 0
        assert await service.get_status(order.id) is None

    async def test_sequence_allocation_retried(self, service, generate, make_order, monkeypatch):
        allocate = service.allocator.next_sequence
        calls = []

        async def flaky_next_sequence(year):
            calls.append(year)
            if len(calls) == 1:
                raise SequenceAllocationError("Invoice sequence storage is unavailable", year=year)
            return await allocate(year)

        monkeypatch.setattr(service.allocator, "next_sequence", flaky_next_sequence)

        invoice = await generate(await make_order())

        assert calls == [2026, 2026]
        assert invoice.invoice_number.endswith("_0001")

    async def test_sequence_allocation_gives_up(self, service, make_order, actor, monkeypatch):
        async def broken_next_sequence(year):
            raise SequenceAllocationError("Invoice sequence storage is unavailable", year=year)

        monkeypatch.setattr(service.allocator, "next_sequence", broken_next_sequence)
        order = await make_order()

        with pytest.raises(SequenceAllocationError):
            await service.generate_invoice(order.id, actor, year=2026)

        assert await service.get_status(order.id) is None


class TestLookup:
    async def test_get_by_number(self, service, generate, make_order):
        invoice = await generate(await make_order())

        assert (await service.get_by_number(invoice.invoice_number)).id == invoice.id

    async def test_malformed_number_rejected_before_lookup(self, service):
        with pytest.raises(MalformedInvoiceNumber):
            await service.get_by_number("INV-0001")

    async def test_unknown_number(self, service):
        with pytest.raises(InvoiceNotFound):
            await service.get_by_number("INV_ZZZZ_0001")

    async def test_no_invoice_for_order(self, service, make_order):
        order = await make_order()

        assert await service.get_status(order.id) is None
        with pytest.raises(InvoiceNotFound):
            await service.get_by_order(order.id)

    async def test_list_invoices(self, service, generate, make_order):
        for _ in range(3):
            await generate(await make_order())

        items, total, total_pages = await service.list_invoices(page=1, limit=2)

        assert total == 3
        assert total_pages == 2
        assert len(items) == 2


class TestDownload:
    async def test_download_records_count(self, service, generate, make_order, db):
        invoice = await generate(await make_order())

        for expected in (1, 2, 3):
            downloaded, content = await service.download_by_number(invoice.invoice_number)
            await db.commit()
            assert content == b"%PDF-1.4 stub"
            assert downloaded.download_count == expected

        assert downloaded.state == InvoiceState.DOWNLOADED.value
        assert downloaded.last_downloaded_at is not None

    async def test_render_failure_leaves_invoice_untouched(
        self, db, session_factory, test_settings, generate, make_order
    ):
        renderer = StubRenderer(failures=5)
        service = InvoiceService(db, session_factory, settings=test_settings, renderer=renderer)
        invoice = await generate(await make_order())

        with pytest.raises(RenderingError):
            await service.download_by_order(invoice.order_id)

        assert renderer.calls == test_settings.RENDER_RETRY_ATTEMPTS == 2
        assert invoice.download_count == 0
        assert invoice.state == InvoiceState.GENERATED.value
        assert invoice.last_downloaded_at is None

    async def test_transient_render_failure_retried(
        self, db, session_factory, test_settings, generate, make_order
    ):
        renderer = StubRenderer(failures=1)
        service = InvoiceService(db, session_factory, settings=test_settings, renderer=renderer)
        invoice = await generate(await make_order())

        _, content = await service.download_by_order(invoice.order_id)

        assert content == b"%PDF-1.4 stub"
        assert renderer.calls == 2
        assert invoice.download_count == 1
        assert invoice.state == InvoiceState.DOWNLOADED.value

    async def test_overlapping_downloads_are_all_counted(
        self, generate, make_order, session_factory, test_settings
    ):
        invoice = await generate(await make_order())
        number = invoice.invoice_number

        async with session_factory() as first, session_factory() as second:
            first_service = InvoiceService(first, session_factory, settings=test_settings, renderer=StubRenderer())
            second_service = InvoiceService(second, session_factory, settings=test_settings, renderer=StubRenderer())

            # Both requests load the invoice before either records its download
            await first_service.get_by_number(number)
            await second_service.get_by_number(number)

            await first_service.download_by_number(number)
            await first.commit()
            downloaded, _ = await second_service.download_by_number(number)
            await second.commit()

        assert downloaded.download_count == 2

        async with session_factory() as session:
            stored = await InvoiceService(session, session_factory, settings=test_settings).get_by_number(number)
            assert stored.download_count == 2
            assert stored.state == InvoiceState.DOWNLOADED.value


class TestSequence:
    async def test_preview_does_not_consume(self, service, generate, make_order):
        assert (await service.preview_invoice_number(2026)).endswith("_0001")
        assert (await service.preview_invoice_number(2026)).endswith("_0001")

        await generate(await make_order())

        assert (await service.preview_invoice_number(2026)).endswith("_0002")

    async def test_sequence_info(self, service, generate, make_order):
        await generate(await make_order())

        info = await service.sequence_info(2026)

        assert info["year"] == 2026
        assert info["current_sequence"] == 1
        assert info["next_invoice_number_preview"].endswith("_0002")
        assert await service.allocator.current_sequence(2027) == 0


class TestNumberingYear:
    def test_year_follows_business_timezone(self, service):
        # 05:00 IST on 1 January is still 31 December in UTC
        moment = datetime(2025, 12, 31, 23, 30, tzinfo=timezone.utc)
        assert service.numbering_year(moment) == 2026

    def test_utc_business_timezone(self, db, session_factory, test_settings):
        settings = test_settings.model_copy(update={"BUSINESS_TIMEZONE": "UTC"})
        service = InvoiceService(db, session_factory, settings=settings)

        assert service.numbering_year(datetime(2025, 12, 31, 23, 30, tzinfo=timezone.utc)) == 2025

    async def test_default_year_used_for_sequence(self, service, db, make_order, actor):
        order = await make_order()

        await service.generate_invoice(order.id, actor)
        await db.commit()

        year = service.numbering_year(datetime.now(timezone.utc))
        assert await service.allocator.current_sequence(year) == 1
