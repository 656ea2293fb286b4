"""
Unit tests for invoicing/services/invoice_view.py

Tests: compute_stats, filter_invoices, InvoiceCollectionView load /
apply_event / remove.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from invoicing.exceptions import PersistenceError
from invoicing.services.change_feed import Deleted, Inserted, Updated
from invoicing.services.invoice_view import (
    InvoiceCollectionView,
    InvoiceStats,
    compute_stats,
    filter_invoices,
)
from tests.factories import USER_ID, make_invoice


def _mock_store(invoices=()) -> MagicMock:
    store = MagicMock()
    store.list_invoices = AsyncMock(return_value=list(invoices))
    store.delete_invoice = AsyncMock(return_value=None)
    return store


# ---------------------------------------------------------------------------
# compute_stats
# ---------------------------------------------------------------------------

def test_stats_fold_over_all_statuses():
    invoices = [
        make_invoice(status="paid", total_amount=100),
        make_invoice(status="sent", total_amount=50),
        make_invoice(status="overdue", total_amount=30),
        make_invoice(status="draft", total_amount=10),
    ]
    assert compute_stats(invoices) == InvoiceStats(total=4, paid=100, pending=50, overdue=1)


def test_stats_empty():
    assert compute_stats([]) == InvoiceStats(total=0, paid=0, pending=0, overdue=0)


def test_stats_unknown_status_counts_toward_total_only():
    stats = compute_stats([make_invoice(status="cancelled", total_amount=500)])
    assert (stats.total, stats.paid, stats.pending, stats.overdue) == (1, 0, 0, 0)


def test_stats_to_response():
    response = InvoiceStats(total=2, paid=10.5, pending=0, overdue=1).to_response()
    assert response.model_dump() == {"total": 2, "paid": 10.5, "pending": 0, "overdue": 1}


# ---------------------------------------------------------------------------
# filter_invoices
# ---------------------------------------------------------------------------

class TestFilter:
    def setup_method(self):
        self.abena = make_invoice(
            status="paid", customer_name="Abena Boateng", invoice_id="ABCD1234-0000-0000-0000-000000000000"
        )
        self.kwame = make_invoice(
            status="sent", customer_name="Kwame Asante", invoice_id="ffff0000-0000-0000-0000-000000000000"
        )
        self.invoices = [self.abena, self.kwame]

    def test_empty_search_and_all_returns_everything(self):
        assert filter_invoices(self.invoices) == self.invoices

    def test_search_by_customer_name_case_insensitive(self):
        assert filter_invoices(self.invoices, "kWaMe") == [self.kwame]

    def test_search_by_id_substring_case_insensitive(self):
        assert filter_invoices(self.invoices, "abcd12", "all") == [self.abena]

    def test_status_filter_alone(self):
        assert filter_invoices(self.invoices, "", "sent") == [self.kwame]

    def test_search_and_status_must_both_hold(self):
        assert filter_invoices(self.invoices, "abcd12", "sent") == []
        assert filter_invoices(self.invoices, "abcd12", "paid") == [self.abena]

    def test_none_arguments_behave_like_defaults(self):
        assert filter_invoices(self.invoices, None, None) == self.invoices


# ---------------------------------------------------------------------------
# InvoiceCollectionView
# ---------------------------------------------------------------------------

class TestCollectionView:
    @pytest.mark.asyncio
    async def test_load_uses_store_order_and_computes_stats(self):
        newest = make_invoice(status="paid", total_amount=20)
        older = make_invoice(status="sent", total_amount=5)
        store = _mock_store([newest, older])

        view = await InvoiceCollectionView.load(USER_ID, store)

        store.list_invoices.assert_awaited_once_with(USER_ID)
        assert [inv.id for inv in view.items] == [newest.id, older.id]
        assert (view.stats.paid, view.stats.pending) == (20, 5)

    def test_inserted_event_goes_to_front(self):
        existing = make_invoice()
        view = InvoiceCollectionView(USER_ID, [existing])
        created = make_invoice(status="paid", total_amount=70)

        view.apply_event(Inserted(created))

        assert [inv.id for inv in view.items] == [created.id, existing.id]
        assert view.stats.total == 2
        assert view.stats.paid == 70

    def test_updated_event_replaces_in_place(self):
        first = make_invoice(status="sent", total_amount=40)
        second = make_invoice()
        view = InvoiceCollectionView(USER_ID, [first, second])

        paid = first.model_copy(update={"status": "paid"})
        view.apply_event(Updated(paid))

        assert [inv.id for inv in view.items] == [first.id, second.id]
        assert view.get(first.id).status == "paid"
        assert view.stats.paid == 40

    def test_updated_event_for_unknown_invoice_inserts_it(self):
        view = InvoiceCollectionView(USER_ID, [])
        invoice = make_invoice()
        view.apply_event(Updated(invoice))
        assert len(view) == 1

    def test_unknown_invoice_is_placed_by_created_at(self):
        newest = make_invoice(created_at="2026-03-03T08:00:00")
        oldest = make_invoice(created_at="2026-03-01T08:00:00")
        view = InvoiceCollectionView(USER_ID, [newest, oldest])

        middle = make_invoice(created_at="2026-03-02T08:00:00")
        view.apply_event(Updated(middle))
        ancient = make_invoice(created_at="2025-12-31T23:59:59")
        view.apply_event(Updated(ancient))

        assert [inv.id for inv in view.items] == [newest.id, middle.id, oldest.id, ancient.id]

    def test_deleted_event_removes_and_recomputes(self):
        gone = make_invoice(status="overdue")
        kept = make_invoice(status="sent", total_amount=12)
        view = InvoiceCollectionView(USER_ID, [gone, kept])

        view.apply_event(Deleted(gone))

        assert [inv.id for inv in view.items] == [kept.id]
        assert view.stats.overdue == 0
        assert view.stats.pending == 12

    def test_replayed_insert_is_idempotent(self):
        invoice = make_invoice()
        view = InvoiceCollectionView(USER_ID, [invoice])
        view.apply_event(Inserted(invoice))
        assert len(view) == 1

    def test_recent_limits(self):
        invoices = [make_invoice() for _ in range(7)]
        view = InvoiceCollectionView(USER_ID, invoices)
        assert view.recent() == invoices[:5]

    @pytest.mark.asyncio
    async def test_remove_success_drops_invoice(self):
        target = make_invoice(status="paid", total_amount=9)
        view = InvoiceCollectionView(USER_ID, [target])
        store = _mock_store()

        result = await view.remove(target.id, store)

        assert result.success is True
        store.delete_invoice.assert_awaited_once_with(target.id, USER_ID)
        assert len(view) == 0
        assert view.stats.paid == 0

    @pytest.mark.asyncio
    async def test_remove_failure_leaves_set_unchanged(self):
        target = make_invoice()
        other = make_invoice()
        view = InvoiceCollectionView(USER_ID, [target, other])
        store = _mock_store()
        store.delete_invoice.side_effect = PersistenceError("Error deleting invoice")

        result = await view.remove(target.id, store)

        assert result.success is False
        assert result.error == "Error deleting invoice"
        assert [inv.id for inv in view.items] == [target.id, other.id]
        assert view.stats.total == 2

    @pytest.mark.asyncio
    async def test_remove_rejects_duplicate_in_flight(self):
        target = make_invoice()
        view = InvoiceCollectionView(USER_ID, [target])
        view._removing.add(target.id)
        store = _mock_store()

        result = await view.remove(target.id, store)

        assert result.success is False
        store.delete_invoice.assert_not_awaited()
