"""
Per-user projection over all invoices: filtering and summary statistics.

Statistics are a full fold over the unfiltered set, recomputed after every
change rather than maintained incrementally. Status is treated as an open
string here; anything other than ``paid``, ``sent`` or ``overdue`` (such as
``draft``) counts toward ``total`` only.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

import structlog

from invoicing.schemas.invoice import InvoiceResponse, InvoiceStatsResponse
from invoicing.services.change_feed import Deleted, InvoiceEvent

logger = structlog.get_logger()

ALL_STATUSES = "all"


@dataclass
class InvoiceStats:
    total: int = 0
    paid: float = 0.0
    pending: float = 0.0
    overdue: int = 0

    def to_response(self) -> InvoiceStatsResponse:
        return InvoiceStatsResponse(
            total=self.total, paid=self.paid, pending=self.pending, overdue=self.overdue
        )


@dataclass
class OperationResult:
    success: bool
    error: Optional[str] = None


def compute_stats(invoices: Iterable[InvoiceResponse]) -> InvoiceStats:
    stats = InvoiceStats()
    for invoice in invoices:
        stats.total += 1
        if invoice.status == "paid":
            stats.paid += invoice.total_amount
        elif invoice.status == "overdue":
            stats.overdue += 1
        elif invoice.status == "sent":
            stats.pending += invoice.total_amount
    return stats


def filter_invoices(
    invoices: Iterable[InvoiceResponse],
    search_term: Optional[str] = "",
    status_filter: Optional[str] = ALL_STATUSES,
) -> List[InvoiceResponse]:
    term = (search_term or "").lower()
    wanted = status_filter or ALL_STATUSES

    def matches(invoice: InvoiceResponse) -> bool:
        matches_search = term in invoice.customer_name.lower() or term in invoice.id.lower()
        matches_status = wanted == ALL_STATUSES or invoice.status == wanted
        return matches_search and matches_status

    return [invoice for invoice in invoices if matches(invoice)]


class InvoiceCollectionView:
    """
    The invoices of one user, newest first, with derived statistics.

    Mutated only by the initial load, change-feed events and confirmed local
    creates/deletes; each mutation touches exactly one invoice by id.
    """

    def __init__(self, user_id: str, invoices: Iterable[InvoiceResponse] = ()):
        self.user_id = str(user_id)
        self._items: List[InvoiceResponse] = list(invoices)
        self._removing: Set[str] = set()
        self.stats = self.recompute_stats()

    @classmethod
    async def load(cls, user_id: str, store) -> "InvoiceCollectionView":
        """Build a view from ``store.list_invoices`` (already newest first)."""
        invoices = await store.list_invoices(str(user_id))
        return cls(user_id, invoices)

    @property
    def items(self) -> List[InvoiceResponse]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get(self, invoice_id: str) -> Optional[InvoiceResponse]:
        for invoice in self._items:
            if invoice.id == invoice_id:
                return invoice
        return None

    def apply_filter(
        self, search_term: Optional[str] = "", status_filter: Optional[str] = ALL_STATUSES
    ) -> List[InvoiceResponse]:
        return filter_invoices(self._items, search_term, status_filter)

    def recompute_stats(self) -> InvoiceStats:
        return compute_stats(self._items)

    def recent(self, limit: int = 5) -> List[InvoiceResponse]:
        return self._items[:limit]

    # ---------- mutations ----------

    def _upsert(self, invoice: InvoiceResponse) -> None:
        for idx, existing in enumerate(self._items):
            if existing.id == invoice.id:
                self._items[idx] = invoice
                break
        else:
            self._items.insert(self._position_for(invoice), invoice)
        self.stats = self.recompute_stats()

    def _position_for(self, invoice: InvoiceResponse) -> int:
        # Newest first; ties go in front of existing entries.
        for idx, existing in enumerate(self._items):
            if existing.created_at <= invoice.created_at:
                return idx
        return len(self._items)

    def _discard(self, invoice_id: str) -> None:
        self._items = [inv for inv in self._items if inv.id != invoice_id]
        self.stats = self.recompute_stats()

    def add(self, invoice: InvoiceResponse) -> None:
        self._upsert(invoice)

    def apply_event(self, event: InvoiceEvent) -> None:
        # Events are authoritative for their invoice id; last writer wins.
        if isinstance(event, Deleted):
            self._discard(event.invoice.id)
        else:
            self._upsert(event.invoice)

    async def remove(self, invoice_id: str, store) -> OperationResult:
        """Delete through ``store`` and drop locally only once it is confirmed."""
        if invoice_id in self._removing:
            return OperationResult(success=False, error="Deletion already in progress")

        self._removing.add(invoice_id)
        try:
            await store.delete_invoice(invoice_id, self.user_id)
        except Exception as e:
            logger.error(
                "invoice_view_remove_failed",
                invoice_id=invoice_id,
                user_id=self.user_id,
                error=str(e),
            )
            return OperationResult(success=False, error=str(e))
        finally:
            self._removing.discard(invoice_id)

        self._discard(invoice_id)
        return OperationResult(success=True)
