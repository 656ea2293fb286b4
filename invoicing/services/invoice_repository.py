"""
Invoice persistence over SQLAlchemy.

Every read and write is scoped to the requesting user. Writes commit
immediately and then publish a change event, so subscribers never see a
change the database later rolls back.
"""

import uuid
from datetime import datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from invoicing.exceptions import InvoiceNotFound, PersistenceError
from invoicing.models.invoice import Invoice
from invoicing.schemas.invoice import InvoiceResponse, LineItemResponse
from invoicing.services.change_feed import ChangeFeed, Deleted, Inserted, Updated, change_feed

logger = structlog.get_logger()

CREATE_FIELDS = (
    "customer_name",
    "customer_phone",
    "items",
    "subtotal",
    "tax",
    "discount",
    "total_amount",
    "currency",
    "notes",
)
UPDATABLE_FIELDS = frozenset(CREATE_FIELDS) - {"currency"} | {"status"}
_WRITE_ERRORS = {
    "create": "Error creating invoice",
    "update": "Error updating invoice",
    "delete": "Error deleting invoice",
}


def _line_to_response(item: dict) -> LineItemResponse:
    quantity = float(item.get("quantity") or 0)
    rate = float(item.get("rate") or 0)
    return LineItemResponse(
        id=str(item.get("id", "")),
        description=item.get("description", ""),
        quantity=quantity,
        rate=rate,
        amount=quantity * rate,
    )


def to_response(inv: Invoice) -> InvoiceResponse:
    return InvoiceResponse(
        id=str(inv.id),
        user_id=str(inv.user_id),
        customer_name=inv.customer_name,
        customer_phone=inv.customer_phone,
        items=[_line_to_response(li) for li in (inv.items or [])],
        subtotal=inv.subtotal,
        tax=inv.tax,
        discount=inv.discount,
        total_amount=inv.total_amount,
        currency=inv.currency,
        status=inv.status,
        notes=inv.notes,
        created_at=inv.created_at.isoformat() if inv.created_at else "",
        updated_at=inv.updated_at.isoformat() if inv.updated_at else "",
    )


def _parse_uuid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise InvoiceNotFound("Invoice not found")


class InvoiceRepository:
    def __init__(self, db: AsyncSession, feed: ChangeFeed = change_feed):
        self.db = db
        self.feed = feed

    async def _get_row(self, invoice_id: str, user_id: str) -> Invoice:
        try:
            result = await self.db.execute(
                select(Invoice).where(
                    Invoice.id == _parse_uuid(invoice_id),
                    Invoice.user_id == _parse_uuid(user_id),
                )
            )
        except SQLAlchemyError as e:
            logger.error("invoice_fetch_failed", invoice_id=invoice_id, error=str(e))
            raise PersistenceError("Error loading invoice") from e
        inv = result.scalar_one_or_none()
        if not inv:
            raise InvoiceNotFound("Invoice not found")
        return inv

    async def _commit(self, action: str, invoice_id) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "invoice_write_failed", action=action, invoice_id=str(invoice_id), error=str(e)
            )
            raise PersistenceError(_WRITE_ERRORS[action]) from e

    async def list_invoices(self, user_id: str) -> List[InvoiceResponse]:
        """All invoices of ``user_id``, newest first."""
        try:
            result = await self.db.execute(
                select(Invoice)
                .where(Invoice.user_id == _parse_uuid(user_id))
                .order_by(Invoice.created_at.desc())
            )
        except SQLAlchemyError as e:
            logger.error("invoice_list_failed", user_id=str(user_id), error=str(e))
            raise PersistenceError("Error loading invoices") from e
        return [to_response(inv) for inv in result.scalars().all()]

    async def get_invoice(self, invoice_id: str, user_id: str) -> InvoiceResponse:
        return to_response(await self._get_row(invoice_id, user_id))

    async def create_invoice(self, payload: dict, user_id: str) -> InvoiceResponse:
        now = datetime.utcnow()
        inv = Invoice(
            id=uuid.uuid4(),
            user_id=_parse_uuid(user_id),
            status="draft",
            created_at=now,
            updated_at=now,
            **{k: payload[k] for k in CREATE_FIELDS if k in payload},
        )
        self.db.add(inv)
        await self._commit("create", inv.id)

        stored = to_response(inv)
        logger.info("invoice_created", invoice_id=stored.id, user_id=stored.user_id)
        self.feed.publish(stored.user_id, Inserted(stored))
        return stored

    async def update_invoice(self, invoice_id: str, user_id: str, patch: dict) -> InvoiceResponse:
        inv = await self._get_row(invoice_id, user_id)
        for key, value in patch.items():
            if key in UPDATABLE_FIELDS:
                setattr(inv, key, value)
        inv.updated_at = datetime.utcnow()
        await self._commit("update", inv.id)

        stored = to_response(inv)
        logger.info("invoice_updated", invoice_id=stored.id, fields=sorted(patch))
        self.feed.publish(stored.user_id, Updated(stored))
        return stored

    async def delete_invoice(self, invoice_id: str, user_id: str) -> None:
        inv = await self._get_row(invoice_id, user_id)
        removed = to_response(inv)
        await self.db.delete(inv)
        await self._commit("delete", inv.id)

        logger.info("invoice_deleted", invoice_id=removed.id)
        self.feed.publish(removed.user_id, Deleted(removed))
