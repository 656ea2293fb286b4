"""Builders for invoice records used across the unit and integration tests."""

import uuid
from datetime import datetime
from typing import List, Optional

from invoicing.schemas.invoice import InvoiceResponse, LineItemResponse


USER_ID = "a0000000-0000-0000-0000-000000000001"


def make_invoice(
    status: str = "sent",
    total_amount: float = 100.0,
    customer_name: str = "Kofi Mensah",
    invoice_id: Optional[str] = None,
    user_id: str = USER_ID,
    items: Optional[List[LineItemResponse]] = None,
    **overrides,
) -> InvoiceResponse:
    now = datetime(2026, 3, 1, 9, 30).isoformat()
    if items is None:
        items = [
            LineItemResponse(
                id="item-1",
                description="Consulting",
                quantity=1,
                rate=total_amount,
                amount=total_amount,
            )
        ]
    fields = dict(
        id=invoice_id or str(uuid.uuid4()),
        user_id=user_id,
        customer_name=customer_name,
        customer_phone="0241234567",
        items=items,
        subtotal=total_amount,
        tax=0.0,
        discount=0.0,
        total_amount=total_amount,
        currency="GHS",
        status=status,
        notes=None,
        created_at=now,
        updated_at=now,
    )
    fields.update(overrides)
    return InvoiceResponse(**fields)
