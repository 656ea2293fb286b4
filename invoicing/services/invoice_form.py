"""
Invoice draft: the editable form of one invoice before (or while) it is
written to the database.

Totals are never stored on the draft; ``compute_subtotal`` and
``compute_total`` derive them from the current items, tax and discount, so
they cannot drift from their inputs. Numeric input that does not parse is
coerced to 0 rather than rejected; rules that block a write live in
``validate`` and run only at submission time.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

import structlog

from invoicing.config import settings
from invoicing.exceptions import SubmissionError, ValidationError
from invoicing.schemas.invoice import (
    InvoiceCreate,
    InvoiceResponse,
    InvoiceUpdate,
    LineItemInput,
)
from invoicing.services.validation import is_valid_phone, normalize_phone, parse_amount

logger = structlog.get_logger()

EDITABLE_ITEM_FIELDS = ("description", "quantity", "rate")


def _new_item_id() -> str:
    return str(uuid.uuid4())


@dataclass
class LineItem:
    description: str = ""
    quantity: float = 1
    rate: float = 0
    id: str = field(default_factory=_new_item_id)

    @property
    def amount(self) -> float:
        return self.quantity * self.rate

    @classmethod
    def from_input(cls, data: LineItemInput) -> "LineItem":
        return cls(
            id=data.id or _new_item_id(),
            description=data.description or "",
            quantity=parse_amount(data.quantity),
            rate=parse_amount(data.rate),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "quantity": self.quantity,
            "rate": self.rate,
        }


CreateInvoice = Callable[[dict], Awaitable[InvoiceResponse]]


class InvoiceDraft:
    def __init__(
        self,
        customer_name: str = "",
        customer_phone: str = "",
        items: Optional[List[LineItem]] = None,
        tax: Any = 0,
        discount: Any = 0,
        notes: Optional[str] = None,
        currency: Optional[str] = None,
    ):
        self.customer_name = customer_name
        self.customer_phone = customer_phone
        self.items: List[LineItem] = list(items) if items else [LineItem()]
        self.tax = parse_amount(tax)
        self.discount = parse_amount(discount)
        self.notes = notes
        self.currency = currency or settings.CURRENCY
        self._submitting = False

    @classmethod
    def from_request(cls, body: InvoiceCreate) -> "InvoiceDraft":
        return cls(
            customer_name=body.customer_name,
            customer_phone=body.customer_phone,
            items=[LineItem.from_input(li) for li in body.items],
            tax=body.tax,
            discount=body.discount,
            notes=body.notes,
        )

    @classmethod
    def from_record(cls, invoice: InvoiceResponse) -> "InvoiceDraft":
        return cls(
            customer_name=invoice.customer_name,
            customer_phone=invoice.customer_phone,
            items=[
                LineItem(
                    id=li.id,
                    description=li.description,
                    quantity=li.quantity,
                    rate=li.rate,
                )
                for li in invoice.items
            ],
            tax=invoice.tax,
            discount=invoice.discount,
            notes=invoice.notes,
            currency=invoice.currency,
        )

    def apply_update(self, patch: InvoiceUpdate) -> None:
        """Overlay the fields present in an update request onto the draft."""
        fields = patch.model_fields_set
        if "customer_name" in fields and patch.customer_name is not None:
            self.customer_name = patch.customer_name
        if "customer_phone" in fields and patch.customer_phone is not None:
            self.customer_phone = patch.customer_phone
        if "items" in fields and patch.items:
            self.items = [LineItem.from_input(li) for li in patch.items]
        if "tax" in fields:
            self.set_tax(patch.tax)
        if "discount" in fields:
            self.set_discount(patch.discount)
        if "notes" in fields:
            self.notes = patch.notes

    # ---------- item editing ----------

    def add_item(self) -> LineItem:
        item = LineItem()
        self.items.append(item)
        return item

    def remove_item(self, item_id: str) -> bool:
        """Remove an item; the last remaining item is never removed."""
        if len(self.items) <= 1:
            return False
        remaining = [item for item in self.items if item.id != item_id]
        if len(remaining) == len(self.items):
            return False
        self.items = remaining
        return True

    def update_item(self, item_id: str, field_name: str, value: Any) -> None:
        if field_name not in EDITABLE_ITEM_FIELDS:
            raise ValueError(f"Unknown line item field: {field_name}")
        for item in self.items:
            if item.id != item_id:
                continue
            if field_name == "description":
                item.description = value
            else:
                setattr(item, field_name, parse_amount(value))

    def set_tax(self, value: Any) -> None:
        self.tax = parse_amount(value)

    def set_discount(self, value: Any) -> None:
        self.discount = parse_amount(value)

    # ---------- totals ----------

    def compute_subtotal(self) -> float:
        return sum(item.quantity * item.rate for item in self.items)

    def compute_total(self) -> float:
        # Not clamped: a discount larger than subtotal + tax gives a negative total.
        return self.compute_subtotal() + self.tax - self.discount

    # ---------- submission ----------

    def validate(self) -> None:
        if not (self.customer_name or "").strip():
            raise ValidationError("Customer name is required", field="customer_name")
        if not is_valid_phone(self.customer_phone):
            raise ValidationError(
                "Please enter a valid Ghana phone number", field="customer_phone"
            )
        if any(not (item.description or "").strip() or item.rate <= 0 for item in self.items):
            raise ValidationError(
                "Please fill in all item details with valid rates", field="items"
            )
        if self.tax < 0 or self.discount < 0:
            raise ValidationError("Tax and discount cannot be negative", field="tax")

    def to_payload(self) -> dict:
        return {
            "customer_name": self.customer_name.strip(),
            "customer_phone": normalize_phone(self.customer_phone),
            "items": [item.to_dict() for item in self.items],
            "tax": self.tax,
            "discount": self.discount,
            "notes": self.notes,
            "subtotal": self.compute_subtotal(),
            "total_amount": self.compute_total(),
            "currency": self.currency,
        }

    async def submit(self, create: CreateInvoice) -> InvoiceResponse:
        """Validate and hand the payload to ``create``; one submission at a time."""
        if self._submitting:
            raise SubmissionError("Invoice submission already in progress")
        self.validate()
        payload = self.to_payload()

        self._submitting = True
        try:
            stored = await create(payload)
        except Exception as exc:
            logger.error("invoice_submit_failed", error=str(exc))
            raise SubmissionError(f"Error creating invoice: {exc}") from exc
        finally:
            self._submitting = False

        logger.info(
            "invoice_submitted",
            invoice_id=stored.id,
            total_amount=stored.total_amount,
            items=len(self.items),
        )
        return stored
