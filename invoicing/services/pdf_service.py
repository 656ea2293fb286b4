"""Invoice PDF export (fpdf2)."""

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from fpdf import FPDF
import structlog

from invoicing.schemas.invoice import InvoiceResponse
from invoicing.schemas.profile import ProfileResponse
from invoicing.services.validation import format_amount

logger = structlog.get_logger()


def pdf_filename(invoice: InvoiceResponse) -> str:
    return f"invoice-{invoice.id[:8]}.pdf"


def _text(value: Optional[str]) -> str:
    # Core PDF fonts only cover latin-1.
    return (value or "").encode("latin-1", "replace").decode("latin-1")


class InvoiceDocument:
    """A rendered invoice; ``save`` writes it, ``to_bytes`` returns it."""

    def __init__(self, pdf: FPDF, filename: str):
        self.filename = filename
        self._data = bytes(pdf.output())

    def to_bytes(self) -> bytes:
        return self._data

    def save(self, filename: Union[str, Path, None] = None) -> Path:
        path = Path(filename or self.filename)
        path.write_bytes(self._data)
        logger.info("invoice_pdf_saved", path=str(path))
        return path


def generate_invoice_pdf(
    invoice: InvoiceResponse, profile: Optional[ProfileResponse]
) -> InvoiceDocument:
    currency = invoice.currency
    business = _text(profile.business_name if profile and profile.business_name else "Invoice")

    pdf = FPDF()
    pdf.add_page()
    pdf.set_auto_page_break(auto=True, margin=15)

    # --- Header ---
    pdf.set_font("Helvetica", "B", 20)
    pdf.cell(0, 10, business, new_x="LMARGIN", new_y="NEXT", align="C")
    pdf.set_font("Helvetica", "", 10)
    if profile:
        contact = "  |  ".join(_text(v) for v in (profile.phone, profile.email) if v)
        if contact:
            pdf.cell(0, 6, contact, new_x="LMARGIN", new_y="NEXT", align="C")
    pdf.ln(4)

    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(0, 10, "INVOICE", new_x="LMARGIN", new_y="NEXT", align="C")
    pdf.ln(2)

    # --- Invoice details ---
    pdf.set_fill_color(240, 240, 240)
    pdf.set_font("Helvetica", "B", 11)
    pdf.cell(0, 7, "  Invoice Details", new_x="LMARGIN", new_y="NEXT", fill=True)
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(95, 6, f"  Invoice #: {invoice.id[:8].upper()}", new_x="RIGHT")
    pdf.cell(95, 6, f"Date: {invoice.created_at[:10]}", new_x="LMARGIN", new_y="NEXT")
    pdf.cell(95, 6, f"  Status: {invoice.status.upper()}", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)

    # --- Bill to ---
    pdf.set_font("Helvetica", "B", 11)
    pdf.cell(0, 7, "  Bill To", new_x="LMARGIN", new_y="NEXT", fill=True)
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(0, 6, f"  {_text(invoice.customer_name)}", new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 6, f"  {_text(invoice.customer_phone)}", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)

    # --- Items ---
    pdf.set_font("Helvetica", "B", 9)
    pdf.cell(85, 6, "  Description", border="B")
    pdf.cell(20, 6, "Qty", border="B", align="C")
    pdf.cell(40, 6, "Rate", border="B", align="R")
    pdf.cell(45, 6, "Amount", border="B", align="R", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 9)
    for item in invoice.items:
        pdf.cell(85, 6, f"  {_text(item.description)}")
        pdf.cell(20, 6, f"{item.quantity:g}", align="C")
        pdf.cell(40, 6, format_amount(item.rate, currency), align="R")
        pdf.cell(45, 6, format_amount(item.amount, currency), align="R", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)

    # --- Totals ---
    pdf.set_font("Helvetica", "", 10)
    rows = [("Subtotal:", invoice.subtotal)]
    if invoice.tax > 0:
        rows.append(("Tax:", invoice.tax))
    if invoice.discount > 0:
        rows.append(("Discount:", -invoice.discount))
    for label, value in rows:
        pdf.cell(145, 6, label, align="R")
        pdf.cell(45, 6, format_amount(value, currency), align="R", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "B", 12)
    pdf.cell(145, 8, "Total:", align="R")
    pdf.cell(45, 8, format_amount(invoice.total_amount, currency), align="R", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)

    if invoice.notes:
        pdf.set_font("Helvetica", "B", 11)
        pdf.cell(0, 7, "  Notes", new_x="LMARGIN", new_y="NEXT", fill=True)
        pdf.set_font("Helvetica", "", 10)
        pdf.multi_cell(0, 5, f"  {_text(invoice.notes)}")
        pdf.ln(4)

    pdf.ln(6)
    pdf.set_font("Helvetica", "I", 9)
    generated = datetime.utcnow().strftime("%Y-%m-%d %H:%M")
    pdf.cell(0, 5, f"Generated {generated} UTC", new_x="LMARGIN", new_y="NEXT", align="C")

    logger.info("invoice_pdf_generated", invoice_id=invoice.id)
    return InvoiceDocument(pdf, pdf_filename(invoice))
