import asyncio
import json
from functools import partial

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from invoicing.database import get_db
from invoicing.exceptions import PersistenceError
from invoicing.middleware.auth import get_current_session
from invoicing.schemas.invoice import (
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceUpdate,
    PaymentLinkResponse,
    PaymentVerifyResponse,
)
from invoicing.services.change_feed import ChangeFeed, change_feed
from invoicing.services.invoice_form import InvoiceDraft
from invoicing.services.invoice_repository import InvoiceRepository
from invoicing.services.invoice_view import ALL_STATUSES, InvoiceCollectionView
from invoicing.services.paystack import PaystackClient, paystack_client, whatsapp_share_url
from invoicing.services.pdf_service import generate_invoice_pdf
from invoicing.services.profile_service import ProfileService
from invoicing.services.session import UserSession

logger = structlog.get_logger()
router = APIRouter()

# Fields whose change requires re-validating the draft and recomputing totals.
_DRAFT_FIELDS = {"customer_name", "customer_phone", "items", "tax", "discount"}
_KEEPALIVE_SECONDS = 15


def get_feed() -> ChangeFeed:
    return change_feed


def get_repository(
    db: AsyncSession = Depends(get_db), feed: ChangeFeed = Depends(get_feed)
) -> InvoiceRepository:
    return InvoiceRepository(db, feed)


def get_paystack() -> PaystackClient:
    return paystack_client


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    search: str = Query(""),
    inv_status: str = Query(ALL_STATUSES, alias="status"),
    session: UserSession = Depends(get_current_session),
    repo: InvoiceRepository = Depends(get_repository),
):
    view = await InvoiceCollectionView.load(session.user_id, repo)
    return InvoiceListResponse(
        data=view.apply_filter(search, inv_status),
        stats=view.stats.to_response(),
    )


@router.get("/events")
async def invoice_events(
    request: Request,
    session: UserSession = Depends(get_current_session),
    repo: InvoiceRepository = Depends(get_repository),
    feed: ChangeFeed = Depends(get_feed),
):
    """Server-Sent Events: every insert/update/delete plus the recomputed stats."""
    queue: asyncio.Queue = asyncio.Queue()
    # Subscribe before loading so nothing committed in between is missed;
    # replaying an event the snapshot already reflects is harmless.
    subscription = feed.subscribe(session.user_id, queue.put_nowait)
    try:
        view = await InvoiceCollectionView.load(session.user_id, repo)
    except Exception:
        subscription.unsubscribe()
        raise

    async def stream():
        try:
            yield _sse("snapshot", {"stats": view.stats.to_response().model_dump()})
            while not await request.is_disconnected():
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=_KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                view.apply_event(event)
                yield _sse(
                    event.kind,
                    {
                        "type": event.kind,
                        "invoice": event.invoice.model_dump(),
                        "stats": view.stats.to_response().model_dump(),
                    },
                )
        finally:
            subscription.unsubscribe()
            logger.info("invoice_stream_closed", user_id=session.user_id)

    return StreamingResponse(stream(), media_type="text/event-stream")


@router.get("/payments/{reference}/verify", response_model=PaymentVerifyResponse)
async def verify_payment(
    reference: str,
    session: UserSession = Depends(get_current_session),
    paystack: PaystackClient = Depends(get_paystack),
):
    data = await paystack.verify_payment(reference)
    return PaymentVerifyResponse(
        reference=data.get("reference") or reference,
        status=data.get("status") or "unknown",
        amount=(data.get("amount") or 0) / 100,
        currency=data.get("currency"),
        paid_at=data.get("paid_at"),
    )


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str,
    session: UserSession = Depends(get_current_session),
    repo: InvoiceRepository = Depends(get_repository),
):
    return await repo.get_invoice(invoice_id, session.user_id)


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    body: InvoiceCreate,
    session: UserSession = Depends(get_current_session),
    repo: InvoiceRepository = Depends(get_repository),
):
    draft = InvoiceDraft.from_request(body)
    return await draft.submit(partial(repo.create_invoice, user_id=session.user_id))


@router.patch("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: str,
    body: InvoiceUpdate,
    session: UserSession = Depends(get_current_session),
    repo: InvoiceRepository = Depends(get_repository),
):
    existing = await repo.get_invoice(invoice_id, session.user_id)
    changed = body.model_fields_set

    if changed & _DRAFT_FIELDS:
        draft = InvoiceDraft.from_record(existing)
        draft.apply_update(body)
        draft.validate()
        patch = draft.to_payload()
        patch.pop("currency")
    else:
        patch = {"notes": body.notes} if "notes" in changed else {}

    if body.status is not None:
        patch["status"] = body.status

    return await repo.update_invoice(invoice_id, session.user_id, patch)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: str,
    session: UserSession = Depends(get_current_session),
    repo: InvoiceRepository = Depends(get_repository),
):
    invoice = await repo.get_invoice(invoice_id, session.user_id)
    view = InvoiceCollectionView(session.user_id, [invoice])
    result = await view.remove(invoice.id, repo)
    if not result.success:
        raise PersistenceError(result.error or "Error deleting invoice")


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: str,
    session: UserSession = Depends(get_current_session),
    repo: InvoiceRepository = Depends(get_repository),
    db: AsyncSession = Depends(get_db),
):
    invoice = await repo.get_invoice(invoice_id, session.user_id)
    profile = await ProfileService(db).get_profile(session.user_id)
    document = generate_invoice_pdf(invoice, profile)
    return Response(
        content=document.to_bytes(),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )


@router.post("/{invoice_id}/payment-link", response_model=PaymentLinkResponse)
async def create_payment_link(
    invoice_id: str,
    session: UserSession = Depends(get_current_session),
    repo: InvoiceRepository = Depends(get_repository),
    paystack: PaystackClient = Depends(get_paystack),
):
    invoice = await repo.get_invoice(invoice_id, session.user_id)
    link = await paystack.create_payment_link(invoice, email=session.email)
    logger.info("payment_link_created", invoice_id=invoice.id, reference=link.reference)
    return PaymentLinkResponse(
        authorization_url=link.authorization_url,
        access_code=link.access_code,
        reference=link.reference,
        whatsapp_url=whatsapp_share_url(
            invoice.customer_phone, invoice.customer_name, link.authorization_url
        ),
    )
