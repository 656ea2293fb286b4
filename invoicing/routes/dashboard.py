from fastapi import APIRouter, Depends

from invoicing.middleware.auth import get_current_session
from invoicing.routes.invoices import get_repository
from invoicing.schemas.invoice import DashboardResponse
from invoicing.services.invoice_repository import InvoiceRepository
from invoicing.services.invoice_view import InvoiceCollectionView
from invoicing.services.session import UserSession

router = APIRouter()

RECENT_INVOICES = 5


@router.get("/stats", response_model=DashboardResponse)
async def get_dashboard_stats(
    session: UserSession = Depends(get_current_session),
    repo: InvoiceRepository = Depends(get_repository),
):
    view = await InvoiceCollectionView.load(session.user_id, repo)
    return DashboardResponse(
        stats=view.stats.to_response(),
        recent=view.recent(RECENT_INVOICES),
    )
