from fastapi import APIRouter, Request, Depends, Form, status
from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool
from api.dependencies import get_app_session, get_billing_service, get_retention_service
from api.services.billing_service import BillingService, BillingServiceException
from api.services.retention_service import RetentionService, RetentionServiceException, format_price
from db.models.cancellation import CANCELLATION_REASONS
from api.session import AppSession
from .router import View, VIEW_PATHS
from .utils import render_template, page_context, require_view
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/billing/checkout/ui")
@require_view(View.DASHBOARD)
async def checkout_ui(
    request: Request,
    session: AppSession = Depends(get_app_session),
    billing_service: BillingService = Depends(get_billing_service),
):
    try:
        url = await run_in_threadpool(billing_service.create_checkout_session, session.user)
    except BillingServiceException as e:
        return render_template(
            request, "upsell.html", page_context(session, View.UPSELL, error=str(e))
        )
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/billing/portal/ui")
@require_view(View.PROFILE)
async def portal_ui(
    request: Request,
    session: AppSession = Depends(get_app_session),
    billing_service: BillingService = Depends(get_billing_service),
):
    try:
        url = await run_in_threadpool(billing_service.create_portal_session, session.user)
    except BillingServiceException as e:
        return render_template(
            request, "profile.html", page_context(session, View.PROFILE, error=str(e))
        )
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


def _cancel_page(request: Request, session: AppSession, retention_service: RetentionService, **extra):
    """Render the cancellation flow at the member's current step"""
    if "step" not in extra:
        offer = retention_service.open_offer(session.user)
        extra.update(step="offer" if offer else "reason", offer=offer)
    return render_template(
        request,
        "cancel.html",
        page_context(
            session,
            View.PROFILE,
            reasons=CANCELLATION_REASONS,
            format_price=format_price,
            **extra,
        ),
    )


@router.get("/billing/cancel/ui", response_class=HTMLResponse)
@require_view(View.PROFILE)
async def cancel_ui(
    request: Request,
    session: AppSession = Depends(get_app_session),
    retention_service: RetentionService = Depends(get_retention_service),
):
    if not session.user.subscription_active:
        return render_template(
            request,
            "profile.html",
            page_context(session, View.PROFILE, error="You have no active subscription to cancel"),
        )
    return _cancel_page(request, session, retention_service)


@router.post("/billing/cancel/ui", response_class=HTMLResponse)
@require_view(View.PROFILE)
async def start_cancellation(
    request: Request,
    reason: str = Form(""),
    feedback: str = Form(""),
    session: AppSession = Depends(get_app_session),
    retention_service: RetentionService = Depends(get_retention_service),
):
    try:
        offer = retention_service.start_cancellation(session.user, reason, feedback)
    except RetentionServiceException as e:
        return _cancel_page(
            request, session, retention_service, step="reason", error=str(e), feedback=feedback
        )
    return _cancel_page(request, session, retention_service, step="offer", offer=offer)


@router.post("/billing/cancel/accept", response_class=HTMLResponse)
@require_view(View.PROFILE)
async def accept_offer(
    request: Request,
    offer_id: int = Form(...),
    session: AppSession = Depends(get_app_session),
    retention_service: RetentionService = Depends(get_retention_service),
):
    try:
        offer = retention_service.accept_offer(session.user, offer_id)
    except RetentionServiceException as e:
        return _cancel_page(request, session, retention_service, error=str(e))
    return _cancel_page(request, session, retention_service, step="accepted", offer=offer)


@router.post("/billing/cancel/reject")
@require_view(View.PROFILE)
async def reject_offer(
    request: Request,
    offer_id: int = Form(...),
    session: AppSession = Depends(get_app_session),
    retention_service: RetentionService = Depends(get_retention_service),
    billing_service: BillingService = Depends(get_billing_service),
):
    try:
        retention_service.reject_offer(session.user, offer_id)
    except RetentionServiceException as e:
        return _cancel_page(request, session, retention_service, error=str(e))
    try:
        url = await run_in_threadpool(billing_service.create_portal_session, session.user)
    except BillingServiceException as e:
        return _cancel_page(request, session, retention_service, step="cancelled", error=str(e))
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/success/ui", response_class=HTMLResponse)
@require_view(View.SUCCESS)
async def success_ui(request: Request, session: AppSession = Depends(get_app_session)):
    """Landing page after Stripe checkout; the webhook does the actual upgrade"""
    return render_template(
        request,
        "success.html",
        page_context(
            session,
            View.SUCCESS,
            session_id=request.query_params.get("session_id"),
            dashboard_url=VIEW_PATHS[View.DASHBOARD],
        ),
    )
