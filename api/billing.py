from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool
from api.dependencies import get_billing_service, get_current_user
from api.models import CheckoutResponse, PaymentStatusResponse
from api.services.billing_service import BillingService, BillingServiceException
import logging

router = APIRouter(prefix="/billing")
logger = logging.getLogger(__name__)


@router.post("/checkout", response_model=CheckoutResponse)
def checkout(
    current_user=Depends(get_current_user),
    billing_service: BillingService = Depends(get_billing_service),
):
    try:
        return CheckoutResponse(url=billing_service.create_checkout_session(current_user))
    except BillingServiceException as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/portal", response_model=CheckoutResponse)
def portal(
    current_user=Depends(get_current_user),
    billing_service: BillingService = Depends(get_billing_service),
):
    try:
        return CheckoutResponse(url=billing_service.create_portal_session(current_user))
    except BillingServiceException as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/status", response_model=PaymentStatusResponse)
def payment_status(
    current_user=Depends(get_current_user),
    billing_service: BillingService = Depends(get_billing_service),
):
    try:
        subscription = billing_service.get_current_subscription(current_user)
    except BillingServiceException as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PaymentStatusResponse(
        status=subscription.status.value,
        grants_access=subscription.grants_access,
        cancel_at_period_end=subscription.cancel_at_period_end,
    )


@router.post("/webhook")
async def webhook(
    request: Request,
    billing_service: BillingService = Depends(get_billing_service),
):
    payload = await request.body()
    try:
        event = await run_in_threadpool(
            billing_service.construct_event, payload, request.headers.get("stripe-signature")
        )
        await run_in_threadpool(billing_service.handle_event, event)
    except BillingServiceException as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"received": True}
