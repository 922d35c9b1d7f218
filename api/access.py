from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from api.dependencies import get_current_user
from api.models import UserResponse, AccessResponse, CountdownResponse
from api.services.access import (
    FEATURE_ACCESS,
    STATUS_ACTIVE,
    access_tier,
    has_access,
    subscription_status,
)
from api.services.countdown import KIND_SUBSCRIPTION, KIND_TRIAL, utcnow, window_for
from api.services.countdown_ticker import CountdownTicker
from typing import Optional
import asyncio
import json
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/me", response_model=UserResponse)
def me(current_user=Depends(get_current_user)):
    return UserResponse.from_user(current_user)


@router.get("/me/access", response_model=AccessResponse)
def my_access(current_user=Depends(get_current_user)):
    now = utcnow()
    return AccessResponse(
        tier=access_tier(current_user, now).label,
        has_access=has_access(current_user, now=now),
        features={feature: has_access(current_user, feature, now) for feature in FEATURE_ACCESS},
        status=subscription_status(current_user, now).to_dict(),
    )


@router.get("/countdown", response_model=CountdownResponse)
def countdown(current_user=Depends(get_current_user)):
    return subscription_status(current_user).countdown.to_dict()


@router.get("/countdown/stream")
async def countdown_stream(
    request: Request,
    max_events: Optional[int] = Query(None, ge=1),
    current_user=Depends(get_current_user),
):
    """Server-sent events: one countdown per second until the client leaves"""
    status = subscription_status(current_user)
    kind = KIND_SUBSCRIPTION if status.kind == STATUS_ACTIVE else KIND_TRIAL
    user_id = current_user.id

    async def events():
        queue: asyncio.Queue = asyncio.Queue()
        async with CountdownTicker(status.expires_at, queue.put, window=window_for(kind)):
            sent = 0
            while not await request.is_disconnected():
                tick = await queue.get()
                yield f"data: {json.dumps(tick.to_dict())}\n\n"
                sent += 1
                if max_events and sent >= max_events:
                    break
        logger.info(f"Countdown stream closed for user {user_id}")

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
