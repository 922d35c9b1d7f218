from fastapi import APIRouter, Request, Form, Depends, File, UploadFile, Query
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool
from api.dependencies import (
    get_app_session,
    get_prompt_service,
    get_arbitrage_service,
    get_tip_repository,
)
from api.services.prompt_service import PromptService, PromptServiceException, MAX_IMAGE_BYTES
from api.services.arbitrage_service import (
    ArbitrageService,
    ArbitrageServiceException,
    SPORTS,
)
from api.session import AppSession
from db.models.tip import CATEGORY_VIP, CONFIDENCE_LEVELS
from db.repositories.tip_repository import TipRepository
from .router import View
from .utils import render_template, page_context, require_view
from typing import Optional
import logging

router = APIRouter(prefix="/tools")
logger = logging.getLogger(__name__)


def _prompt_page(request: Request, session: AppSession, prompt_service: PromptService, **extra):
    recent = prompt_service.recent(session.user.id)
    return render_template(
        request,
        "tools/prompt_generator.html",
        page_context(session, View.PROMPT_GENERATOR, recent=recent, **extra),
    )


@router.get("/prompt-generator/ui", response_class=HTMLResponse)
@require_view(View.PROMPT_GENERATOR)
async def prompt_generator_ui(
    request: Request,
    session: AppSession = Depends(get_app_session),
    prompt_service: PromptService = Depends(get_prompt_service),
):
    return _prompt_page(request, session, prompt_service)


@router.post("/prompt-generator/ui", response_class=HTMLResponse)
@require_view(View.PROMPT_GENERATOR)
async def generate_prompt(
    request: Request,
    text: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    session: AppSession = Depends(get_app_session),
    prompt_service: PromptService = Depends(get_prompt_service),
):
    image_name, image_size = None, 0
    if image is not None and image.filename:
        image_name = image.filename
        # Read at most one byte past the limit
        image_size = len(await image.read(MAX_IMAGE_BYTES + 1))
    try:
        generation = prompt_service.generate(session.user.id, text, image_name, image_size)
    except PromptServiceException as e:
        return _prompt_page(request, session, prompt_service, error=str(e), text=text)
    return _prompt_page(request, session, prompt_service, generated=generation, text=text)


@router.get("/arbitrage/ui", response_class=HTMLResponse)
@require_view(View.ARBITRAGE)
async def arbitrage_ui(
    request: Request,
    sport: str = Query("upcoming"),
    min_profit: float = Query(1.0, ge=0),
    total_stake: float = Query(1000.0, gt=0),
    search: str = Query(""),
    session: AppSession = Depends(get_app_session),
    arbitrage_service: ArbitrageService = Depends(get_arbitrage_service),
):
    context = page_context(
        session,
        View.ARBITRAGE,
        sports=SPORTS,
        sport=sport,
        min_profit=min_profit,
        total_stake=total_stake,
        search=search,
        live=bool(arbitrage_service.api_key),
        opportunities=[],
    )
    try:
        context["opportunities"] = await run_in_threadpool(
            arbitrage_service.find_opportunities,
            sport=sport,
            min_profit=min_profit,
            total_stake=total_stake,
            search=search,
        )
    except ArbitrageServiceException as e:
        context["error"] = str(e)
    return render_template(request, "tools/arbitrage.html", context)


@router.get("/vip-tips/ui", response_class=HTMLResponse)
@require_view(View.VIP_TIPS)
async def vip_tips_ui(
    request: Request,
    sport: str = Query(""),
    confidence: str = Query(""),
    session: AppSession = Depends(get_app_session),
    tip_repo: TipRepository = Depends(get_tip_repository),
):
    confidence = confidence if confidence in CONFIDENCE_LEVELS else ""
    tips = tip_repo.list_active(CATEGORY_VIP, sport=sport or None, confidence_level=confidence or None)
    return render_template(
        request,
        "tools/vip_tips.html",
        page_context(
            session,
            View.VIP_TIPS,
            tips=tips,
            sports=tip_repo.list_sports(CATEGORY_VIP),
            confidence_levels=CONFIDENCE_LEVELS,
            sport=sport,
            confidence=confidence,
        ),
    )
