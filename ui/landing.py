# ui/landing.py
from fastapi import APIRouter, Request, Depends
from fastapi.responses import HTMLResponse
from .router import View
from .utils import render_template, page_context, require_view
from api.dependencies import get_app_session, get_tip_repository
from api.session import AppSession
from db.models.tip import CATEGORY_FREE
from db.repositories.tip_repository import TipRepository

router = APIRouter()

FREE_TIPS_ON_LANDING = 3


@router.get("/", response_class=HTMLResponse)
@require_view(View.LANDING)
async def landing_page(
    request: Request,
    session: AppSession = Depends(get_app_session),
    tip_repo: TipRepository = Depends(get_tip_repository),
):
    tips = tip_repo.list_active(category=CATEGORY_FREE)[:FREE_TIPS_ON_LANDING]
    return render_template(request, "index.html", page_context(session, View.LANDING, tips=tips))
