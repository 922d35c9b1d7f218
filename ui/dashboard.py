from fastapi import APIRouter, Request, Depends
from fastapi.responses import HTMLResponse
from api.dependencies import get_app_session, get_tip_repository
from api.services.access import STATUS_ACTIVE
from api.services.countdown import KIND_SUBSCRIPTION, KIND_TRIAL, utcnow
from api.session import AppSession
from db.models.tip import CATEGORY_FREE
from db.repositories.tip_repository import TipRepository
from .router import View
from .utils import render_template, page_context, require_view

router = APIRouter()


@router.get("/dashboard/ui", response_class=HTMLResponse)
@require_view(View.DASHBOARD)
async def dashboard_ui(
    request: Request,
    session: AppSession = Depends(get_app_session),
    tip_repo: TipRepository = Depends(get_tip_repository),
):
    return render_template(
        request,
        "dashboard.html",
        page_context(session, View.DASHBOARD, free_tips=tip_repo.list_active(category=CATEGORY_FREE)),
    )


@router.get("/partials/countdown", response_class=HTMLResponse)
async def countdown_partial(request: Request, session: AppSession = Depends(get_app_session)):
    """Countdown fragment re-rendered by htmx once a second"""
    status = session.status(utcnow())
    kind = KIND_SUBSCRIPTION if status.kind == STATUS_ACTIVE else KIND_TRIAL
    return render_template(
        request,
        "partials/countdown.html",
        {"status": status, "countdown": status.countdown, "kind": kind},
    )
