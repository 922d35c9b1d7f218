# ui/admin.py
from fastapi import APIRouter, Request, Form, Depends, Query, status
from fastapi.responses import HTMLResponse, RedirectResponse
from .router import View, VIEW_PATHS
from .utils import render_template, page_context, require_view
from api.services.admin_service import AdminService, AdminServiceException, USER_FILTERS
from api.dependencies import get_admin_service, get_app_session
from api.session import AppSession
from db.models.tip import CATEGORIES, CONFIDENCE_LEVELS
from urllib.parse import urlencode
from typing import Optional
import logging

router = APIRouter(prefix="/admin")
logger = logging.getLogger(__name__)


def _admin_page(
    request: Request,
    session: AppSession,
    admin_service: AdminService,
    search: str = "",
    user_status: str = "all",
    tab: str = "users",
    **extra,
):
    if user_status not in USER_FILTERS:
        user_status = "all"
    return render_template(
        request,
        "admin.html",
        page_context(
            session,
            View.ADMIN,
            rows=admin_service.list_users(search=search, status=user_status),
            counts=admin_service.count_by_status(),
            tips=admin_service.list_tips(),
            actions=admin_service.recent_actions(),
            filters=USER_FILTERS,
            categories=CATEGORIES,
            confidence_levels=CONFIDENCE_LEVELS,
            search=search,
            user_status=user_status,
            tab=tab,
            **extra,
        ),
    )


def _done(message: str, tab: str = "users"):
    query = urlencode({"tab": tab, "message": message})
    return RedirectResponse(url=f"{VIEW_PATHS[View.ADMIN]}?{query}", status_code=status.HTTP_303_SEE_OTHER)


def _failed(request, session, admin_service, error: AdminServiceException, tab: str = "users"):
    return _admin_page(request, session, admin_service, tab=tab, error=str(error))


@router.get("/ui", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def admin_ui(
    request: Request,
    search: str = Query(""),
    user_status: str = Query("all", alias="status"),
    tab: str = Query("users"),
    session: AppSession = Depends(get_app_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    context = {}
    for key in ("message", "error"):
        if request.query_params.get(key):
            context[key] = request.query_params[key]
    return _admin_page(request, session, admin_service, search, user_status, tab, **context)


# Users


@router.post("/users/{user_id}/grant", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def admin_grant(
    request: Request,
    user_id: int,
    days: int = Form(30),
    session: AppSession = Depends(get_app_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    try:
        admin_service.grant_subscription(session.user, user_id, days)
    except AdminServiceException as e:
        return _failed(request, session, admin_service, e)
    return _done(f"Granted {days} days of VIP access")


@router.post("/users/{user_id}/revoke", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def admin_revoke(
    request: Request,
    user_id: int,
    session: AppSession = Depends(get_app_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    try:
        admin_service.revoke_subscription(session.user, user_id)
    except AdminServiceException as e:
        return _failed(request, session, admin_service, e)
    return _done("Subscription revoked")


@router.post("/users/{user_id}/ban", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def admin_ban(
    request: Request,
    user_id: int,
    reason: str = Form(""),
    duration_hours: Optional[str] = Form(None),
    session: AppSession = Depends(get_app_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    try:
        hours = int(duration_hours) if duration_hours else None
    except ValueError:
        return _failed(request, session, admin_service, AdminServiceException("Ban duration must be a number of hours"))
    try:
        admin_service.ban_user(session.user, user_id, reason, hours)
    except AdminServiceException as e:
        return _failed(request, session, admin_service, e)
    return _done("User banned")


@router.post("/users/{user_id}/unban", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def admin_unban(
    request: Request,
    user_id: int,
    session: AppSession = Depends(get_app_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    try:
        admin_service.unban_user(session.user, user_id)
    except AdminServiceException as e:
        return _failed(request, session, admin_service, e)
    return _done("User unbanned")


# Tips


@router.post("/tips", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def admin_create_tip(
    request: Request,
    title: str = Form(""),
    content: str = Form(""),
    category: str = Form("vip"),
    sport: Optional[str] = Form(None),
    confidence_level: str = Form("medium"),
    session: AppSession = Depends(get_app_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    try:
        admin_service.create_tip(session.user, title, content, category, sport, confidence_level)
    except AdminServiceException as e:
        return _failed(request, session, admin_service, e, tab="tips")
    return _done("Tip created", tab="tips")


@router.post("/tips/{tip_id}/edit", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def admin_update_tip(
    request: Request,
    tip_id: int,
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    sport: Optional[str] = Form(None),
    confidence_level: Optional[str] = Form(None),
    session: AppSession = Depends(get_app_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    try:
        admin_service.update_tip(
            session.user,
            tip_id,
            title=title,
            content=content,
            category=category,
            sport=sport,
            confidence_level=confidence_level,
        )
    except AdminServiceException as e:
        return _failed(request, session, admin_service, e, tab="tips")
    return _done("Tip updated", tab="tips")


@router.post("/tips/{tip_id}/toggle", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def admin_toggle_tip(
    request: Request,
    tip_id: int,
    session: AppSession = Depends(get_app_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    try:
        tip = admin_service.toggle_tip(session.user, tip_id)
    except AdminServiceException as e:
        return _failed(request, session, admin_service, e, tab="tips")
    return _done("Tip activated" if tip.is_active else "Tip deactivated", tab="tips")


@router.post("/tips/{tip_id}/delete", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def admin_delete_tip(
    request: Request,
    tip_id: int,
    session: AppSession = Depends(get_app_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    try:
        admin_service.delete_tip(session.user, tip_id)
    except AdminServiceException as e:
        return _failed(request, session, admin_service, e, tab="tips")
    return _done("Tip deleted", tab="tips")
