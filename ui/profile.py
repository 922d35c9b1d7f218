from fastapi import APIRouter, Request, Form, Depends
from fastapi.responses import HTMLResponse
from api.dependencies import get_app_session, get_user_service
from api.services.user_service import UserService, UserServiceException, UserNotFoundException
from api.session import AppSession
from .router import View
from .utils import render_template, page_context, require_view
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/profile/ui", response_class=HTMLResponse)
@require_view(View.PROFILE)
async def profile_ui(request: Request, session: AppSession = Depends(get_app_session)):
    return render_template(request, "profile.html", page_context(session, View.PROFILE))


@router.post("/profile/ui", response_class=HTMLResponse)
@require_view(View.PROFILE)
async def update_profile(
    request: Request,
    full_name: str = Form(""),
    session: AppSession = Depends(get_app_session),
    user_service: UserService = Depends(get_user_service),
):
    try:
        user_service.update_profile(session.user.id, full_name)
    except (UserServiceException, UserNotFoundException) as e:
        return render_template(
            request, "profile.html", page_context(session, View.PROFILE, error=str(e))
        )
    session.refresh(user_service.user_repo)
    return render_template(
        request,
        "profile.html",
        page_context(session, View.PROFILE, success="Profile updated successfully"),
    )


@router.post("/profile/password", response_class=HTMLResponse)
@require_view(View.PROFILE)
async def change_password(
    request: Request,
    current_password: str = Form(""),
    new_password: str = Form(""),
    confirm_password: str = Form(""),
    session: AppSession = Depends(get_app_session),
    user_service: UserService = Depends(get_user_service),
):
    try:
        user_service.change_password(session.user.id, current_password, new_password, confirm_password)
    except (UserServiceException, UserNotFoundException) as e:
        return render_template(
            request, "profile.html", page_context(session, View.PROFILE, password_error=str(e))
        )
    return render_template(
        request,
        "profile.html",
        page_context(session, View.PROFILE, password_success="Password changed successfully"),
    )
