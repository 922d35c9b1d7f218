from fastapi import APIRouter, Request, Form, Depends, status
from fastapi.responses import HTMLResponse, RedirectResponse
from .router import View, VIEW_PATHS
from .utils import render_template, page_context, require_view
from api.services.user_service import UserService, UserServiceException
from api.dependencies import get_user_service, get_app_session
from api.session import AppSession, SESSION_COOKIE
from typing import Optional
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


def _sign_in_response(session: AppSession, user_service: UserService, email: str, password: str):
    token = user_service.login(email, password)
    session.sign_in(user_service.get_by_id(token["user_id"]), token["access_token"])
    response = RedirectResponse(
        url=VIEW_PATHS[View.DASHBOARD], status_code=status.HTTP_303_SEE_OTHER
    )
    response.set_cookie(
        SESSION_COOKIE,
        token["access_token"],
        httponly=True,
        samesite="lax",
        max_age=user_service.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return response


@router.get("/signup/ui", response_class=HTMLResponse)
@require_view(View.SIGNUP)
async def signup_ui(request: Request, session: AppSession = Depends(get_app_session)):
    return render_template(request, "signup.html", page_context(session, View.SIGNUP))


@router.post("/signup/ui", response_class=HTMLResponse)
async def signup_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    confirm_password: str = Form(...),
    full_name: Optional[str] = Form(None),
    session: AppSession = Depends(get_app_session),
    user_service: UserService = Depends(get_user_service),
):
    try:
        user_service.signup(email, password, full_name, confirm_password)
        # New accounts start their trial signed in
        return _sign_in_response(session, user_service, email, password)
    except UserServiceException as e:
        return render_template(
            request,
            "signup.html",
            page_context(session, View.SIGNUP, error=str(e), email=email, full_name=full_name),
        )


@router.get("/login/ui", response_class=HTMLResponse)
@require_view(View.LOGIN)
async def login_ui(request: Request, session: AppSession = Depends(get_app_session)):
    context = page_context(session, View.LOGIN)
    message = request.query_params.get("message")
    if message:
        context["message"] = message
    return render_template(request, "login.html", context)


@router.post("/login/ui", response_class=HTMLResponse)
async def login_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    session: AppSession = Depends(get_app_session),
    user_service: UserService = Depends(get_user_service),
):
    try:
        return _sign_in_response(session, user_service, email, password)
    except UserServiceException as e:
        return render_template(
            request,
            "login.html",
            page_context(session, View.LOGIN, error=str(e), email=email),
        )


@router.get("/logout/ui")
async def logout_ui(session: AppSession = Depends(get_app_session)):
    session.sign_out()
    response = RedirectResponse(url=VIEW_PATHS[View.LANDING], status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(SESSION_COOKIE)
    return response
