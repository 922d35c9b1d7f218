from fastapi import APIRouter, Request, Form, Depends
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool
from .router import View
from .utils import render_template, page_context, require_view
from api.dependencies import get_app_session, get_settings_repository
from api.services.email_service import EmailService
from api.session import AppSession
from db.repositories.settings_repository import SettingsRepository, DEFAULT_SENDER_NAME
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional
import logging

router = APIRouter(prefix="/admin/settings")
logger = logging.getLogger(__name__)


def _smtp_settings(settings_repo: SettingsRepository) -> dict:
    """Current SMTP settings (from env or database) without the password"""
    config = settings_repo.smtp_config()
    return {
        "smtp_host": config["SMTP_HOST"] or "",
        "smtp_port": config["SMTP_PORT"] or "587",
        "smtp_user": config["SMTP_USER"] or "",
        "sender_email": config["SENDER_EMAIL"] or "",
        "sender_name": config["SENDER_NAME"],
        "smtp_use_tls": config["SMTP_USE_TLS"],
    }


def _settings_page(request: Request, session: AppSession, settings_repo: SettingsRepository, **extra):
    return render_template(
        request,
        "settings.html",
        page_context(
            session,
            View.ADMIN,
            smtp_settings=_smtp_settings(settings_repo),
            email_configured=settings_repo.is_smtp_configured(),
            **extra,
        ),
    )


@router.get("/ui", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def settings_ui(
    request: Request,
    session: AppSession = Depends(get_app_session),
    settings_repo: SettingsRepository = Depends(get_settings_repository),
):
    return _settings_page(request, session, settings_repo)


@router.post("/smtp", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def update_smtp_settings(
    request: Request,
    smtp_host: str = Form(...),
    smtp_port: str = Form(...),
    smtp_user: str = Form(...),
    smtp_password: Optional[str] = Form(None),
    sender_email: str = Form(...),
    sender_name: str = Form(DEFAULT_SENDER_NAME),
    smtp_use_tls: Optional[str] = Form(None),
    session: AppSession = Depends(get_app_session),
    settings_repo: SettingsRepository = Depends(get_settings_repository),
):
    if not smtp_port.strip().isdigit():
        return _settings_page(request, session, settings_repo, error="SMTP port must be a number")
    try:
        settings_repo.set_setting("SMTP_HOST", smtp_host.strip())
        settings_repo.set_setting("SMTP_PORT", smtp_port.strip())
        settings_repo.set_setting("SMTP_USER", smtp_user.strip())
        if smtp_password:  # Only update password if provided
            settings_repo.set_setting("SMTP_PASSWORD", smtp_password, is_secret=True)
        settings_repo.set_setting("SENDER_EMAIL", sender_email.strip())
        settings_repo.set_setting("SENDER_NAME", sender_name.strip() or DEFAULT_SENDER_NAME)
        settings_repo.set_setting("SMTP_USE_TLS", "true" if smtp_use_tls else "false")
    except SQLAlchemyError as e:
        logger.error(f"Failed to save SMTP settings: {e}")
        settings_repo.db.rollback()
        return _settings_page(request, session, settings_repo, error="Could not save settings")
    logger.info(f"Admin {session.user.id} updated SMTP settings")
    return _settings_page(
        request, session, settings_repo, success="SMTP settings saved. Expiry reminders are enabled."
    )


@router.post("/test-email", response_class=HTMLResponse)
@require_view(View.ADMIN)
async def test_email(
    request: Request,
    test_email_address: str = Form(...),
    session: AppSession = Depends(get_app_session),
    settings_repo: SettingsRepository = Depends(get_settings_repository),
):
    email_service = EmailService.from_settings(settings_repo)
    if email_service is None:
        return _settings_page(
            request,
            session,
            settings_repo,
            error="SMTP settings are incomplete. Please configure all required fields first.",
        )
    success, message = await run_in_threadpool(
        email_service.send_email,
        to_email=test_email_address,
        subject="ProSoft Hub test email",
        html_content="""
            <h2>Email Configuration Test</h2>
            <p>Your ProSoft Hub email configuration is working.</p>
            <p>Members will now receive reminders before their VIP access expires.</p>
        """,
    )
    if success:
        return _settings_page(
            request, session, settings_repo, success=f"Test email sent to {test_email_address}."
        )
    return _settings_page(request, session, settings_repo, error=f"Failed to send test email: {message}")
