from fastapi import Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from functools import wraps
from typing import Callable, Any
import logging

from api.services.access import FEATURE_ACCESS
from api.services.countdown import format_expiry, utcnow
from api.session import AppSession
from .router import View, VIEW_PATHS, TOOL_FEATURES, resolve_view

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory="templates")
templates.env.filters["expiry"] = format_expiry
templates.env.globals["VIEW_PATHS"] = {view.value: path for view, path in VIEW_PATHS.items()}


def render_template(
    request: Request, template_name: str, context: dict = None, status_code: int = 200
):
    """
    Renders a Jinja2 template with the given context.
    """
    if context is None:
        context = {}
    return templates.TemplateResponse(request, template_name, context, status_code=status_code)


def page_context(session: AppSession, view: View, **extra) -> dict:
    """Shared header data: who is signed in, their status badge and tool access"""
    now = utcnow()
    context = {
        "session": session,
        "current_user": session.user,
        "view": view.value,
        "status": session.status(now),
        "features": {feature: session.has_access(feature, now) for feature in FEATURE_ACCESS},
    }
    context.update(extra)
    return context


def require_view(view: View) -> Callable:
    """
    Decorator guarding a page handler with the view router.

    The handler must take ``request`` and ``session`` keyword arguments. When
    the guards send the visitor elsewhere they are redirected to that view's
    page; a locked tool renders the upsell page in place.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            request = kwargs.get("request")
            session = kwargs.get("session") or AppSession()
            resolution = resolve_view(view, session.user)
            if resolution.view is View.UPSELL:
                feature = TOOL_FEATURES[view]
                return render_template(
                    request,
                    "upsell.html",
                    page_context(session, View.UPSELL, feature=feature, tool=view.value),
                )
            if resolution.view is not view:
                logger.info(f"Redirecting from {view.value} to {resolution.view.value}")
                return RedirectResponse(url=resolution.path, status_code=status.HTTP_303_SEE_OTHER)
            return await func(*args, **kwargs)

        return wrapper

    return decorator
