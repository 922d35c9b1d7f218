"""
View routing for the dashboard.

The view a visitor sees is a small state machine keyed by the URL fragment
(``#dashboard``, ``#arbitrage``, ``#success?session_id=...``). Every
transition goes through resolve_view, which applies the guards:

- unauthenticated visitors only reach landing, login, signup and success;
- signed-in users are moved off landing, login and signup to the dashboard;
- a tool view without access to its feature becomes the upsell view;
- admin without the admin flag silently becomes the dashboard.

Each view also has a canonical server path. ``GET /view/{fragment}`` is
the fragment-change trigger: it resolves and redirects to that path.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from urllib.parse import parse_qsl, urlencode
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from api.dependencies import get_app_session
from api.services.access import (
    FEATURE_ARBITRAGE,
    FEATURE_PROMPT_GENERATOR,
    FEATURE_VIP_TIPS,
    has_access,
)
from api.services.countdown import utcnow
from api.session import AppSession

logger = logging.getLogger(__name__)


class View(str, Enum):
    LANDING = "landing"
    LOGIN = "login"
    SIGNUP = "signup"
    DASHBOARD = "dashboard"
    PROFILE = "profile"
    PROMPT_GENERATOR = "prompt-generator"
    ARBITRAGE = "arbitrage"
    VIP_TIPS = "vip-tips"
    ADMIN = "admin"
    SUCCESS = "success"
    # Rendered in place of a tool the user cannot open; has no fragment
    UPSELL = "upsell"

    @classmethod
    def from_fragment(cls, fragment: Optional[str]) -> Optional["View"]:
        view, _ = parse_fragment(fragment)
        return view

    @property
    def is_tool(self) -> bool:
        return self in TOOL_FEATURES

    @property
    def is_public(self) -> bool:
        return self in (View.LANDING, View.LOGIN, View.SIGNUP, View.SUCCESS)


TOOL_FEATURES = {
    View.PROMPT_GENERATOR: FEATURE_PROMPT_GENERATOR,
    View.ARBITRAGE: FEATURE_ARBITRAGE,
    View.VIP_TIPS: FEATURE_VIP_TIPS,
}

VIEW_PATHS = {
    View.LANDING: "/",
    View.LOGIN: "/login/ui",
    View.SIGNUP: "/signup/ui",
    View.DASHBOARD: "/dashboard/ui",
    View.PROFILE: "/profile/ui",
    View.PROMPT_GENERATOR: "/tools/prompt-generator/ui",
    View.ARBITRAGE: "/tools/arbitrage/ui",
    View.VIP_TIPS: "/tools/vip-tips/ui",
    View.ADMIN: "/admin/ui",
    View.SUCCESS: "/success/ui",
}


def parse_fragment(fragment: Optional[str]) -> tuple[Optional[View], dict]:
    """Split "#success?session_id=cs_1" into (View.SUCCESS, {"session_id": "cs_1"})"""
    raw = (fragment or "").strip().lstrip("#")
    name, _, query = raw.partition("?")
    params = dict(parse_qsl(query))
    name = name.strip("/").lower()
    if not name or name == View.UPSELL.value:
        return None, params
    try:
        return View(name), params
    except ValueError:
        return None, params


@dataclass(frozen=True)
class Resolution:
    view: View
    fragment: str
    redirected: bool
    requested: Optional[View] = None
    params: dict = field(default_factory=dict)

    @property
    def path(self) -> str:
        """Canonical server path; the upsell renders on the tool's own path"""
        target = self.requested if self.view is View.UPSELL else self.view
        path = VIEW_PATHS[target]
        if self.params:
            path = f"{path}?{urlencode(self.params)}"
        return path


def resolve_view(
    requested: Optional[View],
    user=None,
    now: Optional[datetime] = None,
    params: Optional[dict] = None,
) -> Resolution:
    params = dict(params or {})
    authenticated = user is not None
    home = View.DASHBOARD if authenticated else View.LANDING

    if requested is None or requested is View.UPSELL:
        view = home
    elif requested is View.SUCCESS:
        view = requested
    elif not authenticated:
        view = requested if requested in (View.LOGIN, View.SIGNUP) else View.LANDING
    elif requested in (View.LANDING, View.LOGIN, View.SIGNUP):
        view = View.DASHBOARD
    elif requested.is_tool and not has_access(user, TOOL_FEATURES[requested], now or utcnow()):
        return Resolution(
            view=View.UPSELL,
            fragment=f"#{requested.value}",
            redirected=True,
            requested=requested,
        )
    elif requested is View.ADMIN and not getattr(user, "is_admin", False):
        view = View.DASHBOARD
    else:
        view = requested

    if view is not requested:
        params = {}
    fragment = f"#{view.value}"
    if params:
        fragment = f"{fragment}?{urlencode(params)}"
    return Resolution(
        view=view,
        fragment=fragment,
        redirected=view is not requested,
        requested=requested,
        params=params,
    )


class ViewRouter:
    """
    Current view of one session.

    The state is re-resolved on every trigger: a fragment change, an
    authentication change or an in-app navigation. There is no terminal
    state.
    """

    def __init__(self, user=None, clock=utcnow):
        self.user = user
        self.clock = clock
        self.state: Optional[Resolution] = None
        self.fragment = ""

    @property
    def view(self) -> Optional[View]:
        return self.state.view if self.state else None

    def _apply(self, requested: Optional[View], params: Optional[dict] = None) -> Resolution:
        self.state = resolve_view(requested, self.user, self.clock(), params)
        self.fragment = self.state.fragment
        return self.state

    def load(self, fragment: Optional[str]) -> Resolution:
        requested, params = parse_fragment(fragment)
        return self._apply(requested, params)

    def on_fragment_change(self, fragment: Optional[str]) -> Resolution:
        return self.load(fragment)

    def on_auth_change(self, user) -> Resolution:
        self.user = user
        if self.state is None:
            return self._apply(None)
        current = self.state.requested if self.state.view is View.UPSELL else self.state.view
        return self._apply(current, self.state.params)

    def navigate(self, view: View) -> Resolution:
        return self._apply(view)


router = APIRouter()


@router.get("/view/{fragment:path}")
async def view_redirect(request: Request, fragment: str, session: AppSession = Depends(get_app_session)):
    """Resolve a fragment-selected view and redirect to its canonical page"""
    if request.url.query:
        fragment = f"{fragment}?{request.url.query}"
    view_router = ViewRouter(session.user)
    resolution = view_router.load(fragment)
    if resolution.redirected:
        logger.info(f"View {fragment!r} resolved to {resolution.view.value}")
    return RedirectResponse(url=resolution.path, status_code=status.HTTP_303_SEE_OTHER)
