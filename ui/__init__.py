from fastapi import APIRouter
from .router import router as view_router
from .auth import router as auth_router
from .landing import router as landing_router
from .dashboard import router as dashboard_router
from .profile import router as profile_router
from .tools import router as tools_router
from .billing import router as billing_router
from .admin import router as admin_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(landing_router)
router.include_router(auth_router)
router.include_router(dashboard_router)
router.include_router(profile_router)
router.include_router(tools_router)
router.include_router(billing_router)
router.include_router(admin_router)
router.include_router(settings_router)
router.include_router(view_router)
