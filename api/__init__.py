from fastapi import APIRouter
from .auth import router as auth_router
from .access import router as access_router
from .billing import router as billing_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(access_router)
router.include_router(billing_router)
