# api/dependencies.py
from fastapi import Depends, Request, HTTPException, status
from db.engine import SessionLocal
from sqlalchemy.orm import Session
from db.repositories.user_repository import UserRepository
from db.repositories.ban_repository import BanRepository
from db.repositories.tip_repository import TipRepository
from db.repositories.prompt_repository import PromptRepository
from db.repositories.admin_action_repository import AdminActionRepository
from db.repositories.settings_repository import SettingsRepository
from db.repositories.cancellation_repository import CancellationRepository
from api.services.user_service import UserService, UserServiceException
from api.services.admin_service import AdminService
from api.services.prompt_service import PromptService
from api.services.arbitrage_service import ArbitrageService
from api.services.billing_service import BillingService
from api.services.retention_service import RetentionService
from api.session import AppSession
import logging

logger = logging.getLogger(__name__)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_user_service(db: Session = Depends(get_db)):
    return UserService(UserRepository(db), BanRepository(db))


def get_admin_service(db: Session = Depends(get_db)):
    return AdminService(
        UserRepository(db), BanRepository(db), TipRepository(db), AdminActionRepository(db)
    )


def get_prompt_service(db: Session = Depends(get_db)):
    return PromptService(PromptRepository(db))


def get_arbitrage_service():
    return ArbitrageService()


def get_billing_service(db: Session = Depends(get_db)):
    return BillingService(UserRepository(db))


def get_retention_service(db: Session = Depends(get_db)):
    return RetentionService(CancellationRepository(db))


def get_tip_repository(db: Session = Depends(get_db)):
    return TipRepository(db)


def get_settings_repository(db: Session = Depends(get_db)):
    return SettingsRepository(db)


async def get_current_user(
    request: Request,
    user_service: UserService = Depends(get_user_service),
):
    try:
        user = await user_service.get_current_user_from_request(request)
        return user
    except UserServiceException as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))


async def get_app_session(
    request: Request,
    user_service: UserService = Depends(get_user_service),
) -> AppSession:
    """Session for the request; anonymous when the cookie is missing or stale"""
    session = AppSession()
    token = user_service.token_from_request(request)
    if not token:
        return session
    try:
        session.sign_in(user_service.get_current_user(token), token)
    except UserServiceException as e:
        logger.info(f"Ignoring invalid session token: {e}")
    return session


async def require_admin(current_user=Depends(get_current_user)):
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
