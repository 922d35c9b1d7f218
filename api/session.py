from datetime import datetime
from typing import Optional
import logging

from db.models.user import User
from db.repositories.user_repository import UserRepository
from api.services.access import has_access, subscription_status, SubscriptionStatus
from api.services.countdown import utcnow

logger = logging.getLogger(__name__)

SESSION_COOKIE = "access_token"


class AppSession:
    """
    The signed-in state of one request.

    Created by the get_app_session dependency, refreshed on auth events
    (sign_in, refresh) and torn down by sign_out. Access answers are never
    cached on the session; each call re-derives them from the user row.
    """

    def __init__(self, user: Optional[User] = None, token: Optional[str] = None):
        self.user = user
        self.token = token
        self.started_at = utcnow()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return bool(self.user is not None and self.user.is_admin)

    def sign_in(self, user: User, token: str):
        logger.info(f"Session signed in for user {user.id}")
        self.user = user
        self.token = token

    def refresh(self, user_repo: UserRepository) -> Optional[User]:
        """Reload the user row after it changed in the store"""
        if self.user is None:
            return None
        user = user_repo.get_user_by_id(self.user.id)
        if user is None:
            logger.warning(f"User {self.user.id} vanished, ending session")
            self.sign_out()
            return None
        self.user = user
        return user

    def sign_out(self):
        if self.user is not None:
            logger.info(f"Session signed out for user {self.user.id}")
        self.user = None
        self.token = None

    def has_access(self, feature_id: Optional[str] = None, now: Optional[datetime] = None) -> bool:
        return has_access(self.user, feature_id, now)

    def status(self, now: Optional[datetime] = None) -> SubscriptionStatus:
        return subscription_status(self.user, now)
