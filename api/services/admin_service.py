from db.models.ban import UserBan
from db.models.tip import Tip, CATEGORIES, CONFIDENCE_LEVELS
from db.models.user import User
from db.repositories.user_repository import UserRepository
from db.repositories.ban_repository import BanRepository
from db.repositories.tip_repository import TipRepository
from db.repositories.admin_action_repository import AdminActionRepository
from api.services.access import subscription_status
from api.services.countdown import SUBSCRIPTION_DURATION, utcnow
from sqlalchemy.exc import SQLAlchemyError
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import logging

logger = logging.getLogger(__name__)

USER_FILTERS = ("all", "active", "trial", "expired", "inactive", "banned")


class AdminServiceException(Exception):
    def __init__(self, detail):
        super().__init__(detail)
        self.detail = detail

    def __str__(self):
        return str(self.detail)


@dataclass
class UserRow:
    user: User
    status: object
    is_banned: bool


class AdminService:
    """
    Back-office mutations over users, bans and tips.

    Each mutation is a single commit of one row plus its audit entry. A
    failed write is logged, rolled back and reported as AdminServiceException.
    """

    def __init__(
        self,
        user_repo: UserRepository,
        ban_repo: BanRepository,
        tip_repo: TipRepository,
        action_repo: AdminActionRepository,
    ):
        self.user_repo = user_repo
        self.ban_repo = ban_repo
        self.tip_repo = tip_repo
        self.action_repo = action_repo

    def _rollback(self, action: str, error: Exception):
        logger.error(f"Admin action '{action}' failed: {error}")
        self.user_repo.db.rollback()
        raise AdminServiceException(f"Could not complete {action.replace('_', ' ')}")

    def _require_user(self, user_id: int) -> User:
        user = self.user_repo.get_user_by_id(user_id)
        if not user:
            raise AdminServiceException(f"User {user_id} not found")
        return user

    def _require_tip(self, tip_id: int) -> Tip:
        tip = self.tip_repo.get_by_id(tip_id)
        if not tip:
            raise AdminServiceException(f"Tip {tip_id} not found")
        return tip

    # Users

    def list_users(self, search: str = "", status: str = "all", now: Optional[datetime] = None) -> list[UserRow]:
        if status not in USER_FILTERS:
            raise AdminServiceException(f"Unknown filter: {status}")
        now = now or utcnow()
        banned = self.ban_repo.banned_user_ids(now)
        rows = []
        for user in self.user_repo.list_users(search=search or None):
            row = UserRow(user=user, status=subscription_status(user, now), is_banned=user.id in banned)
            if status == "banned" and not row.is_banned:
                continue
            if status not in ("all", "banned") and row.status.kind != status:
                continue
            rows.append(row)
        return rows

    def count_by_status(self, now: Optional[datetime] = None) -> dict:
        counts = {key: 0 for key in USER_FILTERS}
        for row in self.list_users(now=now):
            counts["all"] += 1
            counts[row.status.kind] += 1
            if row.is_banned:
                counts["banned"] += 1
        return counts

    def grant_subscription(
        self, admin: User, user_id: int, days: int = SUBSCRIPTION_DURATION.days, now: Optional[datetime] = None
    ) -> User:
        if days <= 0:
            raise AdminServiceException("Days must be positive")
        self._require_user(user_id)
        expires_at = (now or utcnow()) + timedelta(days=days)
        try:
            self.action_repo.add(
                admin.id, "subscription_grant", target_user_id=user_id, details={"days": days}
            )
            user = self.user_repo.update_user(
                user_id,
                {
                    "subscription_active": True,
                    "subscription_expires_at": expires_at,
                    "reminder_stage": None,
                },
            )
        except SQLAlchemyError as e:
            self._rollback("subscription_grant", e)
        logger.info(f"Admin {admin.id} granted {days} days to user {user_id}")
        return user

    def revoke_subscription(self, admin: User, user_id: int) -> User:
        self._require_user(user_id)
        try:
            self.action_repo.add(admin.id, "subscription_revoke", target_user_id=user_id)
            user = self.user_repo.update_user(
                user_id, {"subscription_active": False, "subscription_expires_at": None}
            )
        except SQLAlchemyError as e:
            self._rollback("subscription_revoke", e)
        logger.info(f"Admin {admin.id} revoked subscription of user {user_id}")
        return user

    def ban_user(
        self,
        admin: User,
        user_id: int,
        reason: str,
        duration_hours: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> UserBan:
        if user_id == admin.id:
            raise AdminServiceException("Cannot ban your own account")
        reason = (reason or "").strip() or "Administrative action"
        if duration_hours is not None and duration_hours <= 0:
            raise AdminServiceException("Ban duration must be positive")
        self._require_user(user_id)
        now = now or utcnow()
        ban = UserBan(
            user_id=user_id,
            reason=reason,
            is_active=True,
            expires_at=now + timedelta(hours=duration_hours) if duration_hours else None,
            created_at=now,
            created_by=admin.id,
        )
        try:
            self.action_repo.add(
                admin.id,
                "user_ban",
                target_user_id=user_id,
                details={"reason": reason, "duration_hours": duration_hours},
            )
            ban = self.ban_repo.create(ban)
        except SQLAlchemyError as e:
            self._rollback("user_ban", e)
        logger.info(f"Admin {admin.id} banned user {user_id}: {reason}")
        return ban

    def unban_user(self, admin: User, user_id: int) -> int:
        self._require_user(user_id)
        try:
            self.action_repo.add(admin.id, "user_unban", target_user_id=user_id)
            lifted = self.ban_repo.deactivate_all(user_id)
        except SQLAlchemyError as e:
            self._rollback("user_unban", e)
        logger.info(f"Admin {admin.id} lifted {lifted} ban(s) of user {user_id}")
        return lifted

    def recent_actions(self, limit: int = 20):
        return self.action_repo.list_recent(limit)

    # Tips

    def _validate_tip(self, category: Optional[str], confidence_level: Optional[str]):
        if category is not None and category not in CATEGORIES:
            raise AdminServiceException(f"Category must be one of: {', '.join(CATEGORIES)}")
        if confidence_level is not None and confidence_level not in CONFIDENCE_LEVELS:
            raise AdminServiceException(
                f"Confidence must be one of: {', '.join(CONFIDENCE_LEVELS)}"
            )

    def list_tips(self) -> list[Tip]:
        return self.tip_repo.list_all()

    def create_tip(
        self,
        admin: User,
        title: str,
        content: str,
        category: str = "vip",
        sport: Optional[str] = None,
        confidence_level: str = "medium",
    ) -> Tip:
        title, content = (title or "").strip(), (content or "").strip()
        if not title or not content:
            raise AdminServiceException("Title and content are required")
        self._validate_tip(category, confidence_level)
        tip = Tip(
            title=title,
            content=content,
            category=category,
            sport=(sport or "").strip() or None,
            confidence_level=confidence_level,
            is_active=True,
            created_by=admin.id,
        )
        try:
            self.tip_repo.db.add(tip)
            self.tip_repo.db.flush()
            self.action_repo.add(admin.id, "tip_create", target_tip_id=tip.id, details={"title": title})
            self.tip_repo.db.commit()
            self.tip_repo.db.refresh(tip)
        except SQLAlchemyError as e:
            self._rollback("tip_create", e)
        logger.info(f"Admin {admin.id} created tip {tip.id}")
        return tip

    def update_tip(self, admin: User, tip_id: int, **fields) -> Tip:
        self._require_tip(tip_id)
        self._validate_tip(fields.get("category"), fields.get("confidence_level"))
        for key in ("title", "content"):
            if key in fields and fields[key] is not None and not fields[key].strip():
                raise AdminServiceException(f"{key.capitalize()} cannot be empty")
        try:
            self.action_repo.add(admin.id, "tip_update", target_tip_id=tip_id, details=fields)
            tip = self.tip_repo.update(tip_id, fields)
        except SQLAlchemyError as e:
            self._rollback("tip_update", e)
        logger.info(f"Admin {admin.id} updated tip {tip_id}")
        return tip

    def toggle_tip(self, admin: User, tip_id: int) -> Tip:
        tip = self._require_tip(tip_id)
        new_status = not tip.is_active
        try:
            self.action_repo.add(
                admin.id, "tip_toggle", target_tip_id=tip_id, details={"is_active": new_status}
            )
            tip = self.tip_repo.update(tip_id, {"is_active": new_status})
        except SQLAlchemyError as e:
            self._rollback("tip_toggle", e)
        return tip

    def delete_tip(self, admin: User, tip_id: int) -> None:
        self._require_tip(tip_id)
        try:
            self.action_repo.add(admin.id, "tip_delete", target_tip_id=tip_id)
            self.tip_repo.delete(tip_id)
        except SQLAlchemyError as e:
            self._rollback("tip_delete", e)
        logger.info(f"Admin {admin.id} deleted tip {tip_id}")
