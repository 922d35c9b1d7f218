from sqlalchemy import or_
from sqlalchemy.orm import Session
from db.models.ban import UserBan
from datetime import datetime


class BanRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, ban: UserBan) -> UserBan:
        self.db.add(ban)
        self.db.commit()
        self.db.refresh(ban)
        return ban

    def list_active(self, user_id: int, now: datetime) -> list[UserBan]:
        return (
            self.db.query(UserBan)
            .filter(
                UserBan.user_id == user_id,
                UserBan.is_active.is_(True),
                or_(UserBan.expires_at.is_(None), UserBan.expires_at > now),
            )
            .all()
        )

    def is_banned(self, user_id: int, now: datetime) -> bool:
        return len(self.list_active(user_id, now)) > 0

    def banned_user_ids(self, now: datetime) -> set[int]:
        rows = (
            self.db.query(UserBan.user_id)
            .filter(
                UserBan.is_active.is_(True),
                or_(UserBan.expires_at.is_(None), UserBan.expires_at > now),
            )
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    def deactivate_all(self, user_id: int) -> int:
        """Lift every active ban of a user; returns the number of rows touched"""
        count = (
            self.db.query(UserBan)
            .filter(UserBan.user_id == user_id, UserBan.is_active.is_(True))
            .update({UserBan.is_active: False}, synchronize_session="fetch")
        )
        self.db.commit()
        return count
