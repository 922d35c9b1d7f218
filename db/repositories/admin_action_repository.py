from sqlalchemy.orm import Session
from db.models.admin_action import AdminAction
import json


class AdminActionRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        admin_id: int,
        action_type: str,
        target_user_id: int = None,
        target_tip_id: int = None,
        details: dict = None,
    ) -> AdminAction:
        """Stage an audit row; the caller's commit persists it with the mutation"""
        action = AdminAction(
            admin_id=admin_id,
            action_type=action_type,
            target_user_id=target_user_id,
            target_tip_id=target_tip_id,
            details=json.dumps(details, default=str) if details else None,
        )
        self.db.add(action)
        return action

    def list_recent(self, limit: int = 50) -> list[AdminAction]:
        return (
            self.db.query(AdminAction)
            .order_by(AdminAction.created_at.desc(), AdminAction.id.desc())
            .limit(limit)
            .all()
        )
