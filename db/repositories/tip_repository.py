from sqlalchemy.orm import Session
from db.models.tip import Tip


class TipRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, tip: Tip) -> Tip:
        self.db.add(tip)
        self.db.commit()
        self.db.refresh(tip)
        return tip

    def get_by_id(self, tip_id: int) -> Tip | None:
        return self.db.query(Tip).filter(Tip.id == tip_id).first()

    def list_all(self) -> list[Tip]:
        return self.db.query(Tip).order_by(Tip.created_at.desc(), Tip.id.desc()).all()

    def list_active(
        self,
        category: str,
        sport: str | None = None,
        confidence_level: str | None = None,
    ) -> list[Tip]:
        query = self.db.query(Tip).filter(
            Tip.category == category, Tip.is_active.is_(True)
        )
        if sport:
            query = query.filter(Tip.sport == sport)
        if confidence_level:
            query = query.filter(Tip.confidence_level == confidence_level)
        return query.order_by(Tip.created_at.desc(), Tip.id.desc()).all()

    def list_sports(self, category: str) -> list[str]:
        rows = (
            self.db.query(Tip.sport)
            .filter(Tip.category == category, Tip.is_active.is_(True), Tip.sport.isnot(None))
            .distinct()
            .all()
        )
        return sorted(row[0] for row in rows)

    def update(self, tip_id: int, update_data: dict) -> Tip | None:
        tip = self.get_by_id(tip_id)
        if not tip:
            return None
        for key, value in update_data.items():
            if value is not None and hasattr(tip, key):
                setattr(tip, key, value)
        self.db.commit()
        self.db.refresh(tip)
        return tip

    def delete(self, tip_id: int) -> bool:
        tip = self.get_by_id(tip_id)
        if not tip:
            return False
        self.db.delete(tip)
        self.db.commit()
        return True
