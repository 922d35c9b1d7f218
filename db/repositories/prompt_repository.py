from sqlalchemy.orm import Session
from db.models.prompt_generation import PromptGeneration


class PromptRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, generation: PromptGeneration) -> PromptGeneration:
        self.db.add(generation)
        self.db.commit()
        self.db.refresh(generation)
        return generation

    def list_recent(self, user_id: int, limit: int = 5) -> list[PromptGeneration]:
        return (
            self.db.query(PromptGeneration)
            .filter(PromptGeneration.user_id == user_id)
            .order_by(PromptGeneration.created_at.desc(), PromptGeneration.id.desc())
            .limit(limit)
            .all()
        )
