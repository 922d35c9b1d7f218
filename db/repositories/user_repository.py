from sqlalchemy import or_
from sqlalchemy.orm import Session
from db.models.user import User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def create_user(self, user: User):
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def get_user_by_stripe_customer(self, stripe_customer_id: str) -> User | None:
        return (
            self.db.query(User)
            .filter(User.stripe_customer_id == stripe_customer_id)
            .first()
        )

    def update_user(self, user_id: int, update_data: dict) -> User | None:
        """Update user with dict of fields"""
        existing_user = self.get_user_by_id(user_id)
        if not existing_user:
            return None
        for key, value in update_data.items():
            if hasattr(existing_user, key):
                setattr(existing_user, key, value)
        self.db.commit()
        self.db.refresh(existing_user)
        return existing_user

    def get_user_by_email(self, email: str):
        return self.db.query(User).filter(User.email == email).first()

    def get_user_by_id(self, user_id: int):
        return self.db.query(User).filter(User.id == user_id).first()

    def list_users(self, limit: int = None, search: str = None):
        """Get users newest first, optionally limited or matched on email/name"""
        query = self.db.query(User)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(User.email.ilike(pattern), User.full_name.ilike(pattern))
            )
        query = query.order_by(User.created_at.desc(), User.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def count_users(self) -> int:
        return self.db.query(User).count()

    def delete_user(self, user_id: int):
        """Delete a user"""
        user = self.get_user_by_id(user_id)
        if user:
            self.db.delete(user)
            self.db.commit()
            return True
        return False
