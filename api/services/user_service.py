from passlib.context import CryptContext
from db.models.user import User
from db.repositories.user_repository import UserRepository
from db.repositories.ban_repository import BanRepository
from api.services.countdown import TRIAL_DURATION, utcnow
from typing import Optional
import jwt
import os
from datetime import datetime, timedelta
import logging
from fastapi import Request

MIN_PASSWORD_LENGTH = 6

logger = logging.getLogger(__name__)


class UserNotFoundException(Exception):
    pass


class UserServiceException(Exception):
    def __init__(self, detail):
        super().__init__(detail)
        self.detail = detail

    def __str__(self):
        return str(self.detail)


class UserService:
    def __init__(self, user_repo: UserRepository, ban_repo: Optional[BanRepository] = None):
        self.user_repo = user_repo
        self.ban_repo = ban_repo
        self.pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
        self.SECRET_KEY = os.getenv("JWT_SECRET", os.getenv("SECRET_KEY", "fixed-secret-key-for-prosoft-hub"))
        self.ALGORITHM = "HS256"
        self.ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

    def get_by_id(self, user_id: int) -> User:
        user = self.user_repo.get_user_by_id(user_id)
        if not user:
            logger.error(f"User with ID {user_id} not found")
            raise UserNotFoundException(f"User with ID {user_id} not found")
        return user

    def validate_new_password(self, password: str, confirm_password: Optional[str] = None):
        if confirm_password is not None and password != confirm_password:
            raise UserServiceException("Passwords do not match")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise UserServiceException(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

    def signup(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        confirm_password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> User:
        """Create an account with a fresh 3-day trial"""
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            logger.error(f"Invalid email address: {email}")
            raise UserServiceException("Invalid email address")
        self.validate_new_password(password, confirm_password)
        if self.user_repo.get_user_by_email(email):
            logger.error(f"Email already registered: {email}")
            raise UserServiceException("Email already registered")

        now = now or utcnow()
        user = User(
            email=email,
            full_name=(full_name or "").strip() or email.split("@")[0],
            hashed_password=self.pwd_context.hash(password),
            subscription_active=False,
            subscription_expires_at=None,
            trial_expires_at=now + TRIAL_DURATION,
            is_trial_used=False,
            is_admin=False,
            created_at=now,
        )
        self.user_repo.create_user(user)
        logger.info(f"Created user {email} with trial until {user.trial_expires_at}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        email = (email or "").strip().lower()
        user = self.user_repo.get_user_by_email(email)
        if not user or not self.pwd_context.verify(password, user.hashed_password):
            logger.error(f"Login failed for email {email}: Invalid credentials")
            raise UserServiceException("Invalid credentials")
        if self.ban_repo is not None and self.ban_repo.is_banned(user.id, utcnow()):
            logger.warning(f"Login refused for banned user {user.id}")
            raise UserServiceException("This account has been suspended")
        return user

    def login(self, email: str, password: str) -> dict:
        user = self.authenticate(email, password)
        access_token = self.create_access_token(
            data={"sub": str(user.id)},
            expires_delta=timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES),
        )
        logger.info(f"Generated token for user {user.id}")
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "user_id": user.id,
        }

    def create_access_token(self, data: dict, expires_delta: timedelta) -> str:
        to_encode = data.copy()
        to_encode.update({"exp": utcnow() + expires_delta})
        return jwt.encode(to_encode, self.SECRET_KEY, algorithm=self.ALGORITHM)

    def get_current_user(self, token: str) -> User:
        try:
            payload = jwt.decode(token, self.SECRET_KEY, algorithms=[self.ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.error("Token has expired")
            raise UserServiceException("Token expired")
        except jwt.PyJWTError as e:
            logger.error(f"JWT decode error: {str(e)}")
            raise UserServiceException("Not authenticated")

        user_id = payload.get("sub")
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            logger.error(f"Invalid user_id in token: {user_id}")
            raise UserServiceException("Not authenticated")
        user = self.user_repo.get_user_by_id(user_id)
        if user is None:
            logger.error(f"No user found for ID {user_id} in database")
            raise UserServiceException("Not authenticated")
        if self.ban_repo is not None and self.ban_repo.is_banned(user.id, utcnow()):
            logger.warning(f"Rejected token for banned user {user.id}")
            raise UserServiceException("This account has been suspended")
        return user

    def token_from_request(self, request: Request) -> Optional[str]:
        token = request.cookies.get("access_token")
        if not token:
            auth = request.headers.get("Authorization") or ""
            if auth.lower().startswith("bearer "):
                token = auth.split(" ", 1)[1].strip()
        if token and token.lower().startswith("bearer "):
            token = token.split(" ", 1)[1].strip()
        return token or None

    async def get_current_user_from_request(self, request: Request) -> User:
        token = self.token_from_request(request)
        if not token:
            raise UserServiceException("Not authenticated")
        return self.get_current_user(token)

    def update_profile(self, user_id: int, full_name: str) -> User:
        full_name = (full_name or "").strip()
        if not full_name:
            raise UserServiceException("Full name is required")
        user = self.user_repo.update_user(user_id, {"full_name": full_name})
        if user is None:
            raise UserNotFoundException(f"User with ID {user_id} not found")
        logger.info(f"Updated profile for user {user_id}")
        return user

    def change_password(
        self, user_id: int, current_password: str, new_password: str, confirm_password: str
    ) -> User:
        user = self.get_by_id(user_id)
        self.validate_new_password(new_password, confirm_password)
        if not self.pwd_context.verify(current_password or "", user.hashed_password):
            raise UserServiceException("Current password is incorrect")
        user = self.user_repo.update_user(
            user_id, {"hashed_password": self.pwd_context.hash(new_password)}
        )
        logger.info(f"Changed password for user {user_id}")
        return user
