from pydantic import BaseModel, EmailStr, field_validator, constr
from datetime import datetime
from typing import Optional
import re

from api.services.user_service import MIN_PASSWORD_LENGTH


class UserCreate(BaseModel):
    email: EmailStr
    password: constr(min_length=1, max_length=100)  # type: ignore
    confirm_password: Optional[str] = None
    full_name: Optional[constr(max_length=200, strip_whitespace=True)] = None  # type: ignore

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, password):
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        return password

    @field_validator("full_name")
    @classmethod
    def sanitize_name(cls, name):
        if name:
            # Remove any HTML/script tags
            name = re.sub(r'<[^>]+>', '', name)
            return name.strip()
        return name


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    is_admin: bool = False
    subscription_active: bool = False
    subscription_expires_at: Optional[datetime] = None
    trial_expires_at: Optional[datetime] = None
    is_trial_used: bool = False

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            is_admin=bool(user.is_admin),
            subscription_active=bool(user.subscription_active),
            subscription_expires_at=user.subscription_expires_at,
            trial_expires_at=user.trial_expires_at,
            is_trial_used=bool(user.is_trial_used),
        )


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class CountdownResponse(BaseModel):
    has_expiry: bool
    expires_at: Optional[str]
    total_seconds: int
    days: int
    hours: int
    minutes: int
    seconds: int
    formatted: str
    is_expired: bool
    is_expiring_soon: bool
    progress_percentage: float
    urgency: str


class AccessResponse(BaseModel):
    tier: str
    has_access: bool
    features: dict[str, bool]
    status: dict


class CheckoutResponse(BaseModel):
    url: str


class PaymentStatusResponse(BaseModel):
    status: str
    grants_access: bool
    cancel_at_period_end: bool = False
