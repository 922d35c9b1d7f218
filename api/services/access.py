"""
Access gating for the paid tools.

A user's access is derived on every call from (subscription_active,
subscription_expires_at, trial_expires_at, is_trial_used, now). It is
never stored.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Optional

from api.services.countdown import (
    Countdown,
    KIND_SUBSCRIPTION,
    KIND_TRIAL,
    NO_EXPIRY,
    compute_countdown,
    ensure_utc,
    format_expiry,
    utcnow,
    window_for,
)

STATUS_ACTIVE = "active"
STATUS_TRIAL = "trial"
STATUS_EXPIRED = "expired"
STATUS_INACTIVE = "inactive"


class AccessTier(IntEnum):
    FREE = 0
    TRIAL = 1
    PREMIUM = 2

    @property
    def label(self) -> str:
        return self.name.lower()


FEATURE_PROMPT_GENERATOR = "prompt_generator"
FEATURE_ARBITRAGE = "arbitrage"
FEATURE_VIP_TIPS = "vip_tips"

# Minimum tier per feature; features not listed are open to everyone
FEATURE_ACCESS = {
    FEATURE_PROMPT_GENERATOR: AccessTier.TRIAL,
    FEATURE_ARBITRAGE: AccessTier.TRIAL,
    FEATURE_VIP_TIPS: AccessTier.TRIAL,
}


def has_subscription_access(user, now: Optional[datetime] = None) -> bool:
    if user is None or not getattr(user, "subscription_active", False):
        return False
    expires_at = ensure_utc(getattr(user, "subscription_expires_at", None))
    if expires_at is None:
        return True
    return (ensure_utc(now) or utcnow()) < expires_at


def has_trial_access(user, now: Optional[datetime] = None) -> bool:
    if user is None or getattr(user, "is_trial_used", False):
        return False
    expires_at = ensure_utc(getattr(user, "trial_expires_at", None))
    if expires_at is None:
        return False
    return (ensure_utc(now) or utcnow()) < expires_at


def access_tier(user, now: Optional[datetime] = None) -> AccessTier:
    now = ensure_utc(now) or utcnow()
    if has_subscription_access(user, now):
        return AccessTier.PREMIUM
    if has_trial_access(user, now):
        return AccessTier.TRIAL
    return AccessTier.FREE


def has_access(user, feature_id: Optional[str] = None, now: Optional[datetime] = None) -> bool:
    """
    True if the user may use a feature right now.

    Without a feature id this answers "does the user hold an active
    subscription or trial". Unknown feature ids are not gated.
    """
    if feature_id is not None and feature_id not in FEATURE_ACCESS:
        return True
    required = FEATURE_ACCESS.get(feature_id, AccessTier.TRIAL)
    return access_tier(user, now) >= required


@dataclass(frozen=True)
class SubscriptionStatus:
    kind: str
    text: str
    has_access: bool
    tier: AccessTier
    countdown: Countdown
    expires_at: Optional[datetime] = None

    @property
    def formatted_expiry(self) -> str:
        return format_expiry(self.expires_at)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "text": self.text,
            "has_access": self.has_access,
            "tier": self.tier.label,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "formatted_expiry": self.formatted_expiry,
            "countdown": self.countdown.to_dict(),
        }


def subscription_status(user, now: Optional[datetime] = None) -> SubscriptionStatus:
    """Status badge data for a user; an active subscription wins over a trial."""
    now = ensure_utc(now) or utcnow()
    if user is None:
        return SubscriptionStatus(STATUS_INACTIVE, "Not signed in", False, AccessTier.FREE, NO_EXPIRY)

    sub_expires = ensure_utc(getattr(user, "subscription_expires_at", None))
    trial_expires = ensure_utc(getattr(user, "trial_expires_at", None))

    if has_subscription_access(user, now):
        countdown = compute_countdown(sub_expires, now, window_for(KIND_SUBSCRIPTION))
        text = "Active VIP subscription"
        if countdown.has_expiry:
            text = f"{text} ({countdown.formatted} left)"
        return SubscriptionStatus(STATUS_ACTIVE, text, True, AccessTier.PREMIUM, countdown, sub_expires)

    if has_trial_access(user, now):
        countdown = compute_countdown(trial_expires, now, window_for(KIND_TRIAL))
        return SubscriptionStatus(
            STATUS_TRIAL,
            f"3-day VIP trial ({countdown.formatted} left)",
            True,
            AccessTier.TRIAL,
            countdown,
            trial_expires,
        )

    if getattr(user, "subscription_active", False) or sub_expires is not None:
        countdown = compute_countdown(sub_expires, now, window_for(KIND_SUBSCRIPTION))
        if countdown.is_expired:
            return SubscriptionStatus(
                STATUS_EXPIRED, "VIP subscription expired", False, AccessTier.FREE, countdown, sub_expires
            )

    if trial_expires is not None:
        countdown = compute_countdown(trial_expires, now, window_for(KIND_TRIAL))
        text = "VIP trial expired" if countdown.is_expired else "VIP trial ended"
        return SubscriptionStatus(STATUS_EXPIRED, text, False, AccessTier.FREE, countdown, trial_expires)

    return SubscriptionStatus(STATUS_INACTIVE, "No active VIP subscription", False, AccessTier.FREE, NO_EXPIRY)
