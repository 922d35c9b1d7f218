"""
Trial and subscription countdowns.

Everything here is a pure function of an expiry timestamp and the current
time. Nothing is cached: callers recompute on every render or tick.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union
import logging

logger = logging.getLogger(__name__)

# Length of the free trial granted at signup
TRIAL_DURATION = timedelta(days=3)
# Length of one paid or admin-granted subscription period
SUBSCRIPTION_DURATION = timedelta(days=30)
# Remaining time at or below which an expiry counts as "soon"
EXPIRING_SOON_THRESHOLD = timedelta(hours=1)

KIND_TRIAL = "trial"
KIND_SUBSCRIPTION = "subscription"

URGENCY_NONE = "none"
URGENCY_LOW = "low"
URGENCY_MEDIUM = "medium"
URGENCY_HIGH = "high"
URGENCY_CRITICAL = "critical"

_HIGH_URGENCY_THRESHOLD = timedelta(hours=6)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Normalize a datetime or ISO 8601 string to a timezone-aware UTC datetime.

    Naive values are taken to be UTC already (that is how they are stored).
    Returns None for empty or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, str):
        v = value.strip()
        if not v:
            return None
        if v.endswith("Z"):
            v = v[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(v)
        except ValueError:
            logger.warning(f"Invalid date string: {value!r}")
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def window_for(kind: str) -> timedelta:
    """Total length of the access window a countdown runs over."""
    return SUBSCRIPTION_DURATION if kind == KIND_SUBSCRIPTION else TRIAL_DURATION


@dataclass(frozen=True)
class Countdown:
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
    has_expiry: bool = True
    expires_at: Optional[datetime] = None

    @property
    def remaining_percentage(self) -> float:
        return round(100.0 - self.progress_percentage, 2)

    def to_dict(self) -> dict:
        return {
            "total_seconds": self.total_seconds,
            "days": self.days,
            "hours": self.hours,
            "minutes": self.minutes,
            "seconds": self.seconds,
            "formatted": self.formatted,
            "is_expired": self.is_expired,
            "is_expiring_soon": self.is_expiring_soon,
            "progress_percentage": self.progress_percentage,
            "urgency": self.urgency,
            "has_expiry": self.has_expiry,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


NO_EXPIRY = Countdown(
    total_seconds=0,
    days=0,
    hours=0,
    minutes=0,
    seconds=0,
    formatted="No expiry",
    is_expired=False,
    is_expiring_soon=False,
    progress_percentage=0.0,
    urgency=URGENCY_NONE,
    has_expiry=False,
)


def format_remaining(days: int, hours: int, minutes: int, seconds: int) -> str:
    """Short human form: "2d 4h 13m", "4h 13m 5s", "13m 5s" or "5s"."""
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def format_expiry(expires_at: Union[str, datetime, None]) -> str:
    dt = ensure_utc(expires_at)
    if dt is None:
        return "N/A"
    return dt.strftime("%b %d, %Y %H:%M UTC")


def _urgency(remaining: timedelta, days: int) -> str:
    if remaining <= EXPIRING_SOON_THRESHOLD:
        return URGENCY_CRITICAL
    if remaining <= _HIGH_URGENCY_THRESHOLD:
        return URGENCY_HIGH
    if days == 0:
        return URGENCY_MEDIUM
    return URGENCY_LOW


def compute_countdown(
    expires_at: Union[str, datetime, None],
    now: Optional[datetime] = None,
    window: timedelta = TRIAL_DURATION,
    soon_threshold: timedelta = EXPIRING_SOON_THRESHOLD,
) -> Countdown:
    """
    Derive the countdown for an expiry instant.

    Args:
        expires_at: Expiry as a datetime or ISO string. None yields NO_EXPIRY.
        now: Current time; defaults to the wall clock.
        window: Length of the access window. Its start is
            ``expires_at - window`` and progress is measured from there.
        soon_threshold: Remaining time at or below which the countdown is
            "expiring soon". The boundary is inclusive.

    Returns:
        Countdown: remaining time split into days/hours/minutes/seconds, the
        formatted string, expiry flags, progress in [0, 100] and urgency.
    """
    end = ensure_utc(expires_at)
    if end is None:
        return NO_EXPIRY
    now = ensure_utc(now) or utcnow()

    remaining = end - now
    if remaining <= timedelta(0):
        return Countdown(
            total_seconds=0,
            days=0,
            hours=0,
            minutes=0,
            seconds=0,
            formatted="Expired",
            is_expired=True,
            is_expiring_soon=False,
            progress_percentage=100.0,
            urgency=URGENCY_CRITICAL,
            expires_at=end,
        )

    total = int(remaining.total_seconds())
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    if window.total_seconds() > 0:
        elapsed = now - (end - window)
        progress = elapsed.total_seconds() / window.total_seconds() * 100
        progress = round(min(100.0, max(0.0, progress)), 2)
    else:
        progress = 0.0

    return Countdown(
        total_seconds=total,
        days=days,
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        formatted=format_remaining(days, hours, minutes, seconds),
        is_expired=False,
        is_expiring_soon=remaining <= soon_threshold,
        progress_percentage=progress,
        urgency=_urgency(remaining, days),
        expires_at=end,
    )
