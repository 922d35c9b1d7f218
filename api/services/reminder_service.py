from db.models.user import User, REMINDER_24H, REMINDER_12H, REMINDER_1H, REMINDER_EXPIRED
from db.repositories.user_repository import UserRepository
from db.repositories.settings_repository import SettingsRepository
from api.services.access import subscription_status, STATUS_ACTIVE, STATUS_TRIAL, STATUS_EXPIRED
from api.services.countdown import Countdown, utcnow, format_expiry
from api.services.email_service import EmailService
from datetime import datetime, timedelta
from typing import Optional
import os
import logging

logger = logging.getLogger(__name__)

# Stages in send order; a user never receives an earlier stage twice
STAGE_ORDER = [None, REMINDER_24H, REMINDER_12H, REMINDER_1H, REMINDER_EXPIRED]

_STAGE_THRESHOLDS = [
    (timedelta(hours=1), REMINDER_1H),
    (timedelta(hours=12), REMINDER_12H),
    (timedelta(hours=24), REMINDER_24H),
]

_SUBJECTS = {
    REMINDER_24H: "Your ProSoft Hub VIP access ends in 24 hours",
    REMINDER_12H: "Your ProSoft Hub VIP access ends in 12 hours",
    REMINDER_1H: "Your ProSoft Hub VIP access ends within the hour",
    REMINDER_EXPIRED: "Your ProSoft Hub VIP access has expired",
}


def reminder_stage_for(countdown: Countdown) -> Optional[str]:
    """The reminder due for a countdown, or None while expiry is far away"""
    if not countdown.has_expiry:
        return None
    if countdown.is_expired:
        return REMINDER_EXPIRED
    remaining = timedelta(seconds=countdown.total_seconds)
    for threshold, stage in _STAGE_THRESHOLDS:
        if remaining <= threshold:
            return stage
    return None


def is_newer_stage(stage: Optional[str], last_sent: Optional[str]) -> bool:
    if stage is None:
        return False
    if last_sent not in STAGE_ORDER:
        last_sent = None
    return STAGE_ORDER.index(stage) > STAGE_ORDER.index(last_sent)


class ReminderService:
    def __init__(
        self,
        user_repo: UserRepository,
        settings_repo: Optional[SettingsRepository] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.user_repo = user_repo
        self.settings_repo = settings_repo
        self.email_service = email_service
        if self.email_service is None and settings_repo is not None:
            self.email_service = EmailService.from_settings(settings_repo)
        self.public_url = os.getenv("PUBLIC_URL", "http://localhost:8000").rstrip("/")

    def check_expiring_access(self, now: Optional[datetime] = None) -> int:
        """Send each user the next due expiry reminder; returns the number sent"""
        if not self.email_service:
            logger.info("Email service not configured, skipping expiry reminders")
            return 0
        now = now or utcnow()
        sent = 0
        for user in self.user_repo.list_users():
            status = subscription_status(user, now)
            if status.kind not in (STATUS_ACTIVE, STATUS_TRIAL, STATUS_EXPIRED):
                continue
            stage = reminder_stage_for(status.countdown)
            # A trial ended early by a subscription only gets the expired notice
            if not status.has_access and stage != REMINDER_EXPIRED:
                continue
            if not is_newer_stage(stage, user.reminder_stage):
                continue
            if self.send_reminder(user, stage, status.expires_at, status.kind):
                self.user_repo.update_user(user.id, {"reminder_stage": stage})
                sent += 1
        if sent:
            logger.info(f"Sent {sent} expiry reminder(s)")
        return sent

    def send_reminder(self, user: User, stage: str, expires_at: datetime, kind: str) -> bool:
        what = "VIP trial" if kind == STATUS_TRIAL else "VIP subscription"
        if stage == REMINDER_EXPIRED:
            lead = f"<p>Your {what} expired on {format_expiry(expires_at)}.</p>"
        else:
            lead = f"<p>Your {what} expires on <strong>{format_expiry(expires_at)}</strong>.</p>"
        html_content = f"""
        <h2>Hi {user.full_name or user.email},</h2>
        {lead}
        <p>Keep using the AI Prompt Generator, Arbitrage Calculator and VIP Tips by
        upgrading your plan.</p>
        <p><a href="{self.public_url}/dashboard/ui">Open your dashboard</a></p>
        <hr>
        <p style="color: #666; font-size: 12px;">Sent by ProSoft Hub.</p>
        """
        success, message = self.email_service.send_email(
            to_email=user.email,
            subject=_SUBJECTS[stage],
            html_content=html_content,
        )
        if success:
            logger.info(f"Sent {stage} reminder to user {user.id}")
        else:
            logger.error(f"Failed to send {stage} reminder to user {user.id}: {message}")
        return success
