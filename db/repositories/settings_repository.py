from db.models.settings import Settings
from sqlalchemy.orm import Session
from typing import Optional, Dict
import os

SMTP_REQUIRED_KEYS = ["SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASSWORD", "SENDER_EMAIL"]
DEFAULT_SENDER_NAME = "ProSoft Hub"


class SettingsRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_setting(self, key: str) -> Optional[str]:
        """Get a setting value, preferring environment variable over database"""
        env_value = os.getenv(key)
        if env_value is not None:
            return env_value

        setting = self.db.query(Settings).filter(Settings.key == key).first()
        return setting.value if setting else None

    def set_setting(self, key: str, value: Optional[str], is_secret: bool = False):
        """Set a setting value in database"""
        setting = self.db.query(Settings).filter(Settings.key == key).first()
        if setting:
            setting.value = value
            setting.is_secret = is_secret
        else:
            setting = Settings(key=key, value=value, is_secret=is_secret)
            self.db.add(setting)
        self.db.commit()

    def get_all_settings(self, include_secrets: bool = False) -> Dict[str, str]:
        """Get all settings as a dictionary"""
        query = self.db.query(Settings)
        if not include_secrets:
            query = query.filter(Settings.is_secret.is_(False))

        result = {}
        for setting in query.all():
            env_value = os.getenv(setting.key)
            result[setting.key] = env_value if env_value is not None else setting.value
        return result

    def smtp_config(self) -> Dict[str, Optional[str]]:
        """SMTP settings in the shape EmailService expects"""
        return {
            "SMTP_HOST": self.get_setting("SMTP_HOST"),
            "SMTP_PORT": self.get_setting("SMTP_PORT"),
            "SMTP_USER": self.get_setting("SMTP_USER"),
            "SMTP_PASSWORD": self.get_setting("SMTP_PASSWORD"),
            "SENDER_EMAIL": self.get_setting("SENDER_EMAIL"),
            "SENDER_NAME": self.get_setting("SENDER_NAME") or DEFAULT_SENDER_NAME,
            "SMTP_USE_TLS": self.get_setting("SMTP_USE_TLS") or "true",
        }

    def is_smtp_configured(self) -> bool:
        """Check if SMTP is configured (either env vars or database)"""
        return all(self.get_setting(key) for key in SMTP_REQUIRED_KEYS)
