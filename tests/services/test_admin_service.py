"""
Tests for back-office mutations
"""
import json
import pytest
from datetime import timedelta
from unittest.mock import Mock
from sqlalchemy.exc import SQLAlchemyError

from api.services.admin_service import AdminService, AdminServiceException
from api.services.access import has_access
from api.services.countdown import ensure_utc
from db.repositories.user_repository import UserRepository
from db.repositories.ban_repository import BanRepository
from db.repositories.tip_repository import TipRepository
from db.repositories.admin_action_repository import AdminActionRepository


@pytest.fixture
def service(db_session):
    return AdminService(
        UserRepository(db_session),
        BanRepository(db_session),
        TipRepository(db_session),
        AdminActionRepository(db_session),
    )


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", is_admin=True)


class TestSubscriptions:
    def test_grant_to_banned_user_keeps_ban(self, service, admin, make_user, now):
        """Granting a subscription does not lift an existing ban"""
        user = make_user(trial_expires_at=None)
        service.ban_user(admin, user.id, "abuse", now=now)

        granted = service.grant_subscription(admin, user.id, now=now)

        assert granted.subscription_active is True
        assert ensure_utc(granted.subscription_expires_at) == now + timedelta(days=30)
        assert has_access(granted, now=now) is True
        assert service.ban_repo.is_banned(user.id, now) is True

    def test_grant_custom_days_and_clears_reminders(self, service, admin, make_user, now):
        user = make_user(reminder_stage="1h")
        granted = service.grant_subscription(admin, user.id, days=7, now=now)
        assert ensure_utc(granted.subscription_expires_at) == now + timedelta(days=7)
        assert granted.reminder_stage is None

    def test_grant_rejects_non_positive_days(self, service, admin, make_user):
        user = make_user()
        with pytest.raises(AdminServiceException):
            service.grant_subscription(admin, user.id, days=0)

    def test_grant_unknown_user(self, service, admin):
        with pytest.raises(AdminServiceException) as exc_info:
            service.grant_subscription(admin, 999)
        assert "not found" in str(exc_info.value)

    def test_revoke(self, service, admin, make_user, now):
        user = make_user(subscription_active=True, subscription_expires_at=now + timedelta(days=10))
        revoked = service.revoke_subscription(admin, user.id)
        assert revoked.subscription_active is False
        assert revoked.subscription_expires_at is None


class TestBans:
    def test_self_ban_refused(self, service, admin):
        with pytest.raises(AdminServiceException) as exc_info:
            service.ban_user(admin, admin.id, "oops")
        assert "own account" in str(exc_info.value)

    def test_temporary_ban_expires(self, service, admin, make_user, now):
        user = make_user()
        ban = service.ban_user(admin, user.id, "", duration_hours=2, now=now)
        assert ban.reason == "Administrative action"
        assert service.ban_repo.is_banned(user.id, now + timedelta(hours=1)) is True
        assert service.ban_repo.is_banned(user.id, now + timedelta(hours=3)) is False

    def test_unban_lifts_all(self, service, admin, make_user, now):
        user = make_user()
        service.ban_user(admin, user.id, "first", now=now)
        service.ban_user(admin, user.id, "second", now=now)
        assert service.unban_user(admin, user.id) == 2
        assert service.ban_repo.is_banned(user.id, now) is False

    def test_list_and_count_by_status(self, service, admin, make_user, now):
        make_user(email="trial@example.com")
        expired = make_user(email="expired@example.com", trial_expires_at=now - timedelta(days=1))
        service.ban_user(admin, expired.id, "spam", now=now)

        assert [row.user.email for row in service.list_users(status="banned", now=now)] == [
            "expired@example.com"
        ]
        assert [row.user.email for row in service.list_users(search="trial", now=now)] == [
            "trial@example.com"
        ]
        counts = service.count_by_status(now=now)
        assert counts["all"] == 3
        assert counts["banned"] == 1
        assert counts["expired"] == 1

    def test_unknown_filter(self, service):
        with pytest.raises(AdminServiceException):
            service.list_users(status="everyone")


class TestAudit:
    def test_every_mutation_is_recorded(self, service, admin, make_user, now):
        user = make_user()
        service.grant_subscription(admin, user.id, days=5, now=now)
        service.ban_user(admin, user.id, "abuse", now=now)
        service.unban_user(admin, user.id)

        actions = service.recent_actions()
        assert {a.action_type for a in actions} == {"subscription_grant", "user_ban", "user_unban"}
        grant = next(a for a in actions if a.action_type == "subscription_grant")
        assert grant.admin_id == admin.id
        assert grant.target_user_id == user.id
        assert json.loads(grant.details) == {"days": 5}

    def test_failed_write_rolls_back(self, service, admin, make_user):
        user = make_user()
        service.user_repo.update_user = Mock(side_effect=SQLAlchemyError("disk full"))

        with pytest.raises(AdminServiceException) as exc_info:
            service.grant_subscription(admin, user.id)

        assert "subscription grant" in str(exc_info.value)
        assert service.recent_actions() == []


class TestTips:
    def test_create_update_toggle_delete(self, service, admin):
        tip = service.create_tip(admin, " Over 2.5 ", "Both teams score", sport="Soccer", confidence_level="high")
        assert tip.title == "Over 2.5"
        assert tip.is_active is True

        tip = service.update_tip(admin, tip.id, title="Over 3.5", sport=None)
        assert tip.title == "Over 3.5"
        assert tip.sport == "Soccer"

        assert service.toggle_tip(admin, tip.id).is_active is False
        service.delete_tip(admin, tip.id)
        assert service.list_tips() == []
        assert [a.action_type for a in service.recent_actions()][0] == "tip_delete"

    @pytest.mark.parametrize(
        "fields",
        [
            {"title": "", "content": "x"},
            {"title": "x", "content": "x", "category": "secret"},
            {"title": "x", "content": "x", "confidence_level": "certain"},
        ],
    )
    def test_create_validation(self, service, admin, fields):
        with pytest.raises(AdminServiceException):
            service.create_tip(admin, **fields)

    def test_create_records_audit_in_same_commit(self, service, admin, db_session, monkeypatch):
        commit = Mock(wraps=db_session.commit)
        monkeypatch.setattr(db_session, "commit", commit)

        tip = service.create_tip(admin, "Home win", "Strong form at home")

        assert commit.call_count == 1
        [action] = service.recent_actions()
        assert action.action_type == "tip_create"
        assert action.target_tip_id == tip.id

    def test_failed_create_leaves_no_tip(self, service, admin, db_session, monkeypatch):
        monkeypatch.setattr(db_session, "commit", Mock(side_effect=SQLAlchemyError("disk full")))

        with pytest.raises(AdminServiceException, match="tip create"):
            service.create_tip(admin, "Home win", "Strong form at home")

        monkeypatch.undo()
        assert service.list_tips() == []
        assert service.recent_actions() == []

    def test_update_rejects_empty_title(self, service, admin):
        tip = service.create_tip(admin, "Title", "Content")
        with pytest.raises(AdminServiceException):
            service.update_tip(admin, tip.id, title="  ")

    def test_missing_tip(self, service, admin):
        with pytest.raises(AdminServiceException):
            service.toggle_tip(admin, 42)
