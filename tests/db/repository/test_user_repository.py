import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from db.models.user import User, Base
from db.repositories.user_repository import UserRepository


@pytest.fixture
def session():
    # Create an in-memory SQLite database
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    sess = Session()
    yield sess
    sess.close()


@pytest.fixture
def user_repo(session) -> UserRepository:
    return UserRepository(session)


def test_create_user(user_repo: UserRepository, session):
    user_repo.create_user(User(email="test@example.com", hashed_password="hashed"))
    found = session.query(User).filter_by(email="test@example.com").first()
    assert found is not None
    assert found.email == "test@example.com"


def test_get_user_by_email(user_repo: UserRepository, session):
    user = User(email="findme@example.com", hashed_password="hashed")
    session.add(user)
    session.commit()
    found = user_repo.get_user_by_email("findme@example.com")
    assert found.email == "findme@example.com"


def test_get_user_by_id(user_repo: UserRepository, session):
    user = User(id=42, email="iduser@example.com", hashed_password="hashed")
    session.add(user)
    session.commit()
    found = user_repo.get_user_by_id(42)
    assert found.email == "iduser@example.com"


def test_get_user_by_email_not_found(user_repo: UserRepository):
    found = user_repo.get_user_by_email("doesnotexist@example.com")
    assert found is None


def test_get_user_by_id_not_found(user_repo: UserRepository):
    found = user_repo.get_user_by_id(999)
    assert found is None


def test_update_user(user_repo: UserRepository, session):
    user = user_repo.create_user(User(email="upd@example.com", hashed_password="hashed"))
    updated = user_repo.update_user(user.id, {"full_name": "Updated", "reminder_stage": "24h", "unknown": 1})
    assert updated.full_name == "Updated"
    assert updated.reminder_stage == "24h"
    assert user_repo.update_user(999, {"full_name": "x"}) is None


def test_list_users_search_and_count(user_repo: UserRepository):
    user_repo.create_user(User(email="alice@example.com", full_name="Alice", hashed_password="h"))
    user_repo.create_user(User(email="bob@example.com", full_name="Bob Builder", hashed_password="h"))
    assert user_repo.count_users() == 2
    assert [u.email for u in user_repo.list_users(search="builder")] == ["bob@example.com"]
    assert len(user_repo.list_users(limit=1)) == 1


def test_get_user_by_stripe_customer(user_repo: UserRepository):
    user_repo.create_user(User(email="pay@example.com", hashed_password="h", stripe_customer_id="cus_123"))
    assert user_repo.get_user_by_stripe_customer("cus_123").email == "pay@example.com"
    assert user_repo.get_user_by_stripe_customer("cus_missing") is None


def test_delete_user(user_repo: UserRepository):
    user = user_repo.create_user(User(email="gone@example.com", hashed_password="h"))
    assert user_repo.delete_user(user.id) is True
    assert user_repo.delete_user(user.id) is False
