from datetime import datetime
from decimal import Decimal
import itertools

import pytest

from app import create_app
from config import TestConfig
from extensions import db
from ledger import Caller
from ledger.referrals import generate_referral_code
from models import Role, User

PASSWORD = "password123"

# 10:00 in Lagos
T0 = datetime(2026, 1, 5, 9, 0, 0)

_counter = itertools.count(1)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_account(app):
    def _make(balance="0", role=Role.USER.value, email=None, is_active=True):
        n = next(_counter)
        user = User(
            username=f"user{n}",
            email=email or f"user{n}@example.com",
            role=role,
            is_active=is_active,
            balance=Decimal(str(balance)),
            referral_code=generate_referral_code(),
        )
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def account(make_account):
    return make_account()


@pytest.fixture
def caller(account):
    return Caller.from_user(account)


@pytest.fixture
def admin(make_account):
    return make_account(role=Role.ADMIN.value)


@pytest.fixture
def admin_caller(admin):
    return Caller.from_user(admin)


def balance_of(account_id):
    return db.session.get(User, account_id).balance


def login(client, user, password=PASSWORD):
    return client.post("/api/login", json={"email": user.email, "password": password})
