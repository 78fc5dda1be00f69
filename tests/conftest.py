"""pytest configuration: path management and shared fixtures."""
from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest
from werkzeug.security import generate_password_hash

# Ensure the project root is available on sys.path so tests can import the package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from massagebook import create_app  # noqa: E402
from massagebook.auth import build_session_token  # noqa: E402
from massagebook.config import TestConfig  # noqa: E402
from massagebook.extensions import db  # noqa: E402
from massagebook.models import Appointment, AuthAccount, Shop, User, utc_now  # noqa: E402

PASSWORD = "password123"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    db.create_all()

    yield app

    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make_user(role: str = "user", email: str | None = None, password: str = PASSWORD) -> User:
        counter["n"] += 1
        user = User(
            name=f"Test {role.title()} {counter['n']}",
            telephone="0812345678",
            email=email or f"{role}{counter['n']}@example.com",
            role=role,
        )
        db.session.add(user)
        db.session.flush()
        db.session.add(AuthAccount(user_id=user.user_id, password_hash=generate_password_hash(password)))
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_shop(app):
    counter = {"n": 0}

    def _make_shop(owner: User | None = None, **overrides) -> Shop:
        counter["n"] += 1
        values = {
            "name": f"Aroma Spa {counter['n']}",
            "address": "123 Sukhumvit Road, Bangkok",
            "telephone": "0812345678",
            "open_time": "10:00",
            "close_time": "22:00",
            "user_id": owner.user_id if owner else None,
        }
        values.update(overrides)
        shop = Shop(**values)
        db.session.add(shop)
        db.session.commit()
        return shop

    return _make_shop


@pytest.fixture
def make_appointment(app):
    def _make_appointment(user: User, shop: Shop, status: str = "booked", days: int = 1) -> Appointment:
        appointment = Appointment(
            user_id=user.user_id,
            shop_id=shop.shop_id,
            date=utc_now() + timedelta(days=days),
            status=status,
        )
        db.session.add(appointment)
        db.session.commit()
        return appointment

    return _make_appointment


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {build_session_token(user)}"}

    return _auth_headers


def future_date(days: int = 2) -> str:
    return (utc_now() + timedelta(days=days)).isoformat()
