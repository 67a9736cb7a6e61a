from datetime import date, datetime

import pytest
from flask_jwt_extended import create_access_token

from mess import create_app
from mess.extensions import db
from mess.models import User
from mess.seed import seed_data
from mess.services import reconciler
from mess.services.ledger import MealFlags
from mess.services.teachers import create_teacher
from utils.clock import FixedClock


@pytest.fixture
def clock():
    # A Tuesday in the middle of July.
    return FixedClock(datetime(2025, 7, 15, 9, 30))


@pytest.fixture
def app(tmp_path, clock):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'mess.db'}",
        "RATELIMIT_ENABLED": False,
        "CELERY": {
            "broker_url": "memory://",
            "task_always_eager": True,
            "task_eager_propagates": True,
        },
        "PAYMENT_GATEWAY_DELAY": 0,
        "PAYMENT_DECLINE_RATE": 0,
        "AUDIT_LOG_FILE": str(tmp_path / "audit.log"),
        "JWT_COOKIE_SECURE": False,
    }, clock=clock)

    with app.app_context():
        seed_data()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin(app):
    return User.query.filter_by(username="admin").first()


@pytest.fixture
def make_teacher(app):
    counter = {"n": 0}

    def _make(name=None, is_active=True):
        counter["n"] += 1
        n = counter["n"]
        return create_teacher({
            "full_name": name or f"Teacher {n}",
            "email": f"teacher{n}@school.test",
            "phone_number": f"0300-00000{n:02d}",
            "department": "Science",
            "username": f"teacher{n}",
            "password": "secret1",
            "is_active": is_active,
        })

    return _make


@pytest.fixture
def teacher(make_teacher):
    return make_teacher("Amina Khan")


@pytest.fixture
def other_teacher(make_teacher):
    return make_teacher("Bilal Ahmed")


@pytest.fixture
def headers_for(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(admin, headers_for):
    return headers_for(admin)


@pytest.fixture
def record(admin):
    """Records meals for a teacher on a day of July 2025."""
    def _record(teacher, day, breakfast=True, lunch=True, dinner=True):
        if isinstance(day, int):
            day = date(2025, 7, day)
        return reconciler.record_attendance(
            teacher.id, day, MealFlags(breakfast, lunch, dinner), admin.id).record

    return _record
