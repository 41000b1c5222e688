"""
Shared fixtures: an application on in-memory SQLite, two seeded companies and
authenticated test clients per role.
"""
from datetime import date
from types import SimpleNamespace

import pytest
from sqlalchemy.pool import StaticPool

from app import create_app
from config import Config
from models import db
from models.company import Company
from models.customer import Customer
from models.editor import Editor
from models.project import Project
from models.room import Room
from models.user import User, UserModuleAccess
from security.csrf import CSRF_COOKIE
from security.session import create_session

CSRF_TOKEN = "test-csrf-token"
BOOKING_DAY = date(2026, 3, 2)


class InMemoryConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }
    LOG_LEVEL = "WARNING"
    BOOKING_CANCEL_CASCADES_CHALAN = False


@pytest.fixture
def app():
    app = create_app(InMemoryConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


def _seed_company(name, prefix):
    company = Company(name=name)
    db.session.add(company)
    db.session.flush()

    customer = Customer(company_id=company.id, name=f"{prefix} Films")
    other_customer = Customer(company_id=company.id, name=f"{prefix} Studios")
    db.session.add_all([customer, other_customer])
    db.session.flush()

    project = Project(company_id=company.id, customer_id=customer.id, name=f"{prefix} Feature")
    other_project = Project(company_id=company.id, customer_id=other_customer.id, name=f"{prefix} Series")
    room = Room(company_id=company.id, name=f"{prefix} Edit Suite 1")
    room2 = Room(company_id=company.id, name=f"{prefix} Edit Suite 2")
    editor = Editor(company_id=company.id, name=f"{prefix} Editor Asha")
    editor2 = Editor(company_id=company.id, name=f"{prefix} Editor Ravi")
    db.session.add_all([project, other_project, room, room2, editor, editor2])

    users = {}
    for role in ("admin", "gst", "non_gst", "account", "custom"):
        users[role] = User(company_id=company.id, username=f"{prefix.lower()}_{role}", role=role)
    db.session.add_all(users.values())
    db.session.commit()

    return SimpleNamespace(
        company=company,
        customer=customer,
        other_customer=other_customer,
        project=project,
        other_project=other_project,
        room=room,
        room2=room2,
        editor=editor,
        editor2=editor2,
        **users,
    )


@pytest.fixture
def seed(app):
    return _seed_company("Northlight Post", "North")


@pytest.fixture
def other_company(app, seed):
    return _seed_company("Southbay Sound", "South")


@pytest.fixture
def grant(app):
    def _grant(user, module, section, **flags):
        row = UserModuleAccess(user_id=user.id, module=module, section=section, **flags)
        db.session.add(row)
        db.session.commit()
        return row
    return _grant


@pytest.fixture
def client_for(app):
    def _client(user, csrf=True):
        client = app.test_client()
        client.set_cookie(app.config["AUTH_COOKIE_NAME"], create_session(user.id))
        if csrf:
            client.set_cookie(CSRF_COOKIE, CSRF_TOKEN)
            client.environ_base["HTTP_X_CSRF_TOKEN"] = CSRF_TOKEN
        return client
    return _client


@pytest.fixture
def admin_client(client_for, seed):
    return client_for(seed.admin)


@pytest.fixture
def booking_fields(seed):
    """Request body for a valid booking; keyword overrides replace fields."""
    def _fields(**overrides):
        body = {
            "customer_id": seed.customer.id,
            "project_id": seed.project.id,
            "room_id": seed.room.id,
            "editor_id": seed.editor.id,
            "booking_date": BOOKING_DAY.isoformat(),
            "from_time": "10:00",
            "to_time": "12:00",
        }
        body.update(overrides)
        return body
    return _fields
