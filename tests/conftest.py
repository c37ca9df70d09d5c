"""
Pytest fixtures for the trade documents test suite.

Provides:
- app: application on an isolated in-memory SQLite database
- file_app: application on a SQLite file (threaded tests)
- app_ctx: pushed application context for calling the core directly
- client / make_user / login: HTTP helpers for the JSON API
- quotation_payload / purchase_order_payload: valid create payloads

API tests must NOT hold an application context open while issuing requests:
Flask-Login caches the loaded user on `g`, which lives on the app context.
"""

import pytest

from tradedocs import create_app
from tradedocs.extensions import db
from tradedocs.models import User

PASSWORD = "s3cret-pass"


@pytest.fixture
def app():
    app = create_app("config.TestingConfig")
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app
        db.session.rollback()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Create a user directly in the database and return its id."""

    def _make(email, role=User.ROLE_USER, **flags):
        with app.app_context():
            flags.setdefault("is_active", True)
            user = User(name=email.split("@")[0], email=email, role=role, **flags)
            user.set_password(PASSWORD)
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD):
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.get_json()
        return response

    return _login


@pytest.fixture
def admin_client(client, make_user, login):
    make_user("admin@example.com", role=User.ROLE_ADMIN)
    login("admin@example.com")
    return client


@pytest.fixture
def quotation_payload():
    return {
        "company_code": " brbio ",
        "subject": "Supply of ICU monitors",
        "date": "2024-05-01",
        "client_name": "City Hospital",
        "client_email": "Purchase@CityHospital.in ",
        "client_address": "MG Road, Pune",
        "items": [
            {"description": "Monitor", "quantity": 2, "unit_price": 100, "tax_percent": 18},
            {"description": "Cable", "quantity": 1, "unit_price": 50, "tax_percent": 0},
        ],
    }


@pytest.fixture
def purchase_order_payload():
    return {
        "company_code": "VEGO",
        "order_against": "Quotation Q-17",
        "manager_name": "R. Sharma",
        "manager_email": "sharma@supplier.example",
        "delivery_period": "4 weeks",
        "items": [
            {"description": "Ventilator", "quantity": "1", "price": "2,50,000", "gst": "12%"},
        ],
        "delivery_schedule": [
            {"date": "2024-06-01", "transport": "Road", "remarks": "Fragile"},
        ],
    }


@pytest.fixture
def file_app(tmp_path):
    """Application on a SQLite file, for tests where threads need their own connections."""
    app = create_app(
        "config.TestingConfig",
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{tmp_path / 'tradedocs.db'}",
        SQLALCHEMY_ENGINE_OPTIONS={"connect_args": {"timeout": 30, "check_same_thread": False}},
    )
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
