"""
Pytest configuration and fixtures for the admin tests.
"""

import re

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crud_admin.admin.context import AdminRequest
from crud_admin.controller import CRUDController
from crud_admin.main import create_app
from crud_admin.models import Base
from crud_shared.config.settings import Settings
from crud_shared.infrastructure.db import get_db
from crud_shared.security.auth import sign_jwt
from crud_shared.security.csrf import CsrfTokenManager

from sample_app import Category, Product, build_pool


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SUPER_ADMIN = {"sub": "admin", "email": "admin@test.com", "roles": ["ROLE_SUPER_ADMIN"]}

_CSRF_INPUT = re.compile(r'name="(?:_csrf_token|[a-z_]+\[_token\])" value="([^"]+)"')


def make_settings(**overrides) -> Settings:
    values = {"environment": "test", "debug": False, "csrf_enabled": True}
    values.update(overrides)
    return Settings(**values)


def extract_csrf_token(html: str) -> str:
    """The first CSRF token rendered in a page."""
    match = _CSRF_INPUT.search(html)
    assert match is not None, "no CSRF token in page"
    return match.group(1)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def app_settings():
    return make_settings()


@pytest.fixture
def pool():
    return build_pool()


@pytest.fixture(scope="function")
def client(db_session, pool, app_settings):
    """
    Create a test client with database session override.
    """
    app = create_app(pool, app_settings=app_settings, create_tables=False)

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def bearer(sub: str, roles: list[str]) -> dict[str, str]:
    token = sign_jwt({"sub": sub, "email": f"{sub}@test.com", "roles": roles})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Authorization header of a super admin."""
    return bearer(SUPER_ADMIN["sub"], SUPER_ADMIN["roles"])


@pytest.fixture
def seed_category(db_session):
    """Create a test category."""
    category = Category(name="Drinks", active=True)
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def seed_categories(db_session):
    """Create three categories, one of them inactive."""
    categories = [
        Category(name="Drinks", active=True),
        Category(name="Desserts", active=True),
        Category(name="Archived", active=False),
    ]
    db_session.add_all(categories)
    db_session.commit()
    return categories


@pytest.fixture
def seed_product(db_session, seed_category):
    """Create a product of the seeded category."""
    product = Product(name="Lemonade", price=2.5, category=seed_category)
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def make_controller(pool, db_session, app_settings):
    """
    Build a configured controller for a hand-made request.

    Usage:
        controller = make_controller("POST", form=[("action", "delete")])
        response = controller.batch_action()
    """

    def _make(
        method="GET",
        *,
        code="admin.category",
        path_params=None,
        query=None,
        form=None,
        headers=None,
        session=None,
        user=SUPER_ADMIN,
        controller_class=CRUDController,
        **options,
    ):
        params = {"_admin_code": code, **(path_params or {})}
        request = AdminRequest.build(method, params, query, form, headers, session)
        controller = controller_class(
            pool,
            request,
            db_session,
            user,
            csrf_token_manager=CsrfTokenManager(request.session),
            app_settings=options.pop("app_settings", app_settings),
            **options,
        )
        controller.configure()
        return controller

    return _make
