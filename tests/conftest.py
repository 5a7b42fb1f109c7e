"""
Platera Backend — Test Configuration (conftest.py)
==================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Services run against a real in-memory SQLite database (aiosqlite) so
       SAVEPOINTs, unique constraints and ON DELETE CASCADE behave as they do
       on PostgreSQL. The identity provider is replaced by FakeIdentityProvider.

Fixture Hierarchy (all function-scoped):
    ├── database:        fresh in-memory Database with all tables
    ├── db_session:      AsyncSession on that database (not committed)
    ├── identity:        FakeIdentityProvider
    ├── make_user / make_recipe: row factories for db_session
    └── test_client:     HTTPX AsyncClient over create_app(database, identity)
"""

import os

# Settings are read at import time (tenacity waits, rate limits): set the
# environment before anything from platera is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CLERK_SECRET_KEY"] = "sk_live_test_not_real"
os.environ["CLOUDINARY_CLOUD_NAME"] = "platera-test"
os.environ["CLOUDINARY_API_KEY"] = "123456789012345"
os.environ["CLOUDINARY_API_SECRET"] = "test-secret"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from platera.database import Database
from platera.models import Recipe, RecipeCategory, User
from platera.services.identity_base import IdentityProfile, IdentityProvider


# ══════════════════════════════════════════════════════════════════════════
# Fakes
# ══════════════════════════════════════════════════════════════════════════

class FakeIdentityProvider(IdentityProvider):
    """
    In-memory identity provider.

    tokens:   session token → external id
    profiles: external id → IdentityProfile
    error:    raised by fetch_profile() when set
    """

    def __init__(self):
        self.tokens: Dict[str, str] = {}
        self.profiles: Dict[str, IdentityProfile] = {}
        self.error: Optional[Exception] = None
        self.fetch_calls: List[str] = []
        self.healthy = True

    def sign_in(
        self,
        external_id: str,
        email: Optional[str],
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> str:
        """Register a profile and return a session token for it."""
        token = f"token-{external_id}"
        self.tokens[token] = external_id
        self.profiles[external_id] = IdentityProfile(
            external_id=external_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            image_url=image_url,
        )
        return token

    def authenticate(self, token):
        return self.tokens.get(token) if token else None

    async def fetch_profile(self, external_id):
        self.fetch_calls.append(external_id)
        if self.error is not None:
            raise self.error
        return self.profiles.get(external_id)

    async def health_check(self):
        return self.healthy


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def database():
    db = Database("sqlite+aiosqlite://")
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    """
    A session for service tests.

    Usage:
        async def test_x(db_session, make_user):
            user = await make_user("a@example.com")
            ...
    """
    async with database.session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def make_user(db_session):
    """Factory inserting a User; `age_days` backdates created_at."""

    async def _make_user(
        email: str,
        external_id: Optional[str] = None,
        name: str = "Chef",
        age_days: int = 0,
    ) -> User:
        user = User(
            email=email,
            external_id=external_id,
            name=name,
            created_at=datetime.now(timezone.utc) - timedelta(days=age_days),
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user


@pytest.fixture
def make_recipe(db_session):

    async def _make_recipe(
        author: User,
        title: str = "Paneer Tikka",
        category: RecipeCategory = RecipeCategory.VEG,
        prep_time: int = 10,
        cook_time: int = 20,
        description: Optional[str] = None,
        images: Optional[List[str]] = None,
        age_minutes: int = 0,
    ) -> Recipe:
        recipe = Recipe(
            author_id=author.id,
            title=title,
            description=description,
            category=category,
            servings=2,
            prep_time=prep_time,
            cook_time=cook_time,
            total_time=prep_time + cook_time,
            ingredients=[{"name": "Salt", "quantity": "1 tsp"}],
            steps=["Mix", "Cook"],
            images=images or [],
            created_at=datetime.now(timezone.utc) - timedelta(minutes=age_minutes),
        )
        db_session.add(recipe)
        await db_session.flush()
        return recipe

    return _make_recipe


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(database, identity):
    """
    HTTPX AsyncClient talking to an app wired to the test database and fake
    identity provider. Seed data through `database.session()` so it is
    committed before requests run.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from platera.main import create_app

    app = create_app(database=database, identity=identity)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
