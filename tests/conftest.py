"""Pytest fixtures for travel planner tests."""
import importlib
import json
import os
import tempfile
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from travelplanner.audit import reset_audit_logger
from travelplanner.auth.db_users import reset_db_user_store
from travelplanner.auth.init_data import encode_init_data, sign_init_data
from travelplanner.db.models import Base


# =============================================================================
# Test Launch Payloads
# =============================================================================

TEST_BOT_TOKEN = "123456:TEST-bot-token"
OTHER_BOT_TOKEN = "654321:other-bot-token"

# 128 hex chars, accepted structurally when Ed25519 checks are off
TEST_SIGNATURE = "ab" * 64


def make_user(telegram_id: int = 42, first_name: str = "Ann", **extra) -> str:
    """JSON identity claim as the platform serializes it."""
    user = {"id": telegram_id, "first_name": first_name, **extra}
    return json.dumps(user, separators=(",", ":"))


def make_init_data(
    telegram_id: int = 42,
    first_name: str = "Ann",
    bot_token: str = TEST_BOT_TOKEN,
    auth_date: int | None = None,
    **user_extra,
) -> str:
    """Keyed-hash launch payload signed with bot_token."""
    fields = {
        "query_id": "AAHdF6IQAAAAAN0XohDhrOrc",
        "user": make_user(telegram_id, first_name, **user_extra),
        "auth_date": str(auth_date if auth_date is not None else int(time.time())),
    }
    return sign_init_data(fields, bot_token)


def make_signed_payload(
    telegram_id: int = 42,
    auth_date: int | None = None,
    signature: str = TEST_SIGNATURE,
) -> str:
    """Detached-signature launch payload (no keyed hash)."""
    return encode_init_data(
        {
            "user": make_user(telegram_id),
            "auth_date": str(auth_date if auth_date is not None else int(time.time())),
            "signature": signature,
        }
    )


def auth_headers(init_data: str) -> dict:
    return {"X-Telegram-Init-Data": init_data}


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across sessions and threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the in-memory engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def in_memory_db(session_factory):
    """Create an in-memory SQLite database session for testing."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def temp_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# =============================================================================
# Application Client Fixtures
# =============================================================================

_MANAGED_ENV = (
    "TRAVELPLANNER_ENV",
    "TRAVELPLANNER_DATA_DIR",
    "TRAVELPLANNER_DATABASE_URL",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_TRUST_UNVERIFIED",
)


def _reload_app_modules():
    """Reload config, database session and app so they see the environment."""
    import travelplanner.config as config_module
    importlib.reload(config_module)

    import travelplanner.db.session as session_module
    session_module.engine.dispose()
    importlib.reload(session_module)

    import travelplanner.main as main_module
    importlib.reload(main_module)

    return session_module, main_module


@asynccontextmanager
async def app_client(temp_dir: Path, **env: str) -> AsyncGenerator[AsyncClient, None]:
    """Client for a freshly configured app backed by a temporary SQLite file.

    Keyword arguments are environment variables set for the app's lifetime.
    """
    original_env = {name: os.environ.get(name) for name in _MANAGED_ENV}

    for name in _MANAGED_ENV:
        os.environ.pop(name, None)
    os.environ["TRAVELPLANNER_DATA_DIR"] = str(temp_dir)
    os.environ["TRAVELPLANNER_DATABASE_URL"] = f"sqlite:///{temp_dir}/test.db"
    os.environ.update(env)

    reset_audit_logger()
    reset_db_user_store()

    session_module, main_module = _reload_app_modules()
    # ASGITransport does not run the lifespan handler
    session_module.init_database()

    try:
        async with AsyncClient(
            transport=ASGITransport(app=main_module.app),
            base_url="http://test",
        ) as async_client:
            yield async_client
    finally:
        reset_audit_logger()
        reset_db_user_store()

        for name, value in original_env.items():
            if value is not None:
                os.environ[name] = value
            else:
                os.environ.pop(name, None)

        import travelplanner.config as config_module
        importlib.reload(config_module)
        session_module.engine.dispose()
        importlib.reload(session_module)


@pytest.fixture
async def client(temp_dir: Path) -> AsyncGenerator[AsyncClient, None]:
    """Production-mode client: every protected request needs a valid payload."""
    async with app_client(
        temp_dir,
        TRAVELPLANNER_ENV="production",
        TELEGRAM_BOT_TOKEN=TEST_BOT_TOKEN,
    ) as async_client:
        yield async_client


@pytest.fixture
async def dev_client(temp_dir: Path) -> AsyncGenerator[AsyncClient, None]:
    """Development-mode client: a missing payload falls back to the placeholder user."""
    async with app_client(
        temp_dir,
        TRAVELPLANNER_ENV="development",
        TELEGRAM_BOT_TOKEN=TEST_BOT_TOKEN,
    ) as async_client:
        yield async_client


@pytest.fixture
def db(client):
    """Session on the database behind the client fixture."""
    import travelplanner.db.session as session_module

    session = session_module.SessionLocal()
    try:
        yield session
    finally:
        session.close()
