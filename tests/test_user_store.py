"""
Unit tests for the user storage backends
"""
import pytest
from sqlalchemy.pool import NullPool

from config.settings import load_settings
from database import Database
from models.user import UserCreate, UserUpdate
from services.user_service import (
    DatabaseUserStore,
    PlaceholderUserStore,
    build_user_store,
)


@pytest.fixture
async def test_db(tmp_path):
    """
    Fixture that provides an isolated SQLite database for each test.

    Creates all tables before the test runs and drops them afterwards.
    """
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}", poolclass=NullPool)
    await db.init()
    yield db
    await db.drop()
    await db.dispose()


@pytest.mark.asyncio
async def test_create_and_get_user(test_db):
    store = DatabaseUserStore(test_db)

    created = await store.create_user(UserCreate(id="user_1", email="ada@example.com", name="Ada"))
    fetched = await store.get_user_by_id("user_1")

    assert created.id == "user_1"
    assert fetched is not None
    assert fetched.email == "ada@example.com"
    assert fetched.name == "Ada"
    assert fetched.created_at is not None
    assert fetched.metadata is None


@pytest.mark.asyncio
async def test_create_generates_id(test_db):
    store = DatabaseUserStore(test_db)

    created = await store.create_user(UserCreate(email="grace@example.com", name="Grace"))

    assert created.id.startswith("user_")
    assert (await store.get_user_by_id(created.id)).name == "Grace"


@pytest.mark.asyncio
async def test_get_missing_user(test_db):
    assert await DatabaseUserStore(test_db).get_user_by_id("nope") is None


@pytest.mark.asyncio
async def test_partial_update(test_db):
    store = DatabaseUserStore(test_db)
    await store.create_user(UserCreate(id="user_1", email="ada@example.com", name="Ada", metadata={"a": 1}))

    updated = await store.update_user("user_1", UserUpdate(name="Ada Lovelace"))

    assert updated.name == "Ada Lovelace"
    # Fields that were not sent are untouched
    assert updated.email == "ada@example.com"
    assert updated.metadata == {"a": 1}


@pytest.mark.asyncio
async def test_update_ignores_null_required_fields(test_db):
    store = DatabaseUserStore(test_db)
    await store.create_user(UserCreate(id="user_1", email="ada@example.com", name="Ada", metadata={"a": 1}))

    updated = await store.update_user("user_1", UserUpdate(name=None, metadata=None))

    assert updated.name == "Ada"
    assert updated.metadata is None


@pytest.mark.asyncio
async def test_update_missing_user(test_db):
    assert await DatabaseUserStore(test_db).update_user("ghost", UserUpdate(name="x")) is None


@pytest.mark.asyncio
async def test_delete_user(test_db):
    store = DatabaseUserStore(test_db)
    await store.create_user(UserCreate(id="user_1", email="ada@example.com", name="Ada"))

    assert await store.delete_user("user_1") is True
    assert await store.get_user_by_id("user_1") is None
    assert await store.delete_user("user_1") is False


@pytest.mark.asyncio
async def test_placeholder_store():
    store = PlaceholderUserStore()

    fetched = await store.get_user_by_id("user_42")
    updated = await store.update_user("user_42", UserUpdate(email="new@example.com", metadata={"k": "v"}))
    created = await store.create_user(UserCreate(email="c@example.com", name="C"))

    assert fetched.id == "user_42"
    assert fetched.email == "user@example.com"
    assert fetched.name == "John Doe"
    assert updated.email == "new@example.com"
    assert updated.name == "John Doe"
    assert updated.metadata == {"k": "v"}
    assert created.id == "new_user_id"
    assert await store.delete_user("user_42") is True


def test_build_user_store(monkeypatch, settings):
    database = Database(settings.database_url)
    assert isinstance(build_user_store(settings, database), DatabaseUserStore)

    monkeypatch.setenv("USER_STORE", "placeholder")
    assert isinstance(build_user_store(load_settings(), database), PlaceholderUserStore)
