"""
User storage capability used by the user handlers.

Handlers only see the UserStore interface; the backend is chosen from
settings.user_store by build_user_store().
"""
import abc
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from crud.user import UserRepository
from database import Database
from models.user import User, UserCreate, UserUpdate
from config.settings import USER_STORE_PLACEHOLDER

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL = "user@example.com"
PLACEHOLDER_NAME = "John Doe"
PLACEHOLDER_NEW_USER_ID = "new_user_id"


def profile_defaults(claims: Optional[dict]) -> Tuple[str, str]:
    """(email, name) for a freshly provisioned record, taken from token claims when present."""
    claims = claims or {}
    return claims.get("email") or PLACEHOLDER_EMAIL, claims.get("name") or PLACEHOLDER_NAME


class UserStore(abc.ABC):
    """Lookup-by-id, partial update, create and delete. Every operation may raise."""

    @abc.abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abc.abstractmethod
    async def update_user(self, user_id: str, data: UserUpdate) -> Optional[User]:
        ...

    @abc.abstractmethod
    async def create_user(self, data: UserCreate) -> User:
        ...

    @abc.abstractmethod
    async def delete_user(self, user_id: str) -> bool:
        ...


class PlaceholderUserStore(UserStore):
    """
    Stand-in store with nothing behind it: reads fabricate a record and
    writes echo their input. Useful for demos before a database exists.
    """

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        return User(
            id=user_id,
            email=PLACEHOLDER_EMAIL,
            name=PLACEHOLDER_NAME,
            created_at=datetime.now(timezone.utc),
        )

    async def update_user(self, user_id: str, data: UserUpdate) -> Optional[User]:
        return User(
            id=user_id,
            email=data.email or PLACEHOLDER_EMAIL,
            name=data.name or PLACEHOLDER_NAME,
            created_at=datetime.now(timezone.utc),
            metadata=data.metadata,
        )

    async def create_user(self, data: UserCreate) -> User:
        return User(
            id=data.id or PLACEHOLDER_NEW_USER_ID,
            email=data.email,
            name=data.name,
            created_at=datetime.now(timezone.utc),
            metadata=data.metadata,
        )

    async def delete_user(self, user_id: str) -> bool:
        return True


def _to_user(record) -> User:
    return User(
        id=record.id,
        email=record.email,
        name=record.name,
        created_at=record.created_at,
        metadata=record.user_metadata,
    )


class DatabaseUserStore(UserStore):
    """UserStore backed by SQLAlchemy; one session (and commit) per operation."""

    def __init__(self, database: Database):
        self.database = database

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        async with self.database.session() as db:
            record = await UserRepository(db).get_user_by_id(user_id)
            return _to_user(record) if record else None

    async def update_user(self, user_id: str, data: UserUpdate) -> Optional[User]:
        # name/email are required columns; an explicit null only clears metadata
        updates = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key == "metadata"
        }
        async with self.database.session() as db:
            repo = UserRepository(db)
            record = await repo.get_user_by_id(user_id)
            if record is None:
                return None
            record = await repo.update_user(record, updates)
            logger.debug(f"Updated user {user_id}: {sorted(updates)}")
            return _to_user(record)

    async def create_user(self, data: UserCreate) -> User:
        async with self.database.session() as db:
            record = await UserRepository(db).create_user(data.model_dump())
            return _to_user(record)

    async def delete_user(self, user_id: str) -> bool:
        async with self.database.session() as db:
            repo = UserRepository(db)
            record = await repo.get_user_by_id(user_id)
            if record is None:
                return False
            await repo.delete_user(record)
            return True


def build_user_store(settings, database: Database) -> UserStore:
    if settings.user_store == USER_STORE_PLACEHOLDER:
        logger.warning("USER_STORE=placeholder: user data is fabricated and nothing is persisted")
        return PlaceholderUserStore()
    return DatabaseUserStore(database)
