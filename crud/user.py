"""
UserRepository for database operations on User model
"""

import uuid
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from database_models import User


class UserRepository:
    """
    Repository class for User database operations.
    Encapsulates all database logic for the User model.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """
        Retrieve a user by ID.

        Args:
            user_id: User's ID

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_user(self, user_data: dict) -> User:
        """
        Create a new user in the database.

        Args:
            user_data: Dictionary containing user data. Must include:
                - email: str
                - name: str
                Optional:
                - id: str (generated when missing)
                - metadata: dict

        Returns:
            Created User object
        """
        user = User(
            id=user_data.get("id") or f"user_{uuid.uuid4().hex}",
            email=user_data["email"],
            name=user_data["name"],
            user_metadata=user_data.get("metadata"),
        )
        self.db.add(user)
        await self.db.flush()  # Flush to surface constraint errors before commit
        await self.db.refresh(user)
        return user

    async def update_user(self, user: User, updates: dict) -> User:
        """
        Update user fields.

        Args:
            user: User object to update
            updates: Dictionary of fields to update (e.g., {"name": "Ada"})

        Returns:
            Updated User object
        """
        if "metadata" in updates:
            updates = dict(updates)
            updates["user_metadata"] = updates.pop("metadata")

        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)

        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def delete_user(self, user: User) -> None:
        await self.db.delete(user)
        await self.db.flush()
