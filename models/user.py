from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    email: str
    name: str
    created_at: datetime = Field(alias="createdAt")
    metadata: Optional[Dict[str, Any]] = None

    def to_response(self) -> dict:
        """JSON-ready dict in the API's camelCase shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class UserCreate(BaseModel):
    email: str
    name: str
    metadata: Optional[Dict[str, Any]] = None
    id: Optional[str] = None


class UserUpdate(BaseModel):
    """Partial profile update; only fields that were sent are applied."""

    name: Optional[str] = None
    email: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
