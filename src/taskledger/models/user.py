"""User and category models - reference data owned by collaborators."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class User(BaseModel):
    """Task owner as seen by the core.

    The credential hash is opaque here; it is stored but never inspected.
    """

    user_id: UUID
    name: str
    email: str
    password_hash: str = Field(repr=False)
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None


class Category(BaseModel):
    """Task category. A null owner marks a global category."""

    category_id: UUID
    name: str
    color: Optional[str] = None
    description: Optional[str] = None
    owner_id: Optional[UUID] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
