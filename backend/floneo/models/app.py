from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel


class AppBase(SQLModel):
    """Base model for user-owned apps."""
    name: str
    description: Optional[str] = None
    archived: bool = Field(default=False, index=True)


class App(AppBase, table=True):
    """App table - a user's project; owns exactly one canvas."""
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class AppCreate(SQLModel):
    """Schema for creating a new app."""
    name: str
    description: Optional[str] = None


class AppUpdate(SQLModel):
    """Schema for updating an app (archive/restore included)."""
    name: Optional[str] = None
    description: Optional[str] = None
    archived: Optional[bool] = None


class AppRead(AppBase):
    """Schema for reading app data."""
    id: int
    owner_id: int
    created_at: datetime
    updated_at: datetime
