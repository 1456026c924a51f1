from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel


class UserBase(SQLModel):
    """Base model for platform users."""
    email: str = Field(unique=True, index=True)
    role: str = "developer"
    verified: bool = False


class User(UserBase, table=True):
    """User table - owner of apps. Credentials are managed by the auth service."""
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
