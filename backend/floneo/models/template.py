from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel


class TemplateBase(SQLModel):
    name: str = Field(index=True)
    description: Optional[str] = None
    preview_image: Optional[str] = None
    category: str = Field(default="general", index=True)


class Template(TemplateBase, table=True):
    """Read-only template catalog entry."""
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class TemplateSummary(TemplateBase):
    """Projection returned by the catalog listing."""
    id: int
    created_at: datetime
