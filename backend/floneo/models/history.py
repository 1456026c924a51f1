from typing import Optional, Dict, Any
from datetime import datetime
from sqlmodel import Field, SQLModel, JSON

# Action tags written by the canvas endpoints
CANVAS_UPDATE = "canvas_update"
CANVAS_STATE_SAVE = "canvas_state_save"
ELEMENT_CREATE = "element_create"
ELEMENT_UPDATE = "element_update"
ELEMENT_DELETE = "element_delete"
ELEMENT_DUPLICATE = "element_duplicate"


class CanvasHistoryBase(SQLModel):
    """Audit entry for a canvas or element mutation."""
    action: str = Field(index=True)
    # External element id; kept as plain text so entries survive element deletion
    element_id: Optional[str] = Field(default=None, index=True)
    old_state: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)
    new_state: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)


class CanvasHistory(CanvasHistoryBase, table=True):
    """Append-only: rows are never updated or deleted by the application."""
    __tablename__ = "canvas_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    canvas_id: int = Field(foreign_key="canvas.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
