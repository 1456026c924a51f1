"""
Canvas models.
A canvas belongs to exactly one app and holds positioned elements; elements
may nest (parent/children) and carry interactions and validation rules.
Free-form payloads (properties, styles, constraints, actions) are stored as JSON.
"""
from typing import Optional, Dict, Any, List
from datetime import datetime
from sqlmodel import Field, SQLModel, JSON, Relationship
from sqlalchemy import Column, ForeignKey, Integer

DEFAULT_CANVAS_WIDTH = 1200
DEFAULT_CANVAS_HEIGHT = 800
DEFAULT_BACKGROUND: Dict[str, Any] = {"color": "#ffffff", "opacity": 100}


def _default_background() -> Dict[str, Any]:
    return dict(DEFAULT_BACKGROUND)


# --- Canvas ---
class CanvasBase(SQLModel):
    """Editable surface settings."""
    name: str
    description: Optional[str] = None
    width: int = DEFAULT_CANVAS_WIDTH
    height: int = DEFAULT_CANVAS_HEIGHT
    background: Dict[str, Any] = Field(default_factory=_default_background, sa_type=JSON)
    grid_enabled: bool = True
    snap_enabled: bool = True
    zoom_level: float = 1.0


class Canvas(CanvasBase, table=True):
    """One canvas per app, created lazily on first access."""
    id: Optional[int] = Field(default=None, primary_key=True)
    app_id: int = Field(foreign_key="app.id", unique=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    elements: List["CanvasElement"] = Relationship(
        back_populates="canvas",
        sa_relationship_kwargs={"order_by": "CanvasElement.z_index", "cascade": "all, delete"},
    )


class CanvasUpdate(SQLModel):
    """Partial canvas update; only fields sent by the client are applied."""
    name: Optional[str] = None
    description: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    background: Optional[Dict[str, Any]] = None
    grid_enabled: Optional[bool] = None
    snap_enabled: Optional[bool] = None
    zoom_level: Optional[float] = None


class CanvasRead(CanvasBase):
    id: int
    app_id: int
    created_at: datetime
    updated_at: datetime


# --- Elements ---
class CanvasElementBase(SQLModel):
    """Geometry, flags and opaque payloads of a canvas element."""
    type: str
    name: str
    x: float = 0
    y: float = 0
    width: float = 100
    height: float = 50
    rotation: float = 0
    z_index: int = Field(default=0, index=True)
    locked: bool = False
    visible: bool = True
    group_id: Optional[str] = Field(default=None, index=True)
    properties: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    styles: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    constraints: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)


class CanvasElement(CanvasElementBase, table=True):
    """
    Positioned element on a canvas.
    `element_id` is the external, globally unique identifier used by clients;
    `id` is the internal key used for parent/child and interaction links.
    """
    __tablename__ = "canvas_element"

    id: Optional[int] = Field(default=None, primary_key=True)
    element_id: str = Field(unique=True, index=True)
    canvas_id: int = Field(
        sa_column=Column(Integer, ForeignKey("canvas.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    parent_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("canvas_element.id", ondelete="CASCADE"), index=True),
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    canvas: Optional[Canvas] = Relationship(back_populates="elements")
    parent: Optional["CanvasElement"] = Relationship(
        back_populates="children",
        sa_relationship_kwargs={"remote_side": "CanvasElement.id"},
    )
    children: List["CanvasElement"] = Relationship(
        back_populates="parent",
        sa_relationship_kwargs={"cascade": "all, delete", "passive_deletes": True, "order_by": "CanvasElement.z_index"},
    )
    interactions: List["ElementInteraction"] = Relationship(
        back_populates="element",
        sa_relationship_kwargs={"cascade": "all, delete", "passive_deletes": True, "order_by": "ElementInteraction.id"},
    )
    validations: List["ElementValidation"] = Relationship(
        back_populates="element",
        sa_relationship_kwargs={"cascade": "all, delete", "passive_deletes": True, "order_by": "ElementValidation.id"},
    )


class ElementCreate(SQLModel):
    """Schema for creating an element. Geometry is coerced to numbers."""
    type: str
    name: Optional[str] = None
    x: float = 0
    y: float = 0
    width: float = 100
    height: float = 50
    rotation: float = 0
    z_index: int = 0
    group_id: Optional[str] = None
    parent_id: Optional[int] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    styles: Dict[str, Any] = Field(default_factory=dict)
    constraints: Dict[str, Any] = Field(default_factory=dict)


class ElementUpdate(SQLModel):
    """Partial element update; omitted fields stay unchanged."""
    name: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    rotation: Optional[float] = None
    z_index: Optional[int] = None
    locked: Optional[bool] = None
    visible: Optional[bool] = None
    group_id: Optional[str] = None
    parent_id: Optional[int] = None
    properties: Optional[Dict[str, Any]] = None
    styles: Optional[Dict[str, Any]] = None
    constraints: Optional[Dict[str, Any]] = None


class ElementDuplicate(SQLModel):
    offset_x: float = 20
    offset_y: float = 20


# --- Interactions & validations ---
class ElementInteractionBase(SQLModel):
    """Event -> action binding."""
    event: str
    action: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)


class ElementInteraction(ElementInteractionBase, table=True):
    __tablename__ = "element_interaction"

    id: Optional[int] = Field(default=None, primary_key=True)
    element_id: int = Field(
        sa_column=Column(Integer, ForeignKey("canvas_element.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    element: Optional[CanvasElement] = Relationship(back_populates="interactions")


class ElementValidationBase(SQLModel):
    """Rule applied to an element's data, e.g. required / minLength / pattern."""
    rule: str
    message: Optional[str] = None


class ElementValidation(ElementValidationBase, table=True):
    __tablename__ = "element_validation"

    id: Optional[int] = Field(default=None, primary_key=True)
    element_id: int = Field(
        sa_column=Column(Integer, ForeignKey("canvas_element.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    value: Optional[Any] = Field(default=None, sa_type=JSON)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    element: Optional[CanvasElement] = Relationship(back_populates="validations")


class InteractionRead(ElementInteractionBase):
    id: int
    element_id: int
    created_at: datetime


class ValidationRead(ElementValidationBase):
    id: int
    element_id: int
    value: Optional[Any] = None
    created_at: datetime


class ElementRead(CanvasElementBase):
    id: int
    element_id: str
    canvas_id: int
    parent_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ElementDetail(ElementRead):
    """Element with its interactions, validations and direct children."""
    interactions: List[InteractionRead] = []
    validations: List[ValidationRead] = []
    children: List[ElementRead] = []


class CanvasDetail(CanvasRead):
    """Canvas with all of its elements ordered by z_index."""
    elements: List[ElementDetail] = []


# --- Bulk state ---
class CanvasState(SQLModel):
    """
    Full canvas snapshot produced by the editor.
    Element records are kept as opaque dicts; see services.canvas_state.
    """
    name: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    background: Optional[Dict[str, Any]] = None
    zoom_level: Optional[float] = None
    elements: List[Dict[str, Any]] = Field(default_factory=list)


class CanvasStateSave(SQLModel):
    canvas_state: CanvasState
