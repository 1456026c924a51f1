"""
Bulk canvas-state replace.

The editor periodically saves its whole canvas as one snapshot. Saving is a
full replace, not a merge: every element currently on the canvas is deleted and
the snapshot's elements are inserted in its place. Element records arrive as
loose editor dicts, so each field is read leniently with a fallback default.
"""
import logging
import math
import random
import string
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List

from sqlalchemy import delete
from sqlmodel import Session

from floneo.models.canvas import Canvas, CanvasElement, CanvasState

logger = logging.getLogger(__name__)

DEFAULT_ELEMENT_TYPE = "SHAPE"
DEFAULT_ELEMENT_NAME = "Untitled Element"

# Style keys lifted out of an element's properties into its styles column
STYLE_PROPERTY_KEYS = (
    "backgroundColor",
    "color",
    "fontSize",
    "fontWeight",
    "textAlign",
    "borderRadius",
    "borderWidth",
    "borderColor",
)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _number(value: Any, default: float) -> float:
    """Parse a number; unparsable, NaN or zero values fall back to the default."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number) or number == 0:
        return default
    return number


def _integer(value: Any, default: int) -> int:
    return int(_number(value, default))


def synthesize_element_id(element_type: str) -> str:
    """<type>-<epoch ms>-<9 random base36 chars>, used when a record carries no id."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{element_type}-{int(time.time() * 1000)}-{suffix}"


def _properties(record: Dict[str, Any]) -> Dict[str, Any]:
    properties = record.get("properties")
    return properties if isinstance(properties, dict) else {}


def derive_styles(record: Dict[str, Any]) -> Dict[str, Any]:
    properties = _properties(record)
    styles = {key: properties[key] for key in STYLE_PROPERTY_KEYS if properties.get(key) is not None}
    if record.get("opacity") is not None:
        styles["opacity"] = record["opacity"]
    return styles


def build_element(canvas_id: int, record: Dict[str, Any]) -> CanvasElement:
    element_type = str(record.get("type") or DEFAULT_ELEMENT_TYPE)
    properties = _properties(record)
    group_id = record.get("group_id")
    return CanvasElement(
        canvas_id=canvas_id,
        element_id=str(record["id"]) if record.get("id") else synthesize_element_id(element_type),
        type=element_type,
        name=str(record.get("name") or DEFAULT_ELEMENT_NAME),
        x=_number(record.get("x"), 0),
        y=_number(record.get("y"), 0),
        width=_number(record.get("width"), 100),
        height=_number(record.get("height"), 50),
        rotation=_number(record.get("rotation"), 0),
        z_index=_integer(record.get("z_index"), 0),
        locked=bool(properties.get("locked")),
        visible=not bool(properties.get("hidden")),
        group_id=str(group_id) if group_id else None,
        properties=properties,
        styles=derive_styles(record),
    )


def incoming_element_ids(records: Iterable[Dict[str, Any]]) -> List[str]:
    return [str(record["id"]) for record in records if record.get("id")]


def replace_canvas_state(session: Session, canvas: Canvas, state: CanvasState) -> int:
    """
    Replace the canvas contents with the snapshot inside the caller's transaction.
    Returns the number of elements written.
    """
    session.execute(delete(CanvasElement).where(CanvasElement.canvas_id == canvas.id))

    # Incoming ids may still be taken by elements on other canvases; free them
    # so the inserts below don't hit the unique constraint.
    external_ids = incoming_element_ids(state.elements)
    if external_ids:
        result = session.execute(delete(CanvasElement).where(CanvasElement.element_id.in_(external_ids)))
        if result.rowcount:
            logger.warning(
                f"Canvas {canvas.id} state save removed {result.rowcount} element(s) "
                f"with colliding ids from other canvases"
            )

    elements = [build_element(canvas.id, record) for record in state.elements]
    session.add_all(elements)

    canvas.name = state.name or canvas.name
    canvas.width = state.width or canvas.width
    canvas.height = state.height or canvas.height
    canvas.background = state.background or canvas.background
    canvas.zoom_level = state.zoom_level or canvas.zoom_level
    canvas.updated_at = datetime.utcnow()
    session.add(canvas)
    session.flush()
    return len(elements)
