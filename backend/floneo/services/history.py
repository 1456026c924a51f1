from typing import Any, Dict, Optional

from sqlmodel import Session

from floneo.models.history import CanvasHistory


def record_history(
    session: Session,
    *,
    canvas_id: int,
    action: str,
    user_id: int,
    element_id: Optional[str] = None,
    old_state: Optional[Dict[str, Any]] = None,
    new_state: Optional[Dict[str, Any]] = None,
) -> CanvasHistory:
    """
    Append an audit row to the caller's unit of work.

    Nothing is committed here: the caller commits the mutation and its history
    row together so neither can exist without the other.
    """
    entry = CanvasHistory(
        canvas_id=canvas_id,
        action=action,
        user_id=user_id,
        element_id=element_id,
        old_state=old_state,
        new_state=new_state,
    )
    session.add(entry)
    return entry
