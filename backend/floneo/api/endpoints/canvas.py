"""
Canvas API endpoints.

Every route follows the same unit of work:
1. resolve the caller's app (not owned == not found)
2. mutate rows and append the history entry on one session, commit once
3. after the commit, publish the realtime event (best effort)
"""
import copy
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from sqlmodel import Session

from floneo.core.error_handlers import handler_errors
from floneo.core.responses import success_response
from floneo.core.security import get_current_user
from floneo.core.websockets import ConnectionManager, app_channel, get_broadcaster, notify, state_channel
from floneo.db.database import get_session
from floneo.models import history
from floneo.models.canvas import (
    CanvasElement,
    CanvasStateSave,
    CanvasUpdate,
    ElementCreate,
    ElementDuplicate,
    ElementInteraction,
    ElementUpdate,
    ElementValidation,
)
from floneo.models.user import User
from floneo.services.canvas_state import replace_canvas_state
from floneo.services.history import record_history
from floneo.services.ownership import (
    ensure_parent_on_canvas,
    get_canvas_element,
    get_or_create_canvas,
    get_owned_app,
)
from floneo.services.snapshots import canvas_detail, element_snapshot

router = APIRouter()

# Fields that may be cleared with an explicit null; other nulls are ignored
NULLABLE_CANVAS_FIELDS = {"description"}
NULLABLE_ELEMENT_FIELDS = {"group_id", "parent_id"}
# An empty name leaves the stored one unchanged
NON_EMPTY_FIELDS = {"name"}


def _apply_changes(target, changes: dict, nullable: set) -> dict:
    applied = {}
    for field, value in changes.items():
        if value is None and field not in nullable:
            continue
        if value == "" and field in NON_EMPTY_FIELDS:
            continue
        setattr(target, field, value)
        applied[field] = value
    return applied


# ===== CANVAS =====

@router.get("/{app_id}")
def get_canvas(
    app_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Get the app's canvas with its elements, creating a default canvas on first access."""
    with handler_errors("Failed to retrieve canvas"):
        app = get_owned_app(session, app_id, user)
        canvas = get_or_create_canvas(session, app)
        session.commit()
        session.refresh(canvas)
        return success_response(canvas_detail(canvas))


@router.put("/{app_id}")
def update_canvas(
    app_id: int,
    data: CanvasUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    broadcaster: Optional[ConnectionManager] = Depends(get_broadcaster),
):
    """Partially update canvas properties. Fields absent from the body stay unchanged."""
    with handler_errors("Failed to update canvas"):
        app = get_owned_app(session, app_id, user)
        canvas = get_or_create_canvas(session, app)

        submitted = data.model_dump(exclude_unset=True)
        if _apply_changes(canvas, submitted, NULLABLE_CANVAS_FIELDS):
            canvas.updated_at = datetime.utcnow()
            session.add(canvas)

        record_history(
            session,
            canvas_id=canvas.id,
            action=history.CANVAS_UPDATE,
            user_id=user.id,
            new_state=jsonable_encoder(submitted),
        )
        session.commit()
        session.refresh(canvas)
        detail = canvas_detail(canvas)

    notify(broadcaster, app_channel(app_id), "canvas:updated", {
        "app_id": app_id,
        "canvas": detail,
        "updated_by": user.id,
        "timestamp": datetime.utcnow(),
    })
    return success_response(detail)


@router.patch("/{app_id}/state")
def save_canvas_state(
    app_id: int,
    payload: CanvasStateSave,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    broadcaster: Optional[ConnectionManager] = Depends(get_broadcaster),
):
    """
    Replace the whole canvas with the editor's snapshot.
    Elements missing from the snapshot are deleted.
    """
    state = payload.canvas_state
    with handler_errors("Failed to save canvas state", expose_error=True):
        app = get_owned_app(session, app_id, user)
        canvas = get_or_create_canvas(session, app)
        elements_count = replace_canvas_state(session, canvas, state)
        record_history(
            session,
            canvas_id=canvas.id,
            action=history.CANVAS_STATE_SAVE,
            user_id=user.id,
            new_state=jsonable_encoder(state),
        )
        session.commit()
        canvas_id = canvas.id

    notify(broadcaster, state_channel(app_id), "canvasStateSaved", {
        "app_id": app_id,
        "canvas_state": state,
        "user_id": user.id,
    })
    return success_response(
        {"canvas_id": canvas_id, "elements_count": elements_count},
        message="Canvas state saved successfully",
    )


# ===== ELEMENTS =====

@router.post("/{app_id}/elements", status_code=201)
def create_element(
    app_id: int,
    data: ElementCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    broadcaster: Optional[ConnectionManager] = Depends(get_broadcaster),
):
    """Create an element with a fresh external id."""
    with handler_errors("Failed to create element"):
        app = get_owned_app(session, app_id, user)
        canvas = get_or_create_canvas(session, app)
        if data.parent_id is not None:
            ensure_parent_on_canvas(session, canvas.id, data.parent_id)

        element = CanvasElement(
            canvas_id=canvas.id,
            element_id=str(uuid.uuid4()),
            type=data.type,
            name=data.name or f"{data.type} Element",
            x=data.x,
            y=data.y,
            width=data.width,
            height=data.height,
            rotation=data.rotation,
            z_index=data.z_index,
            group_id=data.group_id,
            parent_id=data.parent_id,
            properties=data.properties,
            styles=data.styles,
            constraints=data.constraints,
        )
        session.add(element)
        session.flush()

        snapshot = element_snapshot(element)
        record_history(
            session,
            canvas_id=canvas.id,
            action=history.ELEMENT_CREATE,
            user_id=user.id,
            element_id=element.element_id,
            new_state=snapshot,
        )
        session.commit()

    notify(broadcaster, app_channel(app_id), "element:created", {
        "app_id": app_id,
        "element": snapshot,
        "created_by": user.id,
        "timestamp": datetime.utcnow(),
    })
    return success_response(snapshot)


@router.put("/{app_id}/elements/{element_id}")
def update_element(
    app_id: int,
    element_id: str,
    data: ElementUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    broadcaster: Optional[ConnectionManager] = Depends(get_broadcaster),
):
    """Partially update an element. Fields absent from the body stay unchanged."""
    with handler_errors("Failed to update element"):
        app = get_owned_app(session, app_id, user)
        element = get_canvas_element(session, app, element_id)
        before = element_snapshot(element)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("parent_id") is not None:
            ensure_parent_on_canvas(session, element.canvas_id, changes["parent_id"], child_id=element.id)

        if _apply_changes(element, changes, NULLABLE_ELEMENT_FIELDS):
            element.updated_at = datetime.utcnow()
            session.add(element)
            session.flush()

        after = element_snapshot(element)
        record_history(
            session,
            canvas_id=element.canvas_id,
            action=history.ELEMENT_UPDATE,
            user_id=user.id,
            element_id=element_id,
            old_state=before,
            new_state=after,
        )
        session.commit()

    notify(broadcaster, app_channel(app_id), "element:updated", {
        "app_id": app_id,
        "element": after,
        "updated_by": user.id,
        "timestamp": datetime.utcnow(),
    })
    return success_response(after)


@router.delete("/{app_id}/elements/{element_id}")
def delete_element(
    app_id: int,
    element_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    broadcaster: Optional[ConnectionManager] = Depends(get_broadcaster),
):
    """Delete an element together with its children, interactions and validations."""
    with handler_errors("Failed to delete element"):
        app = get_owned_app(session, app_id, user)
        element = get_canvas_element(session, app, element_id)
        before = element_snapshot(element)
        canvas_id = element.canvas_id

        session.delete(element)
        record_history(
            session,
            canvas_id=canvas_id,
            action=history.ELEMENT_DELETE,
            user_id=user.id,
            element_id=element_id,
            old_state=before,
        )
        session.commit()

    notify(broadcaster, app_channel(app_id), "element:deleted", {
        "app_id": app_id,
        "element_id": element_id,
        "deleted_by": user.id,
        "timestamp": datetime.utcnow(),
    })
    return success_response(message="Element deleted successfully")


@router.post("/{app_id}/elements/{element_id}/duplicate", status_code=201)
def duplicate_element(
    app_id: int,
    element_id: str,
    data: Optional[ElementDuplicate] = None,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    broadcaster: Optional[ConnectionManager] = Depends(get_broadcaster),
):
    """
    Clone an element under a new external id, shifted by (offset_x, offset_y)
    and one step higher in z-order, copying its interactions and validations.
    """
    offsets = data or ElementDuplicate()
    with handler_errors("Failed to duplicate element"):
        app = get_owned_app(session, app_id, user)
        original = get_canvas_element(session, app, element_id)

        duplicate = CanvasElement(
            canvas_id=original.canvas_id,
            element_id=str(uuid.uuid4()),
            type=original.type,
            name=f"{original.name} Copy",
            x=original.x + offsets.offset_x,
            y=original.y + offsets.offset_y,
            width=original.width,
            height=original.height,
            rotation=original.rotation,
            z_index=original.z_index + 1,
            locked=original.locked,
            visible=original.visible,
            group_id=original.group_id,
            parent_id=original.parent_id,
            properties=copy.deepcopy(original.properties),
            styles=copy.deepcopy(original.styles),
            constraints=copy.deepcopy(original.constraints),
        )
        session.add(duplicate)
        session.flush()

        for interaction in original.interactions:
            session.add(ElementInteraction(
                element_id=duplicate.id,
                event=interaction.event,
                action=copy.deepcopy(interaction.action),
            ))
        for validation in original.validations:
            session.add(ElementValidation(
                element_id=duplicate.id,
                rule=validation.rule,
                value=copy.deepcopy(validation.value),
                message=validation.message,
            ))
        session.flush()
        session.expire(duplicate, ["interactions", "validations"])

        snapshot = element_snapshot(duplicate)
        record_history(
            session,
            canvas_id=duplicate.canvas_id,
            action=history.ELEMENT_DUPLICATE,
            user_id=user.id,
            element_id=duplicate.element_id,
            new_state=snapshot,
        )
        session.commit()

    notify(broadcaster, app_channel(app_id), "element:duplicated", {
        "app_id": app_id,
        "original_element_id": element_id,
        "duplicate_element": snapshot,
        "duplicated_by": user.id,
        "timestamp": datetime.utcnow(),
    })
    return success_response(snapshot)
