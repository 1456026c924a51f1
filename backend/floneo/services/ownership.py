"""
Owner-scoped lookups shared by the canvas endpoints.
Missing and not-owned resources raise the same NotFoundError so callers never
learn whether another user's app exists.
"""
from typing import Optional

from sqlmodel import Session, select

from floneo.core.config import settings
from floneo.core.error_handlers import ELEMENT_NOT_FOUND, APIError, NotFoundError
from floneo.models.app import App
from floneo.models.canvas import Canvas, CanvasElement
from floneo.models.user import User

NESTING_CYCLE = "Element cannot be nested inside itself or its descendants"


def get_owned_app(session: Session, app_id: int, user: User) -> App:
    app = session.exec(
        select(App).where(App.id == app_id).where(App.owner_id == user.id)
    ).first()
    if not app:
        raise NotFoundError()
    return app


def find_canvas(session: Session, app_id: int) -> Optional[Canvas]:
    return session.exec(select(Canvas).where(Canvas.app_id == app_id)).first()


def get_or_create_canvas(session: Session, app: App) -> Canvas:
    """Return the app's canvas, adding a default one (flushed, not committed) if missing."""
    canvas = find_canvas(session, app.id)
    if canvas is None:
        canvas = Canvas(
            app_id=app.id,
            name=f"{app.name} Canvas",
            description=settings.DEFAULT_CANVAS_DESCRIPTION,
        )
        session.add(canvas)
        session.flush()
    return canvas


def get_canvas_element(session: Session, app: App, element_id: str) -> CanvasElement:
    """Look up an element by external id, restricted to the app's canvas."""
    element = session.exec(
        select(CanvasElement)
        .join(Canvas, CanvasElement.canvas_id == Canvas.id)
        .where(Canvas.app_id == app.id)
        .where(CanvasElement.element_id == element_id)
    ).first()
    if not element:
        raise NotFoundError(ELEMENT_NOT_FOUND)
    return element


def ensure_parent_on_canvas(session: Session, canvas_id: int, parent_id: int, child_id: Optional[int] = None) -> None:
    """
    A parent link must point at another element of the same canvas, and never
    at the child itself or one of its descendants.
    """
    parent = session.get(CanvasElement, parent_id)
    if parent is None or parent.canvas_id != canvas_id:
        raise NotFoundError("Parent element not found")
    if child_id is None:
        return

    seen = set()
    ancestor = parent
    while ancestor is not None and ancestor.id not in seen:
        if ancestor.id == child_id:
            raise APIError(400, NESTING_CYCLE)
        seen.add(ancestor.id)
        ancestor = session.get(CanvasElement, ancestor.parent_id) if ancestor.parent_id is not None else None
