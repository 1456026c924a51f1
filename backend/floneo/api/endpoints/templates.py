"""
Templates API endpoints.
Read-only catalog of starter templates.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from floneo.core.error_handlers import handler_errors
from floneo.core.responses import success_response
from floneo.core.security import get_current_user
from floneo.core.websockets import ConnectionManager, get_broadcaster, notify_all
from floneo.db.database import get_session
from floneo.models.template import TemplateSummary
from floneo.models.user import User
from floneo.services.templates import query_templates, template_access_event

router = APIRouter()


@router.get("")
def list_templates(
    search: Optional[str] = None,
    category: Optional[str] = None,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    broadcaster: Optional[ConnectionManager] = Depends(get_broadcaster),
):
    """
    List templates, optionally filtered.
    - search: case-insensitive match on name, description or category
    - category: exact category, or "all"
    """
    with handler_errors("Failed to retrieve templates"):
        templates = [TemplateSummary.model_validate(t) for t in query_templates(session, search, category)]

    notify_all(broadcaster, "template:accessed", template_access_event(user, templates))
    return success_response(
        {"templates": templates, "count": len(templates)},
        message="Templates retrieved successfully",
    )
