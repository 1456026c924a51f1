"""
Template catalog queries.

`query_templates` only reads; the analytics payload for a listing is built
separately by `template_access_event` and emitted by the route.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, or_
from sqlmodel import Session, select

from floneo.models.template import Template
from floneo.models.user import User

ALL_CATEGORIES = "all"


def _icontains(column, needle: str):
    return func.lower(column).contains(needle.lower(), autoescape=True)


def query_templates(
    session: Session,
    search: Optional[str] = None,
    category: Optional[str] = None,
) -> List[Template]:
    """
    Filter the catalog.
    - search: case-insensitive substring of name, description or category
    - category: exact match; "all" means no filter
    Results are ordered by name.
    """
    query = select(Template)
    if search and search.strip():
        query = query.where(
            or_(
                _icontains(Template.name, search),
                _icontains(Template.description, search),
                _icontains(Template.category, search),
            )
        )
    if category and category != ALL_CATEGORIES:
        query = query.where(Template.category == category)
    return list(session.exec(query.order_by(Template.name, Template.id)).all())


def template_access_event(user: User, templates: Sequence[Any]) -> Dict[str, Any]:
    categories = list(dict.fromkeys(t.category for t in templates))
    return {
        "user_id": user.id,
        "user_email": user.email,
        "action": "templates_listed",
        "template_count": len(templates),
        "categories": categories,
        "timestamp": datetime.utcnow().isoformat(),
    }
