"""
Apps API endpoints.
Lists and manages the caller's apps; each app owns one canvas.
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from floneo.core.error_handlers import handler_errors
from floneo.core.responses import success_response
from floneo.core.security import get_current_user
from floneo.db.database import get_session
from floneo.models.app import App, AppCreate, AppRead, AppUpdate
from floneo.models.user import User
from floneo.services.ownership import get_owned_app

router = APIRouter()


@router.get("")
def list_apps(
    include_archived: bool = True,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """List the caller's apps, newest first. Set include_archived=false to hide archived apps."""
    with handler_errors("Failed to retrieve apps"):
        query = select(App).where(App.owner_id == user.id)
        if not include_archived:
            query = query.where(App.archived == False)
        apps = session.exec(query.order_by(App.created_at.desc(), App.id.desc())).all()
        reads = [AppRead.model_validate(a) for a in apps]
    return success_response({"apps": reads, "count": len(reads)})


@router.post("", status_code=201)
def create_user_app(
    data: AppCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    with handler_errors("Failed to create app"):
        app = App(name=data.name, description=data.description, owner_id=user.id)
        session.add(app)
        session.commit()
        session.refresh(app)
    return success_response({"app": AppRead.model_validate(app)}, message="App created successfully")


@router.get("/{app_id}")
def get_app(
    app_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    with handler_errors("Failed to retrieve app"):
        app = get_owned_app(session, app_id, user)
        return success_response({"app": AppRead.model_validate(app)})


@router.patch("/{app_id}")
def update_app(
    app_id: int,
    data: AppUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Rename, re-describe, archive or restore an app."""
    with handler_errors("Failed to update app"):
        app = get_owned_app(session, app_id, user)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field != "description":
                continue
            setattr(app, field, value)
        app.updated_at = datetime.utcnow()
        session.add(app)
        session.commit()
        session.refresh(app)
    return success_response({"app": AppRead.model_validate(app)}, message="App updated successfully")
