import logging

from sqlmodel import SQLModel
from sqlalchemy.engine import Engine

from floneo.db.engine import engine as default_engine
# Import models so they are registered with SQLModel.metadata
from floneo.models.user import User
from floneo.models.app import App
from floneo.models.canvas import Canvas, CanvasElement, ElementInteraction, ElementValidation
from floneo.models.history import CanvasHistory
from floneo.models.template import Template

logger = logging.getLogger(__name__)


def init_db(target: Engine | None = None) -> None:
    target = target or default_engine
    SQLModel.metadata.create_all(target)
    logger.info("Database tables ensured on %s", target.url.render_as_string(hide_password=True))
