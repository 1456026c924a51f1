from sqlmodel import Session

from floneo.db.engine import engine


def get_session():
    """Dependency to get a database session."""
    with Session(engine) as session:
        yield session
