from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from prospect_finder.config import settings

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    echo=settings.debug,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def init_db():
    """Create all tables. Called at startup."""
    import prospect_finder.models  # noqa: F401 ensure models are registered
    Base.metadata.create_all(bind=engine)
