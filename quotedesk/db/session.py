from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from quotedesk.core.config import get_settings

settings = get_settings()

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create all tables that do not exist yet."""
    from quotedesk.db import models  # noqa: F401 - register models on Base
    from quotedesk.db.base import Base

    Base.metadata.create_all(bind=engine)
