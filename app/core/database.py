import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from app.core.config import settings

logger = logging.getLogger(__name__)


# -----------------------
# SQLAlchemy engine
# -----------------------
def build_engine(url: str, echo: bool = False):
    """Create the engine for the configured store.

    PostgreSQL gets a pooled engine; SQLite (local runs and tests) shares a
    single connection so an in-memory database survives across sessions.
    """
    parsed = make_url(url)
    # Hide password in logs
    logger.info(f"Connecting to database: {parsed.render_as_string(hide_password=True)}")

    if parsed.get_backend_name() == "sqlite":
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
        connect_args={"connect_timeout": 5},
    )


engine = build_engine(settings.sqlalchemy_url, echo=settings.db_echo)

# -----------------------
# Session and Base
# -----------------------
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# -----------------------
# Dependency for FastAPI
# -----------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database error occurred: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()
