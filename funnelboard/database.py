"""FUNNELBOARD — Database Engine & Session Factory.

Holds the definition tables (funnels, custom metrics, goals). Ad records
themselves are never stored here; they arrive per render.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from funnelboard.config import settings
from funnelboard.core.logging import get_logger

# Register tables on SQLModel.metadata before init_db() runs
import funnelboard.models.db_models  # noqa: F401

logger = get_logger("database")


def mask_url(url: str) -> str:
    """Hide the password of a database URL for logging."""
    if "@" not in url:
        return url
    credentials, host = url.split("@", 1)
    scheme, _, userinfo = credentials.partition("//")
    if ":" not in userinfo:
        return url
    user = userinfo.split(":", 1)[0]
    return f"{scheme}//{user}:****@{host}"


def build_engine(url: str) -> Engine:
    """Create an engine with pool settings suited to the backend."""
    if url.startswith("sqlite"):
        logger.info(f"📦 Definitions store: SQLite ({url})")
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})

    logger.info(f"🐘 Definitions store: PostgreSQL ({mask_url(url)})")
    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=300,
    )


engine = build_engine(settings.effective_database_url)


def check_connection(bind: Optional[Engine] = None) -> bool:
    """Run SELECT 1; False (and an error log) if the store is unreachable."""
    bind = bind or engine
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"❌ Definitions store unreachable: {e}")
        return False
    return True


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the funnels, custom_metrics and goals tables if missing."""
    SQLModel.metadata.create_all(bind or engine)
    logger.info("✅ Definition tables ready")


@contextmanager
def session_scope(bind: Optional[Engine] = None) -> Iterator[Session]:
    """Session for one unit of work; rolled back if the block raises."""
    with Session(bind or engine) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
