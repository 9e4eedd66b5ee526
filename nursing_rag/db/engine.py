# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Async SQLAlchemy engine over asyncpg, shared by the textbook and video
# stores. The service only reads from the knowledge base, so there is no
# commit policy: every search opens a session with `async with`, runs one
# statement and closes it.
#
# POOL DISCIPLINE:
#   - bounded size (db_pool_size, no overflow)
#   - bounded wait for a free connection (db_pool_timeout_seconds)
#   - age-based recycling (db_pool_recycle_seconds)
#   - liveness check on checkout (pool_pre_ping)
#   - eviction after db_connection_max_uses checkouts
#
# `async with` releases the connection on success, on error and when a
# timeout cancels the awaiting task, so abandoned searches never leak
# pooled connections.
# =============================================================================

import logging

from sqlalchemy import event
from sqlalchemy.exc import DisconnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from nursing_rag.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Async Engine
# ---------------------------------------------------------------------------
# asyncpg takes `ssl` as a connect argument rather than a URL parameter.
# ---------------------------------------------------------------------------
_connect_args: dict = {"ssl": "require"} if settings.db_ssl else {}

async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=settings.db_pool_size,
    max_overflow=0,
    pool_timeout=settings.db_pool_timeout_seconds,
    pool_recycle=settings.db_pool_recycle_seconds,
    pool_pre_ping=True,
    connect_args=_connect_args,
)


@event.listens_for(async_engine.sync_engine, "checkout")
def _evict_overused_connection(dbapi_connection, connection_record, connection_proxy):
    """
    Count checkouts per pooled connection and drop it past the limit.

    Raising DisconnectionError from a checkout hook makes the pool discard
    the connection and transparently open a fresh one.
    """
    uses = connection_record.info.get("uses", 0) + 1
    connection_record.info["uses"] = uses
    if uses > settings.db_connection_max_uses:
        logger.info("Recycling pooled connection after %d uses", uses - 1)
        connection_record.info["uses"] = 0
        raise DisconnectionError("connection reached its max-use limit")


# ---------------------------------------------------------------------------
# Session Factory
# ---------------------------------------------------------------------------
async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def dispose_engine() -> None:
    """Close every pooled connection. Called on application shutdown."""
    await async_engine.dispose()
    logger.info("Database engine disposed")
