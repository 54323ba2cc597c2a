# wildyak/infra/session_stores.py
"""Pick the session store named by ``settings.session_store``."""
from __future__ import annotations

from wildyak.config import Settings
from wildyak.core.engine.ports import AsyncSessionStore
from wildyak.infra.logging_config import get_logger

logger = get_logger(__name__)


def create_session_store(s: Settings | None = None) -> AsyncSessionStore:
    if s is None:
        from wildyak.config import settings as s

    if s.session_store == "postgres":
        from wildyak.infra.pg_session_store_async import AsyncPostgresSessionStore
        store: AsyncSessionStore = AsyncPostgresSessionStore(table=s.session_table)
    else:
        from wildyak.infra.memory_session_store import InMemorySessionStore
        store = InMemorySessionStore()

    logger.info(f"Session store: {s.session_store}")
    return store
