# wildyak/infra/pg_session_store_async.py
from __future__ import annotations
import json
from typing import Optional, Sequence

from wildyak.core.engine.domain import Topic, YakSession
from wildyak.core.engine.ports import AsyncSessionStore
from wildyak.infra.db_async import db_conn
from wildyak.infra.logging_config import get_logger, mask_id
from wildyak.infra.metrics import AppMetrics
from wildyak.infra.session_codec import decode_session, encode_session

logger = get_logger(__name__)


class AsyncPostgresSessionStore(AsyncSessionStore):
    """
    Async implementation of AsyncSessionStore using asyncpg.

    Continuations must be declared in the parent topic's ``callbacks``
    and context data must be JSON-serializable (see session_codec).
    """

    def __init__(self, table: str | None = None, conn_factory=db_conn) -> None:
        from wildyak.config import settings

        self.table = table or settings.session_table
        self._conn = conn_factory

    async def ensure_schema(self) -> None:
        async with self._conn() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                  id text PRIMARY KEY,
                  type text NOT NULL,
                  state_json jsonb NOT NULL,
                  updated_at timestamptz NOT NULL DEFAULT now()
                )
                """
            )
        logger.info(f"Session table ready: {self.table}")

    async def get(self, session_id: str, topics: Sequence[Topic]) -> Optional[YakSession]:
        try:
            async with self._conn() as conn:
                row = await conn.fetchrow(
                    f"SELECT state_json::text AS state_json FROM {self.table} WHERE id=$1",
                    session_id
                )
        except Exception:
            logger.error(f"Failed to get session: id={mask_id(session_id)}", exc_info=True)
            AppMetrics.database_error("session_get")
            raise

        if not row:
            return None
        return decode_session(json.loads(row["state_json"]), topics)

    async def save(self, session: YakSession) -> None:
        payload = encode_session(session)
        try:
            async with self._conn() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO {self.table}(id, type, state_json)
                    VALUES ($1, $2, $3::jsonb)
                    ON CONFLICT (id)
                    DO UPDATE SET
                      type = EXCLUDED.type,
                      state_json = EXCLUDED.state_json,
                      updated_at = now()
                    """,
                    session.id, session.type, json.dumps(payload)
                )
        except Exception:
            logger.error(f"Failed to save session: id={mask_id(session.id)}", exc_info=True)
            AppMetrics.database_error("session_save")
            raise

    async def delete(self, session_id: str) -> None:
        try:
            async with self._conn() as conn:
                await conn.execute(f"DELETE FROM {self.table} WHERE id=$1", session_id)
        except Exception:
            logger.error(f"Failed to delete session: id={mask_id(session_id)}", exc_info=True)
            AppMetrics.database_error("session_delete")
            raise
