"""
Chat message history stored in a Postgres table.
"""

import logging
from typing import List, Optional
from psycopg import errors, sql
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from config.settings import settings
from core.errors import UpstreamFailure, ValidationError
from core.messages import ChatMessage
from interfaces.ichat_message_history import IChatMessageHistory

logger = logging.getLogger(__name__)


class PostgresChatMessageHistory(IChatMessageHistory):
    """
    Chat message history for one session, stored one row per message.

    Args:
        session_id: Session whose messages are read and written
        pool: Shared connection pool; used as-is and never closed here
        conninfo: Connection string used to create an owned pool when no pool is given
        table_name: Table holding the messages
        escape_table_name: Quote the table name as an identifier
    """

    def __init__(self, session_id: str, pool: Optional[AsyncConnectionPool] = None,
                 conninfo: Optional[str] = None, table_name: Optional[str] = None,
                 escape_table_name: bool = False):
        if not session_id:
            raise ValidationError("PostgresChatMessageHistory requires a session id")
        conninfo = conninfo or settings.POSTGRES_CONNINFO
        if pool is None and not conninfo:
            raise ValidationError("PostgresChatMessageHistory requires either a pool instance or pool config")

        self.session_id = session_id
        self._owns_pool = pool is None
        self.pool = pool or AsyncConnectionPool(conninfo, open=False)
        self._pool_opened = not self._owns_pool
        name = table_name or settings.POSTGRES_CHAT_TABLE
        self.table_name = name
        self._table = sql.Identifier(name) if escape_table_name else sql.SQL(name)
        self._initialized = False

    async def _ensure_table(self) -> None:
        if self._initialized:
            return
        if not self._pool_opened:
            await self.pool.open()
            self._pool_opened = True

        query = sql.SQL("""
            CREATE TABLE IF NOT EXISTS {table} (
                id SERIAL PRIMARY KEY,
                session_id VARCHAR(255) NOT NULL,
                message JSONB NOT NULL
            );""").format(table=self._table)

        try:
            async with self.pool.connection() as conn:
                await conn.execute(query)
        except errors.UniqueViolation:
            # Another client created the table between the existence check and CREATE
            logger.debug(f"Table {self.table_name} was created concurrently")
        except Exception as e:
            logger.error(f"Error creating chat history table {self.table_name}: {e}")
            raise UpstreamFailure(f"Could not create table {self.table_name}: {e}", service="postgres") from e
        self._initialized = True

    async def add_message(self, message: ChatMessage) -> None:
        await self._ensure_table()
        query = sql.SQL("INSERT INTO {table} (session_id, message) VALUES (%s, %s)").format(table=self._table)
        try:
            async with self.pool.connection() as conn:
                await conn.execute(query, (self.session_id, Jsonb(message.to_stored())))
        except Exception as e:
            logger.error(f"Error adding message to session {self.session_id}: {e}")
            raise UpstreamFailure(f"Could not add message to session {self.session_id}: {e}",
                                  service="postgres") from e

    async def get_messages(self) -> List[ChatMessage]:
        await self._ensure_table()
        query = sql.SQL("SELECT message FROM {table} WHERE session_id = %s ORDER BY id").format(table=self._table)
        try:
            async with self.pool.connection() as conn:
                cursor = await conn.execute(query, (self.session_id,))
                rows = await cursor.fetchall()
        except Exception as e:
            logger.error(f"Error retrieving messages for session {self.session_id}: {e}")
            raise UpstreamFailure(f"Could not read session {self.session_id}: {e}", service="postgres") from e
        return [ChatMessage.from_stored(row[0]) for row in rows]

    async def clear(self) -> None:
        await self._ensure_table()
        query = sql.SQL("DELETE FROM {table} WHERE session_id = %s").format(table=self._table)
        try:
            async with self.pool.connection() as conn:
                await conn.execute(query, (self.session_id,))
        except Exception as e:
            logger.error(f"Error clearing session {self.session_id}: {e}")
            raise UpstreamFailure(f"Could not clear session {self.session_id}: {e}", service="postgres") from e

    async def end(self) -> None:
        """Close the pool if this history created it."""
        if self._owns_pool and self._pool_opened:
            await self.pool.close()
            self._pool_opened = False
