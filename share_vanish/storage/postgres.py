"""
PostgreSQL content store.

Every write is a single statement whose WHERE clause carries the expiry
predicate, so uniqueness is enforced by the primary key and an expired
row can neither be read, updated nor resurrected, whether or not the
purge has already deleted it.
"""
import logging
from datetime import datetime
from typing import Any

from ..conf import ExpiryPolicy
from ..exceptions import DuplicateCode, NotFoundOrExpired
from .abstract import AbstractStore, StoredRecord

logger = logging.getLogger("share_vanish.storage")

# SQL statements
_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS share_vanish_content (
    access_code TEXT PRIMARY KEY,
    ciphertext TEXT,
    created_at TIMESTAMPTZ NOT NULL,
    expires_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS share_vanish_content_expires_idx
    ON share_vanish_content (expires_at);
"""

_RESERVE = """
INSERT INTO share_vanish_content (access_code, ciphertext, created_at, expires_at)
VALUES ($1, NULL, $2, $3)
ON CONFLICT (access_code)
DO UPDATE SET ciphertext = NULL,
              created_at = EXCLUDED.created_at,
              expires_at = EXCLUDED.expires_at
WHERE share_vanish_content.expires_at <= $2
RETURNING access_code
"""

_CREATE = """
INSERT INTO share_vanish_content (access_code, ciphertext, created_at, expires_at)
VALUES ($1, $2, $3, $4)
ON CONFLICT (access_code)
DO UPDATE SET ciphertext = EXCLUDED.ciphertext,
              created_at = EXCLUDED.created_at,
              expires_at = EXCLUDED.expires_at
WHERE share_vanish_content.expires_at <= $5
   OR share_vanish_content.ciphertext IS NULL
RETURNING access_code, ciphertext, created_at, expires_at
"""

_SELECT_LIVE = """
SELECT access_code, ciphertext, created_at, expires_at
FROM share_vanish_content
WHERE access_code = $1 AND ciphertext IS NOT NULL AND expires_at > $2
"""

_UPDATE_FIXED = """
UPDATE share_vanish_content
SET ciphertext = $2
WHERE access_code = $1 AND ciphertext IS NOT NULL AND expires_at > $3
RETURNING access_code, ciphertext, created_at, expires_at
"""

_UPDATE_RESET = """
UPDATE share_vanish_content
SET ciphertext = $2, expires_at = $4
WHERE access_code = $1 AND ciphertext IS NOT NULL AND expires_at > $3
RETURNING access_code, ciphertext, created_at, expires_at
"""

_PURGE = """
DELETE FROM share_vanish_content WHERE expires_at <= $1
"""


def _record(row: Any) -> StoredRecord:
    return StoredRecord(
        access_code=row["access_code"],
        ciphertext=row["ciphertext"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
    )


class PostgresStore(AbstractStore):
    """Content store backed by an asyncpg-compatible connection pool."""

    def __init__(self, db_pool: Any, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._db = db_pool

    @classmethod
    async def connect(cls, dsn: str, *args, **kwargs) -> "PostgresStore":
        """Open a pool, make sure the table exists and return the store."""
        import asyncpg

        pool = await asyncpg.create_pool(dsn)
        store = cls(pool, *args, **kwargs)
        await store.setup()
        return store

    async def setup(self) -> None:
        async with self._db.acquire() as conn:
            await conn.execute(_CREATE_TABLE)

    async def reserve(self, access_code: str) -> bool:
        now = self.now()
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(
                _RESERVE, access_code, now, now + self.reservation_delta,
            )
        return row is not None

    async def create(
        self,
        access_code: str,
        ciphertext: str,
        created_at: datetime
    ) -> StoredRecord:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(
                _CREATE,
                access_code, ciphertext, created_at,
                created_at + self.ttl_delta, self.now(),
            )
        if row is None:
            raise DuplicateCode()
        return _record(row)

    async def get(self, access_code: str) -> StoredRecord:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(_SELECT_LIVE, access_code, self.now())
        if row is None:
            raise NotFoundOrExpired()
        return _record(row)

    async def update(self, access_code: str, ciphertext: str) -> StoredRecord:
        now = self.now()
        async with self._db.acquire() as conn:
            if self.expiry_policy is ExpiryPolicy.RESET_ON_UPDATE:
                row = await conn.fetchrow(
                    _UPDATE_RESET, access_code, ciphertext, now,
                    now + self.ttl_delta,
                )
            else:
                row = await conn.fetchrow(
                    _UPDATE_FIXED, access_code, ciphertext, now,
                )
        if row is None:
            raise NotFoundOrExpired()
        return _record(row)

    async def purge_expired(self) -> int:
        async with self._db.acquire() as conn:
            status = await conn.execute(_PURGE, self.now())
        # asyncpg returns the command tag, e.g. "DELETE 3"
        count = int(status.split()[-1]) if status else 0
        if count:
            logger.debug("Purged %d expired record(s) from postgres", count)
        return count

    async def close(self) -> None:
        await self._db.close()
