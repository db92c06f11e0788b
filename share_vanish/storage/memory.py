"""In-process content store, one dict guarded by an asyncio lock."""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..exceptions import DuplicateCode, NotFoundOrExpired
from ..conf import ExpiryPolicy
from .abstract import AbstractStore, StoredRecord

logger = logging.getLogger("share_vanish.storage")


@dataclass
class _Entry:
    created_at: datetime
    expires_at: datetime
    ciphertext: Optional[str] = None  # None while only reserved

    @property
    def reserved(self) -> bool:
        return self.ciphertext is None


class MemoryStore(AbstractStore):
    """Content store kept in process memory.

    Suitable for a single server process and for tests; records do not
    survive a restart.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._entries: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()

    def _live_entry(self, access_code: str, now: datetime) -> Optional[_Entry]:
        """Return the unexpired entry for a code (reserved or live)."""
        entry = self._entries.get(access_code)
        if entry is None:
            return None
        if entry.expires_at <= now:
            # lazy purge on access
            del self._entries[access_code]
            return None
        return entry

    def _record(self, access_code: str, entry: _Entry) -> StoredRecord:
        return StoredRecord(
            access_code=access_code,
            ciphertext=entry.ciphertext,
            created_at=entry.created_at,
            expires_at=entry.expires_at,
        )

    async def reserve(self, access_code: str) -> bool:
        async with self._lock:
            now = self.now()
            if self._live_entry(access_code, now) is not None:
                return False
            self._entries[access_code] = _Entry(
                created_at=now,
                expires_at=now + self.reservation_delta,
            )
            return True

    async def create(
        self,
        access_code: str,
        ciphertext: str,
        created_at: datetime
    ) -> StoredRecord:
        async with self._lock:
            entry = self._live_entry(access_code, self.now())
            if entry is not None and not entry.reserved:
                raise DuplicateCode()
            entry = _Entry(
                created_at=created_at,
                expires_at=created_at + self.ttl_delta,
                ciphertext=ciphertext,
            )
            self._entries[access_code] = entry
            return self._record(access_code, entry)

    async def get(self, access_code: str) -> StoredRecord:
        async with self._lock:
            entry = self._live_entry(access_code, self.now())
            if entry is None or entry.reserved:
                raise NotFoundOrExpired()
            return self._record(access_code, entry)

    async def update(self, access_code: str, ciphertext: str) -> StoredRecord:
        async with self._lock:
            now = self.now()
            entry = self._live_entry(access_code, now)
            if entry is None or entry.reserved:
                raise NotFoundOrExpired()
            entry.ciphertext = ciphertext
            if self.expiry_policy is ExpiryPolicy.RESET_ON_UPDATE:
                entry.expires_at = now + self.ttl_delta
            return self._record(access_code, entry)

    async def purge_expired(self) -> int:
        async with self._lock:
            now = self.now()
            expired = [
                code for code, entry in self._entries.items()
                if entry.expires_at <= now
            ]
            for code in expired:
                del self._entries[code]
        if expired:
            logger.debug("Purged %d expired record(s) from memory", len(expired))
        return len(expired)

    async def close(self) -> None:
        async with self._lock:
            self._entries.clear()
