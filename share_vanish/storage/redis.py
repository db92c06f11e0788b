"""
Redis content store.

Each code maps to one hash with the fields ``state`` (``reserved`` or
``live``), ``ciphertext``, ``created_at`` and ``expires_at`` (epoch
milliseconds). Redis key expiry removes records, and every
check-then-write runs inside a Lua script so it is atomic on the server.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from ..conf import ExpiryPolicy
from ..exceptions import DuplicateCode, NotFoundOrExpired
from .abstract import AbstractStore, StoredRecord

logger = logging.getLogger("share_vanish.storage")

# KEYS[1] = record key; ARGV = now_ms, reservation_ttl_ms
_RESERVE = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return 0
end
redis.call('HSET', KEYS[1], 'state', 'reserved', 'created_at', ARGV[1])
redis.call('PEXPIRE', KEYS[1], ARGV[2])
return 1
"""

# ARGV = ciphertext, created_at_ms, expires_at_ms
_CREATE = """
if redis.call('HGET', KEYS[1], 'state') == 'live' then
  return 0
end
redis.call('DEL', KEYS[1])
redis.call('HSET', KEYS[1], 'state', 'live', 'ciphertext', ARGV[1],
           'created_at', ARGV[2], 'expires_at', ARGV[3])
redis.call('PEXPIREAT', KEYS[1], ARGV[3])
return 1
"""

# ARGV = ciphertext, new expires_at_ms or '0' to keep the current expiry
_UPDATE = """
if redis.call('HGET', KEYS[1], 'state') ~= 'live' then
  return false
end
redis.call('HSET', KEYS[1], 'ciphertext', ARGV[1])
if ARGV[2] ~= '0' then
  redis.call('HSET', KEYS[1], 'expires_at', ARGV[2])
  redis.call('PEXPIREAT', KEYS[1], ARGV[2])
end
return redis.call('HMGET', KEYS[1], 'created_at', 'expires_at')
"""


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MS = timedelta(milliseconds=1)


def _to_ms(dt: datetime) -> int:
    return (dt - _EPOCH) // _MS


def _from_ms(value: Any) -> datetime:
    return _EPOCH + int(value) * _MS


class RedisStore(AbstractStore):
    """Content store backed by a ``redis.asyncio`` client.

    The client must be created with ``decode_responses=True``.
    """

    def __init__(self, redis: Any, *args, prefix: str = "sharevanish", **kwargs):
        super().__init__(*args, **kwargs)
        self._redis = redis
        self._prefix = prefix
        self._reserve = redis.register_script(_RESERVE)
        self._create = redis.register_script(_CREATE)
        self._update = redis.register_script(_UPDATE)

    @classmethod
    def from_url(cls, url: str, *args, **kwargs) -> "RedisStore":
        from redis import asyncio as aioredis

        client = aioredis.from_url(url, decode_responses=True)
        return cls(client, *args, **kwargs)

    def _key(self, access_code: str) -> str:
        """Build Redis record key."""
        return f"{self._prefix}:content:{access_code}"

    async def reserve(self, access_code: str) -> bool:
        ok = await self._reserve(
            keys=[self._key(access_code)],
            args=[_to_ms(self.now()), self.reservation_ttl * 1000],
        )
        return bool(int(ok))

    async def create(
        self,
        access_code: str,
        ciphertext: str,
        created_at: datetime
    ) -> StoredRecord:
        expires_at = created_at + self.ttl_delta
        ok = await self._create(
            keys=[self._key(access_code)],
            args=[ciphertext, _to_ms(created_at), _to_ms(expires_at)],
        )
        if not int(ok):
            raise DuplicateCode()
        return StoredRecord(
            access_code=access_code,
            ciphertext=ciphertext,
            created_at=_from_ms(_to_ms(created_at)),
            expires_at=_from_ms(_to_ms(expires_at)),
        )

    async def get(self, access_code: str) -> StoredRecord:
        state, ciphertext, created_at, expires_at = await self._redis.hmget(
            self._key(access_code),
            ["state", "ciphertext", "created_at", "expires_at"],
        )
        if state != "live":
            raise NotFoundOrExpired()
        expires = _from_ms(expires_at)
        if expires <= self.now():
            # key expiry may lag behind by a few milliseconds
            raise NotFoundOrExpired()
        return StoredRecord(
            access_code=access_code,
            ciphertext=ciphertext,
            created_at=_from_ms(created_at),
            expires_at=expires,
        )

    async def update(self, access_code: str, ciphertext: str) -> StoredRecord:
        new_expiry = 0
        if self.expiry_policy is ExpiryPolicy.RESET_ON_UPDATE:
            new_expiry = _to_ms(self.now() + self.ttl_delta)
        result = await self._update(
            keys=[self._key(access_code)],
            args=[ciphertext, new_expiry],
        )
        if not result:
            raise NotFoundOrExpired()
        created_at, expires_at = result
        return StoredRecord(
            access_code=access_code,
            ciphertext=ciphertext,
            created_at=_from_ms(created_at),
            expires_at=_from_ms(expires_at),
        )

    async def purge_expired(self) -> int:
        # Redis expires keys on its own
        return 0

    async def close(self) -> None:
        await self._redis.aclose()
