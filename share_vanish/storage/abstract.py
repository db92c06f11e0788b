"""
Content Store — abstract interface for ciphertext persistence with expiry.

One record per access code. A record is either *reserved* (allocated, no
content yet) or *live* (ciphertext stored). Both are governed by an expiry
time; an expired record behaves exactly like an absent one, whether or not
it has been physically purged.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from ..conf import DEFAULT_TTL, ExpiryPolicy

logger = logging.getLogger("share_vanish.storage")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredRecord(BaseModel):
    """A live record as seen by callers of the store."""

    model_config = ConfigDict(frozen=True)

    access_code: str
    ciphertext: str
    created_at: datetime
    expires_at: datetime


class AbstractStore(ABC):
    """Abstract content store.

    Implementations must make ``reserve`` and ``create`` atomic with respect
    to concurrent callers on the same code, and must apply the expiry
    predicate on every read and write.
    """

    def __init__(
        self,
        ttl: int = DEFAULT_TTL,
        reservation_ttl: Optional[int] = None,
        expiry_policy: ExpiryPolicy = ExpiryPolicy.FIXED,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.ttl = ttl
        self.reservation_ttl = reservation_ttl or ttl
        self.expiry_policy = ExpiryPolicy(expiry_policy)
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    @property
    def ttl_delta(self) -> timedelta:
        return timedelta(seconds=self.ttl)

    @property
    def reservation_delta(self) -> timedelta:
        return timedelta(seconds=self.reservation_ttl)

    @abstractmethod
    async def reserve(self, access_code: str) -> bool:
        """Reserve an unused code.

        Returns:
            True if the code was free (absent or expired) and is now reserved,
            False if a live or reserved record holds it.
        """

    @abstractmethod
    async def create(
        self,
        access_code: str,
        ciphertext: str,
        created_at: datetime
    ) -> StoredRecord:
        """Store ciphertext under a code that is free or only reserved.

        Raises:
            DuplicateCode: If a live record already holds the code.
        """

    @abstractmethod
    async def get(self, access_code: str) -> StoredRecord:
        """Return the live record for a code.

        Raises:
            NotFoundOrExpired: If absent, only reserved, or expired.
        """

    @abstractmethod
    async def update(self, access_code: str, ciphertext: str) -> StoredRecord:
        """Replace the ciphertext of a live record in place.

        ``created_at`` never changes. ``expires_at`` only moves under
        ``ExpiryPolicy.RESET_ON_UPDATE``.

        Raises:
            NotFoundOrExpired: If there is no live record for the code.
        """

    @abstractmethod
    async def purge_expired(self) -> int:
        """Physically remove expired records, returning how many went away."""

    async def close(self) -> None:
        """Release backend resources."""
