"""
ContentExchange — server half of the exchange protocol.

Lifecycle of one code:
    Unallocated → Allocated (reserved, no content)
                → Live (ciphertext stored, readable and writable)
                → Expired (terminal, the code may be allocated again)

The server only sees access codes (as lookup keys) and opaque ciphertext.

Security Note:
    An access code is also the key derivation input. Never log codes,
    ciphertext or anything derived from them.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from .allocator import CodeAllocator
from .conf import ExchangeConfig
from .exceptions import (
    NotFoundOrExpired,
    SizeLimitExceeded,
    ValidationError,
)
from .storage import AbstractStore, StoredRecord

logger = logging.getLogger("share_vanish.exchange")


class ContentExchange:
    """Validates requests and drives the store for allocate/create/fetch/update."""

    def __init__(self, store: AbstractStore, config: Optional[ExchangeConfig] = None):
        self.config = config or ExchangeConfig()
        self.store = store
        self.allocator = CodeAllocator(
            store,
            alphabet=self.config.code_alphabet,
            length=self.config.code_length,
            max_attempts=self.config.max_allocation_attempts,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_ciphertext(self, encrypted_data) -> None:
        if not encrypted_data or not isinstance(encrypted_data, str):
            raise ValidationError("encryptedData is required")
        if len(encrypted_data) > self.config.max_ciphertext_size:
            raise SizeLimitExceeded()

    def _validate_created_at(self, created_at: Optional[datetime]) -> datetime:
        """Bound a client supplied creation time by the server clock.

        Future timestamps are clamped to now so a client cannot extend
        the window; timestamps already outside the window are rejected.
        """
        now = self.store.now()
        if created_at is None:
            return now
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        if created_at > now:
            return now
        if created_at + self.store.ttl_delta <= now:
            raise ValidationError("createdAt is outside the retention window")
        return created_at

    # ------------------------------------------------------------------
    # Protocol operations
    # ------------------------------------------------------------------

    async def allocate(self) -> str:
        """Reserve a fresh access code (Unallocated → Allocated)."""
        return await self.allocator.allocate()

    async def create(
        self,
        access_code: str,
        encrypted_data: str,
        created_at: Optional[datetime] = None
    ) -> str:
        """Store ciphertext under a code (Allocated → Live).

        Raises:
            ValidationError: Missing or malformed code, ciphertext or timestamp.
            SizeLimitExceeded: Ciphertext larger than the configured ceiling.
            DuplicateCode: A live record already holds the code.
        """
        if not access_code:
            raise ValidationError("accessCode is required")
        if not self.allocator.is_valid(access_code):
            raise ValidationError("accessCode is malformed")
        self._validate_ciphertext(encrypted_data)
        created_at = self._validate_created_at(created_at)
        await self.store.create(access_code, encrypted_data, created_at)
        logger.info("Content created (%d bytes)", len(encrypted_data))
        return access_code

    async def fetch(self, access_code: str) -> StoredRecord:
        """Return the live record for a code.

        Malformed, absent, reserved-only and expired codes all raise the
        same ``NotFoundOrExpired``.
        """
        if not self.allocator.is_valid(access_code):
            raise NotFoundOrExpired()
        return await self.store.get(access_code)

    async def update(self, access_code: str, encrypted_data: str) -> StoredRecord:
        """Replace the ciphertext of a live record, keeping its code and created_at.

        Raises:
            ValidationError: Missing ciphertext.
            SizeLimitExceeded: Ciphertext larger than the configured ceiling.
            NotFoundOrExpired: The code has no live record.
        """
        self._validate_ciphertext(encrypted_data)
        if not self.allocator.is_valid(access_code):
            raise NotFoundOrExpired()
        record = await self.store.update(access_code, encrypted_data)
        logger.info("Content updated (%d bytes)", len(encrypted_data))
        return record

    async def purge(self) -> int:
        """Housekeeping pass over expired records."""
        return await self.store.purge_expired()
