"""
Access code allocation.

Codes are short and drawn at random, so collisions with live records are
expected once the store fills up. ``allocate`` reserves codes in the store
atomically and retries on collision instead of assuming uniqueness.
"""
import secrets
import logging

from .conf import DEFAULT_ALPHABET, DEFAULT_CODE_LENGTH
from .exceptions import AllocationExhausted
from .storage import AbstractStore

logger = logging.getLogger("share_vanish.allocator")


class CodeAllocator:
    """Generates access codes and reserves them against a store."""

    def __init__(
        self,
        store: AbstractStore,
        alphabet: str = DEFAULT_ALPHABET,
        length: int = DEFAULT_CODE_LENGTH,
        max_attempts: int = 32,
    ):
        self._store = store
        self.alphabet = alphabet
        self.length = length
        self.max_attempts = max_attempts
        self._charset = frozenset(alphabet)

    def generate(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))

    def is_valid(self, access_code) -> bool:
        """Check the shape of a code: right length, only alphabet characters."""
        return (
            isinstance(access_code, str)
            and len(access_code) == self.length
            and all(c in self._charset for c in access_code)
        )

    async def allocate(self) -> str:
        """Reserve a fresh code.

        Returns:
            The reserved access code.

        Raises:
            AllocationExhausted: If every attempt hit a code that is in use.
        """
        for attempt in range(1, self.max_attempts + 1):
            code = self.generate()
            if await self._store.reserve(code):
                logger.debug("Allocated access code on attempt %d", attempt)
                return code
            logger.debug("Access code collision on attempt %d", attempt)
        logger.warning(
            "Access code allocation exhausted after %d attempts",
            self.max_attempts,
        )
        raise AllocationExhausted()
