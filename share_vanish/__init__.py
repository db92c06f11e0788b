"""Share Vanish — Ephemeral encrypted content exchange.

Security Note (Threat Model):
    Documents are encrypted client-side with a key derived from the access
    code alone. The server stores opaque ciphertext and never receives a key,
    but anyone who learns (or guesses) a code can read its content. Integrity
    against a tampering storage operator is not provided beyond the AEAD tag.
"""
from .version import __version__
from .conf import ExchangeConfig, ExpiryPolicy
from .crypto import derive_key, encrypt, decrypt
from .document import Document, DocumentBody, DocumentLimits, remaining_ttl
from .allocator import CodeAllocator
from .exchange import ContentExchange
from .client import ExchangeClient
from .app import create_app
from .exceptions import (
    ShareVanishError,
    ValidationError,
    NotFoundOrExpired,
    DuplicateCode,
    SizeLimitExceeded,
    AllocationExhausted,
    DecryptionError,
)

__all__ = [
    "__version__",
    "ExchangeConfig",
    "ExpiryPolicy",
    "derive_key",
    "encrypt",
    "decrypt",
    "Document",
    "DocumentBody",
    "DocumentLimits",
    "remaining_ttl",
    "CodeAllocator",
    "ContentExchange",
    "ExchangeClient",
    "create_app",
    "ShareVanishError",
    "ValidationError",
    "NotFoundOrExpired",
    "DuplicateCode",
    "SizeLimitExceeded",
    "AllocationExhausted",
    "DecryptionError",
]
