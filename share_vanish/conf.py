"""
Share Vanish Configuration — validated settings loaded from the environment.

Reads settings from environment variables in the format:
    SHARE_VANISH_<FIELD> = <value>

e.g. SHARE_VANISH_TTL=86400, SHARE_VANISH_STORAGE=redis.

Security Note:
    Connection strings may carry credentials. Never log them.
"""
import os
import string
import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("share_vanish.conf")

ENV_PREFIX = "SHARE_VANISH_"

DEFAULT_TTL = 24 * 3600
DEFAULT_ALPHABET = string.ascii_letters + string.digits
DEFAULT_CODE_LENGTH = 4


class ExpiryPolicy(str, Enum):
    """How updates interact with the expiry clock."""

    FIXED = "fixed"  # anchored at creation, updates never extend it
    RESET_ON_UPDATE = "reset"


class ExchangeConfig(BaseModel):
    """Validated exchange configuration."""

    ttl: int = Field(default=DEFAULT_TTL, ge=1)
    reservation_ttl: Optional[int] = Field(default=None, ge=1)
    expiry_policy: ExpiryPolicy = ExpiryPolicy.FIXED
    # access codes
    code_length: int = Field(default=DEFAULT_CODE_LENGTH, ge=1, le=64)
    code_alphabet: str = Field(default=DEFAULT_ALPHABET, min_length=2)
    max_allocation_attempts: int = Field(default=32, ge=1)
    # document limits, enforced client-side before encryption
    max_text_length: int = Field(default=10000, ge=1)
    max_images: int = Field(default=10, ge=0)
    max_image_size: int = Field(default=3 * 1024 * 1024, ge=1)
    max_payload_size: int = Field(default=10 * 1024 * 1024, ge=1)
    cipher: str = Field(default="aesgcm")
    # server
    storage: str = Field(default="memory")
    redis_url: str = "redis://localhost:6379/0"
    postgres_dsn: str = "postgresql://localhost:5432/sharevanish"
    purge_interval: int = Field(default=300, ge=1)
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)

    @field_validator("cipher")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in ("aesgcm", "chacha20"):
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: str) -> str:
        """Validate storage backend is supported."""
        v = v.lower()
        if v not in ("memory", "redis", "postgres"):
            raise ValueError(f"Unsupported storage backend: {v}")
        return v

    @field_validator("code_alphabet")
    @classmethod
    def validate_alphabet(cls, v: str) -> str:
        if len(set(v)) != len(v):
            raise ValueError("code_alphabet must not repeat characters")
        return v

    @model_validator(mode="after")
    def validate_reservation_ttl(self) -> "ExchangeConfig":
        """Reservations default to, and may never outlive, the content TTL."""
        if self.reservation_ttl is None:
            self.reservation_ttl = self.ttl
        elif self.reservation_ttl > self.ttl:
            raise ValueError(
                f"reservation_ttl ({self.reservation_ttl}) cannot exceed "
                f"ttl ({self.ttl})"
            )
        return self

    @property
    def max_ciphertext_size(self) -> int:
        """Upper bound for an encoded ciphertext of a maximal payload."""
        # base64 expansion plus cipher id, nonce and tag
        return (self.max_payload_size + 29 + 2) // 3 * 4

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ExchangeConfig":
        """Create ExchangeConfig by loading values from environment.

        Only variables that are set are passed on; everything else
        keeps its default.

        Returns:
            Populated ExchangeConfig instance.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        config = cls.model_validate(values)
        logger.debug(
            "Loaded exchange config: storage=%s ttl=%d policy=%s",
            config.storage, config.ttl, config.expiry_policy.value,
        )
        return config
