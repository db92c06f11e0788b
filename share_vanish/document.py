"""
Document model and client-side size discipline.

A ``Document`` lives only in client memory. Its body (text + images) is the
part that gets encrypted; ``created_at`` travels as clear metadata.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .conf import ExchangeConfig
from .exceptions import SizeLimitExceeded, ValidationError

_DATA_URI_RE = re.compile(r"^data:image/[\w.+-]+(;[\w=.+-]+)*;base64,")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentBody(BaseModel):
    """Encryptable part of a document.

    Strict: ``text`` must be a string and ``images`` a list of strings,
    nothing is coerced and unknown keys are rejected.
    """

    model_config = ConfigDict(strict=True, extra="forbid")

    text: str
    images: list[str]


class Document(DocumentBody):
    """Client-side document: body plus creation timestamp."""

    model_config = ConfigDict(strict=False, extra="forbid")

    images: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    def body(self) -> DocumentBody:
        return DocumentBody(text=self.text, images=list(self.images))


def image_size(image: str) -> int:
    """Size in bytes of an image entry.

    Base64 data URIs are measured by their decoded length, anything else
    by its encoded length.
    """
    if _DATA_URI_RE.match(image):
        _, _, encoded = image.partition(",")
        padding = encoded[-2:].count("=")
        return len(encoded) * 3 // 4 - padding
    return len(image.encode("utf-8"))


def remaining_ttl(
    created_at: datetime,
    ttl: int,
    now: Optional[datetime] = None
) -> timedelta:
    """Time left before a document created at ``created_at`` expires."""
    now = now or utcnow()
    left = created_at + timedelta(seconds=ttl) - now
    return max(left, timedelta(0))


class DocumentLimits:
    """Limits a client enforces before anything is encrypted or sent."""

    def __init__(
        self,
        max_text_length: int = 10000,
        max_images: int = 10,
        max_image_size: int = 3 * 1024 * 1024,
        max_payload_size: int = 10 * 1024 * 1024,
    ):
        self.max_text_length = max_text_length
        self.max_images = max_images
        self.max_image_size = max_image_size
        self.max_payload_size = max_payload_size

    @classmethod
    def from_config(cls, config: ExchangeConfig) -> "DocumentLimits":
        return cls(
            max_text_length=config.max_text_length,
            max_images=config.max_images,
            max_image_size=config.max_image_size,
            max_payload_size=config.max_payload_size,
        )

    def check(self, document: DocumentBody) -> None:
        """Validate text and images of a document.

        Raises:
            ValidationError: If an image entry is empty.
            SizeLimitExceeded: If the text, image count or an image is too large.
                The text is measured on its full markup, so images inlined
                as data URIs count against it.
        """
        if len(document.text) > self.max_text_length:
            raise SizeLimitExceeded(
                f"text cannot exceed {self.max_text_length} characters"
            )
        if len(document.images) > self.max_images:
            raise SizeLimitExceeded(
                f"at most {self.max_images} images are allowed"
            )
        for index, image in enumerate(document.images):
            if not image:
                raise ValidationError(f"image {index} is empty")
            if image_size(image) > self.max_image_size:
                raise SizeLimitExceeded(
                    f"image {index} exceeds {self.max_image_size} bytes"
                )

    def check_payload(self, payload: bytes) -> None:
        """Enforce the serialized payload ceiling before encryption."""
        if len(payload) > self.max_payload_size:
            raise SizeLimitExceeded(
                f"content exceeds {self.max_payload_size} bytes"
            )
