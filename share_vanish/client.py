"""
ExchangeClient — client half of the exchange protocol.

All encryption and decryption happens here; the server only ever
receives the access code and the encoded ciphertext.

Create:  check limits → allocate code → encrypt → POST
Fetch:   GET → decrypt with the caller supplied code
Update:  check limits → encrypt under the same code → PUT
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import orjson

from .conf import ExchangeConfig
from .crypto import decrypt, encrypt_payload, serialize_body
from .document import Document, DocumentLimits
from .exceptions import (
    AllocationExhausted,
    DuplicateCode,
    NotFoundOrExpired,
    ShareVanishError,
    SizeLimitExceeded,
    ValidationError,
)

logger = logging.getLogger("share_vanish.client")

_STATUS_ERRORS = {
    400: ValidationError,
    404: NotFoundOrExpired,
    409: DuplicateCode,
    413: SizeLimitExceeded,
    503: AllocationExhausted,
}


class ExchangeClient:
    """Talks to a content exchange server.

    ``session`` is an ``aiohttp.ClientSession`` (or anything with a
    compatible ``request`` method, such as aiohttp's test client), and
    ``base_url`` is prepended to every route.
    """

    def __init__(
        self,
        session: Any,
        base_url: str = "",
        config: Optional[ExchangeConfig] = None,
        prefix: str = "/api/content",
        max_create_attempts: int = 3,
    ):
        self._session = session
        self._base = f"{base_url.rstrip('/')}{prefix}"
        self.config = config or ExchangeConfig()
        self.limits = DocumentLimits.from_config(self.config)
        self.max_create_attempts = max_create_attempts

    async def _request(self, method: str, path: str = "", payload: dict = None) -> dict:
        """Send a request and unwrap the response envelope.

        Raises:
            ShareVanishError: The subclass matching the response status.
        """
        kwargs = {}
        if payload is not None:
            kwargs["data"] = orjson.dumps(payload)
            kwargs["headers"] = {"Content-Type": "application/json"}
        async with self._session.request(method, f"{self._base}{path}", **kwargs) as resp:
            raw = await resp.read()
            status = resp.status
        try:
            body = orjson.loads(raw) if raw else {}
        except orjson.JSONDecodeError:
            body = {}
        if not isinstance(body, dict):
            # e.g. a proxy answering with a bare JSON string
            body = {}
        if status >= 400 or not body.get("success"):
            error_cls = _STATUS_ERRORS.get(status, ShareVanishError)
            raise error_cls(body.get("error"))
        return body.get("data") or {}

    def _seal(self, document: Document, access_code: str) -> str:
        """Enforce limits, then encrypt the document body."""
        self.limits.check(document)
        payload = serialize_body(document)
        self.limits.check_payload(payload)
        return encrypt_payload(payload, access_code, self.config.cipher)

    @staticmethod
    def _timestamp(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()

    async def allocate_code(self) -> str:
        data = await self._request("POST", "/accessCode")
        return data["accessCode"]

    async def create(self, document: Document) -> str:
        """Encrypt and store a new document.

        A ``DuplicateCode`` answer means the allocated code was taken in the
        meantime; a fresh code is allocated and the document re-encrypted.

        Returns:
            The access code the document is stored under.
        """
        self.limits.check(document)
        for attempt in range(1, self.max_create_attempts + 1):
            access_code = await self.allocate_code()
            encrypted = self._seal(document, access_code)
            try:
                await self._request("POST", payload={
                    "accessCode": access_code,
                    "encryptedData": encrypted,
                    "createdAt": self._timestamp(document.created_at),
                })
            except DuplicateCode:
                logger.debug("Access code taken on attempt %d, retrying", attempt)
                continue
            return access_code
        raise AllocationExhausted()

    async def fetch(self, access_code: str) -> Document:
        """Fetch and decrypt a document.

        Raises:
            NotFoundOrExpired: No live content for this code.
            DecryptionError: Content exists but does not decrypt with this code.
        """
        data = await self._request("GET", f"/{access_code}")
        body = decrypt(data["encryptedData"], access_code)
        return Document(
            text=body.text,
            images=body.images,
            created_at=datetime.fromisoformat(data["createdAt"]),
        )

    async def update(self, access_code: str, document: Document) -> None:
        """Re-encrypt a document and replace the stored ciphertext.

        The stored creation time is kept by the server.
        """
        encrypted = self._seal(document, access_code)
        await self._request("PUT", f"/{access_code}", payload={
            "encryptedData": encrypted,
            "createdAt": self._timestamp(document.created_at),
        })
