"""
Share Vanish Crypto Core — Key derivation, encryption/decryption, and serialization.

The access code is the only secret input:
- Key derivation: SHA-256(KEY_PREFIX + access_code) → 32-byte key
- Encryption: AEAD (AES-GCM or ChaCha20-Poly1305), fresh nonce per call
- Wire format: urlsafe-base64([cipher_id 1B][nonce 12B][encrypted_payload + tag 16B])

Everything here runs client-side. The server only ever stores the
encoded string and never holds a key.

Security Note:
    Never log plaintext, ciphertext or derived keys.
    Keys are recomputed on every call and never cached.
"""
import os
import base64
import binascii
import logging
from typing import Union

import orjson
import pydantic
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .document import DocumentBody
from .exceptions import DecryptionError

logger = logging.getLogger("share_vanish.crypto")

KEY_PREFIX = "shareVanish-secret-"
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
CIPHER_ID_SIZE = 1

# cipher id → (name, AEAD class); the id travels with every ciphertext
CIPHERS = {
    1: ("aesgcm", AESGCM),
    2: ("chacha20", ChaCha20Poly1305),
}
_CIPHER_IDS = {name: cid for cid, (name, _) in CIPHERS.items()}


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(access_code: str) -> bytes:
    """Derive the 32-byte symmetric key for an access code.

    Deterministic: the same code always yields the same key.
    Callers validate the code shape before calling.

    Args:
        access_code: The access code.

    Returns:
        32-byte SHA-256 digest of ``KEY_PREFIX + access_code``.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(f"{KEY_PREFIX}{access_code}".encode("utf-8"))
    return digest.finalize()


# ---------------------------------------------------------------------------
# Payload serialization
# ---------------------------------------------------------------------------

def serialize_body(body: DocumentBody) -> bytes:
    """Serialize a document body to its canonical plaintext form.

    Only ``text`` and ``images`` are included, with sorted keys.

    Returns:
        orjson-encoded bytes.
    """
    return orjson.dumps(
        {"text": body.text, "images": list(body.images)},
        option=orjson.OPT_SORT_KEYS,
    )


def deserialize_body(data: bytes) -> DocumentBody:
    """Parse decrypted bytes with a strict schema check.

    Raises:
        DecryptionError: If the bytes are not JSON or do not match the schema.
    """
    try:
        parsed = orjson.loads(data)
        return DocumentBody.model_validate(parsed)
    except (orjson.JSONDecodeError, pydantic.ValidationError) as err:
        raise DecryptionError() from err


# ---------------------------------------------------------------------------
# Encryption
# ---------------------------------------------------------------------------

def encrypt_payload(payload: bytes, access_code: str, cipher: str = "aesgcm") -> str:
    """Encrypt an already serialized payload under the code's key.

    Args:
        payload: Serialized plaintext.
        access_code: Access code used for key derivation.
        cipher: AEAD backend name, ``aesgcm`` or ``chacha20``.

    Returns:
        Transport-safe encoded ciphertext.
    """
    try:
        cipher_id = _CIPHER_IDS[cipher]
    except KeyError:
        raise ValueError(f"Unsupported cipher backend: {cipher}") from None
    aead = CIPHERS[cipher_id][1](derive_key(access_code))
    nonce = os.urandom(NONCE_SIZE)
    ct = aead.encrypt(nonce, payload, None)
    blob = bytes([cipher_id]) + nonce + ct
    return base64.urlsafe_b64encode(blob).decode("ascii")


def encrypt(document: DocumentBody, access_code: str, cipher: str = "aesgcm") -> str:
    """Encrypt a document body; ``created_at`` is not part of the payload."""
    return encrypt_payload(serialize_body(document), access_code, cipher)


def decrypt_payload(encrypted_data: Union[str, bytes], access_code: str) -> bytes:
    """Reverse ``encrypt_payload``.

    Raises:
        DecryptionError: On malformed input, unknown cipher or wrong key.
    """
    try:
        blob = base64.urlsafe_b64decode(encrypted_data)
    except (binascii.Error, TypeError, ValueError) as err:
        raise DecryptionError() from err
    _min = CIPHER_ID_SIZE + NONCE_SIZE + TAG_SIZE
    if len(blob) < _min:
        raise DecryptionError()
    try:
        _, cipher_cls = CIPHERS[blob[0]]
    except KeyError:
        raise DecryptionError() from None
    nonce = blob[CIPHER_ID_SIZE:CIPHER_ID_SIZE + NONCE_SIZE]
    ct = blob[CIPHER_ID_SIZE + NONCE_SIZE:]
    try:
        return cipher_cls(derive_key(access_code)).decrypt(nonce, ct, None)
    except InvalidTag as err:
        raise DecryptionError() from err


def decrypt(encrypted_data: Union[str, bytes], access_code: str) -> DocumentBody:
    """Decrypt and parse a document body.

    Fails closed: no partial or best-effort content is ever returned.

    Raises:
        DecryptionError: Wrong code, corrupted ciphertext or unexpected payload.
    """
    return deserialize_body(decrypt_payload(encrypted_data, access_code))
