"""
Tests for key derivation and the content codec.

Tests cover:
- Deterministic key derivation
- Round trip of text and images
- Key binding (wrong code never decrypts)
- Fresh nonce per encryption
- Fail-closed parsing of malformed or unexpected payloads
"""
import base64
import os

import orjson
import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from share_vanish.crypto import (
    KEY_PREFIX,
    NONCE_SIZE,
    decrypt,
    derive_key,
    encrypt,
    encrypt_payload,
    serialize_body,
)
from share_vanish.document import Document, DocumentBody
from share_vanish.exceptions import DecryptionError


@pytest.fixture
def document():
    return Document(
        text="<p>hello <b>world</b></p>",
        images=["data:image/png;base64,iVBORw0KGgo=", "data:image/gif;base64,R0lGOD=="],
    )


def _raw_encrypt(plaintext: bytes, code: str) -> str:
    """Encrypt arbitrary bytes in the wire format, bypassing serialization."""
    nonce = os.urandom(NONCE_SIZE)
    ct = AESGCM(derive_key(code)).encrypt(nonce, plaintext, None)
    return base64.urlsafe_b64encode(b"\x01" + nonce + ct).decode("ascii")


class TestKeyDerivation:
    """Tests for derive_key."""

    def test_deterministic(self):
        assert derive_key("A1b2") == derive_key("A1b2")

    def test_key_is_256_bits(self):
        assert len(derive_key("A1b2")) == 32

    def test_distinct_codes_distinct_keys(self):
        assert derive_key("A1b2") != derive_key("A1b3")

    def test_matches_prefixed_sha256(self):
        """Key is SHA-256 over the fixed prefix and the code."""
        import hashlib
        expected = hashlib.sha256(f"{KEY_PREFIX}A1b2".encode()).digest()
        assert derive_key("A1b2") == expected


class TestRoundTrip:
    """Tests for encrypt/decrypt round trips."""

    def test_round_trip(self, document):
        body = decrypt(encrypt(document, "A1b2"), "A1b2")
        assert body == document.body()

    def test_round_trip_empty_images(self):
        doc = DocumentBody(text="hello", images=[])
        assert decrypt(encrypt(doc, "A1b2"), "A1b2") == doc

    def test_round_trip_chacha20(self, document):
        ciphertext = encrypt(document, "A1b2", cipher="chacha20")
        assert decrypt(ciphertext, "A1b2") == document.body()

    def test_unicode_text(self):
        doc = DocumentBody(text="文本 ✓ émoji 🎉", images=[])
        assert decrypt(encrypt(doc, "Zz99"), "Zz99").text == "文本 ✓ émoji 🎉"

    def test_large_payload_is_not_rejected(self):
        """The codec leaves size limits to its callers."""
        doc = DocumentBody(text="x" * 2_000_000, images=[])
        assert decrypt(encrypt(doc, "A1b2"), "A1b2").text == doc.text

    def test_ciphertext_is_transport_safe(self, document):
        ciphertext = encrypt(document, "A1b2")
        assert isinstance(ciphertext, str)
        ciphertext.encode("ascii")

    def test_created_at_not_in_payload(self, document):
        payload = orjson.loads(serialize_body(document))
        assert set(payload) == {"text", "images"}


class TestNonDeterminism:
    """Same document, same code: different ciphertext, same plaintext."""

    def test_two_encryptions_differ(self, document):
        first = encrypt(document, "A1b2")
        second = encrypt(document, "A1b2")
        assert first != second
        assert decrypt(first, "A1b2") == decrypt(second, "A1b2") == document.body()


class TestKeyBinding:
    """Wrong codes must fail closed."""

    @pytest.mark.parametrize("wrong", ["A1b3", "a1b2", "wrong", "A1b2 "])
    def test_wrong_code_fails(self, document, wrong):
        ciphertext = encrypt(document, "A1b2")
        with pytest.raises(DecryptionError):
            decrypt(ciphertext, wrong)


class TestFailClosed:
    """Malformed ciphertext and unexpected payloads raise DecryptionError."""

    def test_not_base64(self):
        with pytest.raises(DecryptionError):
            decrypt("***not base64***!", "A1b2")

    def test_truncated(self, document):
        ciphertext = encrypt(document, "A1b2")
        with pytest.raises(DecryptionError):
            decrypt(ciphertext[:20], "A1b2")

    def test_tampered(self, document):
        blob = bytearray(base64.urlsafe_b64decode(encrypt(document, "A1b2")))
        blob[-1] ^= 0x01
        with pytest.raises(DecryptionError):
            decrypt(base64.urlsafe_b64encode(bytes(blob)).decode(), "A1b2")

    def test_unknown_cipher_id(self, document):
        blob = bytearray(base64.urlsafe_b64decode(encrypt(document, "A1b2")))
        blob[0] = 0x7F
        with pytest.raises(DecryptionError):
            decrypt(base64.urlsafe_b64encode(bytes(blob)).decode(), "A1b2")

    def test_empty_string(self):
        with pytest.raises(DecryptionError):
            decrypt("", "A1b2")

    @pytest.mark.parametrize("data", [None, 42, ["ciphertext"]])
    def test_not_a_string(self, data):
        with pytest.raises(DecryptionError):
            decrypt(data, "A1b2")

    def test_plaintext_not_json(self):
        with pytest.raises(DecryptionError):
            decrypt(_raw_encrypt(b"not json at all", "A1b2"), "A1b2")

    @pytest.mark.parametrize("payload", [
        b'["hello", []]',
        b'{"text": "hello"}',
        b'{"images": []}',
        b'{"text": 42, "images": []}',
        b'{"text": "hello", "images": "img"}',
        b'{"text": "hello", "images": [1, 2]}',
        b'{"text": "hello", "images": [], "extra": true}',
    ])
    def test_unexpected_shape(self, payload):
        """Shapes other than {text: str, images: [str]} are never coerced."""
        with pytest.raises(DecryptionError):
            decrypt(_raw_encrypt(payload, "A1b2"), "A1b2")

    def test_unsupported_cipher_name(self):
        with pytest.raises(ValueError):
            encrypt_payload(b"{}", "A1b2", cipher="rot13")
