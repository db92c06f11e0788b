"""Tests for the server-side ContentExchange."""
from datetime import timedelta

import pytest

from share_vanish.conf import ExchangeConfig
from share_vanish.crypto import decrypt, encrypt
from share_vanish.document import DocumentBody
from share_vanish.exceptions import (
    DuplicateCode,
    NotFoundOrExpired,
    SizeLimitExceeded,
    ValidationError,
)
from share_vanish.exchange import ContentExchange


class TestAllocateAndCreate:

    async def test_allocated_code_is_valid(self, exchange):
        code = await exchange.allocate()
        assert exchange.allocator.is_valid(code)

    async def test_allocated_code_not_fetchable(self, exchange):
        code = await exchange.allocate()
        with pytest.raises(NotFoundOrExpired):
            await exchange.fetch(code)

    async def test_create_after_allocate(self, exchange, clock):
        code = await exchange.allocate()
        assert await exchange.create(code, "ct", clock()) == code
        assert (await exchange.fetch(code)).ciphertext == "ct"

    async def test_create_requires_code(self, exchange):
        with pytest.raises(ValidationError):
            await exchange.create(None, "ct")

    async def test_create_rejects_malformed_code(self, exchange):
        with pytest.raises(ValidationError):
            await exchange.create("toolong", "ct")

    @pytest.mark.parametrize("data", [None, "", 123])
    async def test_create_requires_ciphertext(self, exchange, data):
        with pytest.raises(ValidationError):
            await exchange.create("A1b2", data)

    async def test_create_rejects_oversized(self, store):
        exchange = ContentExchange(store, ExchangeConfig(max_payload_size=30))
        with pytest.raises(SizeLimitExceeded):
            await exchange.create("A1b2", "x" * 200)

    async def test_create_duplicate(self, exchange):
        await exchange.create("A1b2", "first")
        with pytest.raises(DuplicateCode):
            await exchange.create("A1b2", "second")

    async def test_created_at_defaults_to_now(self, exchange, clock):
        await exchange.create("A1b2", "ct")
        assert (await exchange.fetch("A1b2")).created_at == clock()

    async def test_future_created_at_is_clamped(self, exchange, clock):
        await exchange.create("A1b2", "ct", clock() + timedelta(days=30))
        record = await exchange.fetch("A1b2")
        assert record.created_at == clock()
        assert record.expires_at == clock() + timedelta(hours=24)

    async def test_naive_created_at_is_utc(self, exchange, clock):
        naive = (clock() - timedelta(hours=1)).replace(tzinfo=None)
        await exchange.create("A1b2", "ct", naive)
        assert (await exchange.fetch("A1b2")).created_at == clock() - timedelta(hours=1)

    async def test_expired_created_at_rejected(self, exchange, clock):
        with pytest.raises(ValidationError):
            await exchange.create("A1b2", "ct", clock() - timedelta(hours=25))


class TestFetch:

    @pytest.mark.parametrize("code", ["wrong", "", "a-b!", "A1b"])
    async def test_malformed_code_is_not_found(self, exchange, code):
        with pytest.raises(NotFoundOrExpired):
            await exchange.fetch(code)

    async def test_expired(self, exchange, clock):
        await exchange.create("A1b2", "ct")
        clock.advance(hours=24, minutes=1)
        with pytest.raises(NotFoundOrExpired):
            await exchange.fetch("A1b2")


class TestUpdate:

    async def test_update_keeps_created_at(self, exchange, clock):
        t0 = clock()
        await exchange.create("A1b2", "v1")
        clock.advance(hours=12)
        record = await exchange.update("A1b2", "v2")
        assert record.ciphertext == "v2"
        assert record.created_at == t0
        assert (await exchange.fetch("A1b2")).ciphertext == "v2"

    async def test_update_requires_ciphertext(self, exchange):
        await exchange.create("A1b2", "v1")
        with pytest.raises(ValidationError):
            await exchange.update("A1b2", "")

    async def test_update_unknown_code(self, exchange):
        with pytest.raises(NotFoundOrExpired):
            await exchange.update("Zz99", "v2")

    async def test_update_malformed_code(self, exchange):
        with pytest.raises(NotFoundOrExpired):
            await exchange.update("wrong", "v2")


class TestScenario:

    async def test_server_never_needs_the_key(self, exchange):
        """The exchange stores and returns ciphertext verbatim."""
        body = DocumentBody(text="hello", images=[])
        ciphertext = encrypt(body, "A1b2")
        await exchange.create("A1b2", ciphertext)
        record = await exchange.fetch("A1b2")
        assert record.ciphertext == ciphertext
        assert decrypt(record.ciphertext, "A1b2") == body

    async def test_purge(self, exchange, clock):
        await exchange.create("A1b2", "ct")
        clock.advance(hours=25)
        assert await exchange.purge() == 1
