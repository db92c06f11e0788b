"""Shared fixtures for the share_vanish test-suite."""
from datetime import datetime, timedelta, timezone

import pytest

from share_vanish.conf import ExchangeConfig
from share_vanish.exchange import ContentExchange
from share_vanish.storage import MemoryStore


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = None):
        self.current = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return ExchangeConfig()


@pytest.fixture
def store(clock, config):
    return MemoryStore(
        ttl=config.ttl,
        reservation_ttl=config.reservation_ttl,
        expiry_policy=config.expiry_policy,
        clock=clock,
    )


@pytest.fixture
def exchange(store, config):
    return ContentExchange(store, config)
