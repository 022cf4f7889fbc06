"""Shared test fixtures and utilities."""

import pytest

from algo_did.config import ENV_OVERRIDES, StoreConfig
from algo_did.memory import InMemoryLedger


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of config loading."""
    for var in list(ENV_OVERRIDES) + ["ALGO_DID_APP_ID"]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config():
    """Default store configuration (reference limits)."""
    return StoreConfig()


@pytest.fixture
def ledger(config):
    """In-memory ledger enforcing the program's rules."""
    return InMemoryLedger(config)


@pytest.fixture
def codec(ledger):
    return ledger.codec


@pytest.fixture
def owner_key():
    """A 32-byte owner public key."""
    return bytes(range(32))


@pytest.fixture
def make_blob():
    """Factory for deterministic, non-repeating-ish document bytes."""
    def _make(size: int, seed: int = 0) -> bytes:
        return bytes((i * 31 + seed) % 251 for i in range(size))
    return _make


@pytest.fixture
def no_sleep():
    """Records requested backoff delays instead of sleeping."""
    delays = []
    def _sleep(seconds: float) -> None:
        delays.append(seconds)
    _sleep.delays = delays
    return _sleep
