"""
Shared pytest fixtures for the credvault test suite.

Argon2id runs with a tiny work factor here so the suite stays fast; the
production defaults live in credvault.config.
"""

import pytest

from credvault.crypto import CryptoManager, KdfParams
from credvault.session import SessionController

PASSPHRASE = "Master-Key-2024!"


@pytest.fixture
def fast_params():
    return KdfParams(time_cost=1, memory_cost=64, parallelism=1)


@pytest.fixture
def crypto(fast_params):
    return CryptoManager(fast_params)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def controller(fast_params, clock):
    """A locked controller with no vault yet."""
    return SessionController(kdf_params=fast_params, clock=clock)


@pytest.fixture
def unlocked(controller):
    """A controller with a freshly created, unlocked vault."""
    controller.create(PASSPHRASE, PASSPHRASE)
    return controller


@pytest.fixture
def store(unlocked):
    return unlocked.store
