import os

# keep the module-level API app in memory during tests
os.environ.setdefault("SANTA_LEDGER_FILE", "")

import pytest

from grumpkin import KeyPair
from ledger import LocalLedger


@pytest.fixture(scope="session")
def alice_keys():
    return KeyPair.from_scalar(0xA11CE)


@pytest.fixture(scope="session")
def bob_keys():
    return KeyPair.from_scalar(0xB0B)


@pytest.fixture
def ledger():
    return LocalLedger()


@pytest.fixture
def game(ledger):
    """Game 1 with admin 'admin', 3..5 participants."""
    return ledger.create_game("admin", 3, 5)
