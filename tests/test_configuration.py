import pytest

from gatepass.ledger.memory import InMemoryLedger
from gatepass.ledger.sql import SqlLedger
from gatepass.server.core import configuration


@pytest.fixture
def fresh_config(monkeypatch):
    for name in ("DATABASE_URL", "STORAGE_ENCRYPTION_KEY", "STAFF_KEYS", "HOLDER_TOKENS", "PROOF_DIGITS"):
        monkeypatch.delenv(name, raising=False)
    configuration.factory_config.cache_clear()
    yield configuration.factory_config
    configuration.factory_config.cache_clear()


def test_parse_pairs():
    assert configuration.parse_pairs("gate-1:aa, gate-2:bb,") == {"gate-1": "aa", "gate-2": "bb"}
    assert configuration.parse_pairs(None) == {}
    with pytest.raises(ValueError):
        configuration.parse_pairs("gate-1")


def test_defaults_to_memory_ledger(fresh_config):
    config = fresh_config()
    assert isinstance(config.ledger, InMemoryLedger)
    assert config.window_seconds == 30
    assert config.digits == 8
    assert config.staff_keys == {}


def test_reads_environment(fresh_config, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("STAFF_KEYS", "gate-1:00ff")
    monkeypatch.setenv("HOLDER_TOKENS", "tok:alice")

    config = fresh_config()
    assert isinstance(config.ledger, SqlLedger)
    assert config.staff_keys == {"gate-1": b"\x00\xff"}
    assert config.identity_provider.resolve("tok").user_id == "alice"


def test_rejects_out_of_range_digits(fresh_config, monkeypatch):
    monkeypatch.setenv("PROOF_DIGITS", "4")
    with pytest.raises(AssertionError):
        fresh_config()
