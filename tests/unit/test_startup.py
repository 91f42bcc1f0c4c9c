import pytest
from sqlalchemy.exc import OperationalError

from src.infrastructure.db import session
from src.main import wait_for_database


class FlakyConnection:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, statement):
        return None


class FlakyEngine:
    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    def connect(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        return FlakyConnection()


def test_wait_for_database_retries_until_reachable():
    sleeps = []
    bind = FlakyEngine(failures=2)

    wait_for_database(bind, attempts=5, delay_seconds=0.5, sleep=sleeps.append)

    assert bind.calls == 3
    assert sleeps == [0.5, 0.5]


def test_wait_for_database_gives_up():
    bind = FlakyEngine(failures=10)
    with pytest.raises(OperationalError):
        wait_for_database(bind, attempts=3, delay_seconds=0, sleep=lambda _: None)
    assert bind.calls == 3


def test_default_database_url_from_postgres_settings(monkeypatch):
    monkeypatch.setenv("POSTGRES_HOST", "db")
    monkeypatch.setenv("POSTGRES_PORT", "6543")
    monkeypatch.setenv("POSTGRES_USER", "cinema")
    monkeypatch.setenv("POSTGRES_PASSWORD", "secret")
    monkeypatch.setenv("POSTGRES_DB", "tickets")

    assert session._default_database_url() == "postgresql+psycopg2://cinema:secret@db:6543/tickets"


def test_engine_options_per_backend():
    assert session._engine_options("sqlite:///local.db") == {"connect_args": {"check_same_thread": False}}
    postgres = session._engine_options("postgresql+psycopg2://u:p@h/db")
    assert postgres["pool_pre_ping"] is True
    assert "connect_args" not in postgres
