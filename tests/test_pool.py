from pytest_postgres_server import ConnectionFacts, StartupError, build_connection_config
from pytest_postgres_server.pool import open_pool

import ephemeral_port_reserve  # type: ignore
import psycopg2  # type: ignore
import psycopg2.extensions  # type: ignore
import pytest


def test_open_pool_against_nothing_fails():
    port = ephemeral_port_reserve.reserve()
    config = build_connection_config(
        ConnectionFacts('127.0.0.1', port, 'test', 'test', 'test'), connect_timeout=2
    )
    with pytest.raises(StartupError, match="Could not open a connection pool"):
        open_pool(config)


class FakeInfo(object):
    transaction_status = psycopg2.extensions.TRANSACTION_STATUS_IDLE


class FakeConnection(object):
    info = FakeInfo()

    def __init__(self):
        self.closed = 0

    def close(self):
        self.closed = 1


def test_partial_warmup_closes_opened_connections(monkeypatch):
    opened = []

    def connect(*args, **kwargs):
        if len(opened) == 2:
            raise psycopg2.OperationalError("too many clients")
        conn = FakeConnection()
        opened.append(conn)
        return conn

    monkeypatch.setattr(psycopg2, 'connect', connect)
    config = build_connection_config(ConnectionFacts('db', 5432, 'test', 'test', 'test'), min_connections=3)
    with pytest.raises(StartupError, match="too many clients"):
        open_pool(config)
    assert len(opened) == 2
    assert all(c.closed for c in opened)


def test_warm_connections_are_kept(monkeypatch):
    opened = []

    def connect(*args, **kwargs):
        conn = FakeConnection()
        opened.append(conn)
        return conn

    monkeypatch.setattr(psycopg2, 'connect', connect)
    config = build_connection_config(ConnectionFacts('db', 5432, 'test', 'test', 'test'), min_connections=2)
    pool = open_pool(config)
    assert len(opened) == 2
    assert not any(c.closed for c in opened)

    # Reuses an idle connection instead of connecting again.
    with pool.connection() as conn:
        assert conn in opened
    assert len(opened) == 2

    pool.close()
    assert pool.closed
    assert all(c.closed for c in opened)
