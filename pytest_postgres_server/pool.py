from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import logging

import psycopg2  # type: ignore
import psycopg2.pool  # type: ignore

from .config import ConnectionConfig
from .errors import StartupError


logger = logging.getLogger(__name__)


class PoolHandle(Protocol):
    def close(self) -> None:
        ...


PoolOpener = Callable[[ConnectionConfig], PoolHandle]


class ConnectionPool(object):
    """Thread-safe psycopg2 pool against the provisioned server."""

    def __init__(self, config: ConnectionConfig) -> None:
        self.config = config
        # minconn=0 so that nothing is opened outside our control, the warm
        # connections are checked out below where a failure can close them.
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            0, config.max_connections, **config.connect_kwargs()
        )
        # putconn() keeps up to minconn idle connections around.
        self._pool.minconn = config.min_connections
        conns = []
        try:
            # At least one connection, so a bad endpoint fails here
            # instead of in the first test.
            for _ in range(max(config.min_connections, 1)):
                conns.append(self._pool.getconn())
        except psycopg2.Error as e:
            self._pool.closeall()
            raise StartupError("Could not open a connection pool to {}:{}: {}".format(
                config.host, config.port, e)) from e
        for conn in conns:
            self._pool.putconn(conn)

    @property
    def closed(self) -> bool:
        return self._pool.closed

    @contextmanager
    def connection(self):
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    def close(self) -> None:
        if not self._pool.closed:
            self._pool.closeall()

    def __repr__(self):
        return "ConnectionPool({}:{}/{})".format(self.config.host, self.config.port, self.config.database)


def open_pool(config: ConnectionConfig) -> ConnectionPool:
    logger.debug("Opening pool to %s:%d/%s", config.host, config.port, config.database)
    return ConnectionPool(config)


class QueryFacade(object):
    """Run setup/teardown statements against the shared server."""

    def __init__(self, pool: ConnectionPool) -> None:
        self.pool = pool

    def query(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        with self.pool.connection() as conn:
            with conn, conn.cursor() as cur:
                cur.execute(query, params)

                # Collect the results into a list of dicts.
                res = []
                for r in cur:
                    t = {}
                    # Zip the column definition with the value to get its name.
                    for c, v in zip(cur.description, r):
                        t[c.name] = v
                    res.append(t)
                return res

    def execute(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        with self.pool.connection() as conn:
            with conn, conn.cursor() as cur:
                cur.execute(query, params)
                return cur.rowcount
