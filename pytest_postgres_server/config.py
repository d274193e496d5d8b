from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional
from urllib.parse import quote

from .errors import ConfigurationError
from .providers import ConnectionFacts


@dataclass(frozen=True)
class ConnectionConfig:
    """Everything a client needs to open a connection or a pool."""
    host: str
    port: int
    database: str
    username: str
    password: str
    sslmode: str = 'prefer'
    sslcert: Optional[str] = None
    sslkey: Optional[str] = None
    sslrootcert: Optional[str] = None
    connect_timeout: int = 10
    application_name: str = 'pytest-postgres-server'
    min_connections: int = 1
    max_connections: int = 10

    def connect_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for `psycopg2.connect()` and the pool classes."""
        kwargs = {
            'host': self.host,
            'port': self.port,
            'dbname': self.database,
            'user': self.username,
            'password': self.password,
            'sslmode': self.sslmode,
            'connect_timeout': self.connect_timeout,
            'application_name': self.application_name,
        }
        for k in ('sslcert', 'sslkey', 'sslrootcert'):
            v = getattr(self, k)
            if v is not None:
                kwargs[k] = v
        return kwargs

    def dsn(self) -> str:
        """libpq key/value connection string."""
        def quoted(v):
            v = str(v)
            if v == '' or any(c in v for c in " '\\"):
                return "'{}'".format(v.replace('\\', '\\\\').replace("'", "\\'"))
            return v
        return " ".join("{}={}".format(k, quoted(v)) for k, v in self.connect_kwargs().items())

    def url(self) -> str:
        host = self.host
        if ':' in host and not host.startswith('['):
            # IPv6 literal
            host = "[{}]".format(host)
        return "postgresql://{}:{}@{}:{}/{}".format(
            quote(self.username, safe=''), quote(self.password, safe=''),
            host, self.port, quote(self.database, safe=''),
        )

    def with_options(self, **options) -> "ConnectionConfig":
        return build_connection_config(_facts_of(self), **dict(_options_of(self), **options))

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _facts_of(config: ConnectionConfig) -> ConnectionFacts:
    return ConnectionFacts(config.host, config.port, config.database, config.username, config.password)


def _options_of(config: ConnectionConfig) -> Dict[str, Any]:
    options = config.as_dict()
    for k in ('host', 'port', 'database', 'username', 'password'):
        del options[k]
    return options


def build_connection_config(facts: ConnectionFacts, **options) -> ConnectionConfig:
    if not facts.host:
        raise ConfigurationError("Connection host must not be empty")
    if isinstance(facts.port, bool) or not isinstance(facts.port, int) or not 1 <= facts.port <= 65535:
        raise ConfigurationError("Connection port must be in [1, 65535], got {!r}".format(facts.port))

    config = ConnectionConfig(facts.host, facts.port, facts.database, facts.username, facts.password)
    try:
        return replace(config, **options)
    except TypeError as e:
        raise ConfigurationError("Unknown connection option: {}".format(e)) from e
