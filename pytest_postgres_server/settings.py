from dataclasses import dataclass, replace
from typing import Optional, Tuple

import os

from .errors import ConfigurationError


PROVIDER_MODES = ('auto', 'external', 'ephemeral')


def env(name, default=None):
    """Access to environment variables, falling back to a default value."""
    return os.environ.get(name, default)


def _env_int(name, default):
    value = env(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(
            "{} must be an integer, got {!r}".format(name, value)
        )


def _env_float(name, default):
    value = env(name)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(
            "{} must be a number, got {!r}".format(name, value)
        )


@dataclass(frozen=True)
class Settings:
    """Knobs for provider selection, provisioning and pooling.

    Everything can be set through `PGTEST_*` environment variables, see
    `Settings.from_env()`. The pytest plugin layers its command line
    options on top using `with_overrides()`.
    """
    provider: str = 'ephemeral'
    image: str = 'postgres:latest'
    probe_timeout: float = 1.0

    external_host: str = 'localhost'
    external_port: int = 5432
    external_database: str = 'postgres'
    external_username: str = 'postgres'
    external_password: str = 'postgres'

    database: str = 'test'
    username: str = 'test'
    password: str = 'test'

    resource_path: Tuple[str, ...] = ()
    pool_min: int = 1
    pool_max: int = 10
    debug: bool = False

    def __post_init__(self):
        if self.provider not in PROVIDER_MODES:
            raise ConfigurationError(
                "Unknown provider mode {!r}, expected one of {}".format(
                    self.provider, ", ".join(PROVIDER_MODES)
                )
            )
        if self.probe_timeout <= 0:
            raise ConfigurationError("probe_timeout must be positive")
        if self.pool_min < 0 or self.pool_max < max(self.pool_min, 1):
            raise ConfigurationError(
                "Invalid pool bounds min={} max={}".format(self.pool_min, self.pool_max)
            )

    @classmethod
    def from_env(cls) -> "Settings":
        resource_path = env('PGTEST_RESOURCE_PATH', '')
        return cls(
            provider=env('PGTEST_PROVIDER', cls.provider).lower(),
            image=env('PGTEST_IMAGE', cls.image),
            probe_timeout=_env_float('PGTEST_PROBE_TIMEOUT', cls.probe_timeout),
            external_host=env('PGTEST_EXTERNAL_HOST', cls.external_host),
            external_port=_env_int('PGTEST_EXTERNAL_PORT', cls.external_port),
            external_database=env('PGTEST_EXTERNAL_DATABASE', cls.external_database),
            external_username=env('PGTEST_EXTERNAL_USER', cls.external_username),
            external_password=env('PGTEST_EXTERNAL_PASSWORD', cls.external_password),
            database=env('PGTEST_DATABASE', cls.database),
            username=env('PGTEST_USER', cls.username),
            password=env('PGTEST_PASSWORD', cls.password),
            resource_path=tuple(p for p in resource_path.split(os.pathsep) if p),
            pool_min=_env_int('PGTEST_POOL_MIN', cls.pool_min),
            pool_max=_env_int('PGTEST_POOL_MAX', cls.pool_max),
            debug=env('PGTEST_DEBUG', '0') == '1',
        )

    def with_overrides(self, provider: Optional[str] = None, image: Optional[str] = None) -> "Settings":
        changes = {}
        if provider:
            changes['provider'] = provider.lower()
        if image:
            changes['image'] = image
        return replace(self, **changes)
