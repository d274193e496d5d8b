"""
pytest-postgres-server: one postgres server shared by nested test scopes.
"""

from .config import ConnectionConfig, build_connection_config
from .coordinator import LifecycleCoordinator, Once
from .errors import (
    ConfigurationError,
    LifecycleError,
    NotInitializedError,
    PostgresServerError,
    ResourceLeakWarning,
    StartupError,
    TeardownError,
)
from .pool import ConnectionPool, QueryFacade
from .providers import ConnectionFacts, EphemeralProvider, ExternalProvider, ProvisioningInput, select_provider
from .resources import ResourceLocator
from .settings import Settings

__version__ = "0.1.0"

__all__ = [
    'ConfigurationError',
    'ConnectionConfig',
    'ConnectionFacts',
    'ConnectionPool',
    'EphemeralProvider',
    'ExternalProvider',
    'LifecycleCoordinator',
    'LifecycleError',
    'NotInitializedError',
    'Once',
    'PostgresServerError',
    'ProvisioningInput',
    'QueryFacade',
    'ResourceLeakWarning',
    'ResourceLocator',
    'Settings',
    'StartupError',
    'TeardownError',
    'build_connection_config',
    'select_provider',
]
