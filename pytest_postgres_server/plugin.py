import logging
import sys

import pytest

from .coordinator import LifecycleCoordinator
from .errors import ConfigurationError
from .settings import PROVIDER_MODES, Settings


def pytest_addoption(parser):
    group = parser.getgroup("postgres-server", "shared postgres server")
    group.addoption(
        "--pg-provider",
        choices=PROVIDER_MODES,
        default=None,
        help="Where the shared postgres comes from (default: $PGTEST_PROVIDER or 'ephemeral')",
    )
    group.addoption(
        "--pg-image",
        default=None,
        help="Image for ephemeral postgres containers (default: $PGTEST_IMAGE or 'postgres:latest')",
    )


def pytest_configure(config):
    """Create the one coordinator every fixture in this process shares."""
    try:
        settings = Settings.from_env().with_overrides(
            provider=config.getoption("--pg-provider"),
            image=config.getoption("--pg-image"),
        )
    except ConfigurationError as e:
        raise pytest.UsageError(str(e))

    if settings.debug:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stdout)

    config.postgres_coordinator = LifecycleCoordinator(settings)


def pytest_unconfigure(config):
    """Stop whatever is still running when the session ends."""
    coordinator = getattr(config, "postgres_coordinator", None)
    if coordinator is not None:
        coordinator.close()


def _scoped(coordinator):
    coordinator.begin()
    try:
        yield coordinator
    finally:
        coordinator.end()


@pytest.fixture(scope="session")
def postgres_coordinator(request):
    """The process wide coordinator, without entering a scope."""
    return request.config.postgres_coordinator


@pytest.fixture(scope="session")
def postgres_server(postgres_coordinator):
    """Keep the shared server up for the whole session."""
    yield from _scoped(postgres_coordinator)


@pytest.fixture(scope="module")
def postgres_module(postgres_coordinator):
    """Keep the shared server up for one module.

    Without `postgres_server` in play, every module provisions and tears
    down its own instance. Combined with it, modules only nest.
    """
    yield from _scoped(postgres_coordinator)


@pytest.fixture
def postgres_config(postgres_server):
    return postgres_server.get_connection_configuration()


@pytest.fixture
def postgres_pool(postgres_server):
    return postgres_server.pool


@pytest.fixture
def postgres_query(postgres_server):
    return postgres_server.query_facade
