"""Reference counted startup and teardown of the shared postgres server.

Test scopes nest (session, package, module, class), and every scope that
wants a database calls `begin()` on entry and `end()` on exit. Only the
outermost pair does real work: the first `begin()` provisions the server
and opens a connection pool, the matching last `end()` closes the pool and
stops the server again. The provider itself is chosen exactly once per
coordinator and kept until `close()` is called at the end of the process.
"""
from contextlib import contextmanager
from typing import Callable, Generic, List, Optional, TypeVar

import logging
import threading
import warnings

from .config import ConnectionConfig, build_connection_config
from .errors import (
    ConfigurationError,
    LifecycleError,
    NotInitializedError,
    ResourceLeakWarning,
    StartupError,
    TeardownError,
)
from .pool import ConnectionPool, PoolOpener, QueryFacade, open_pool
from .providers import AnyProvider, select_provider
from .resources import ResourceLocator
from .runtime import ContainerRuntime
from .settings import Settings


logger = logging.getLogger(__name__)

T = TypeVar('T')


class Once(Generic[T]):
    """Run an initializer at most once and publish its result.

    Callers racing on `get_or_init()` block until the single initializer
    has finished, then all observe the same value. A failing initializer
    publishes nothing, so a later call may try again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False
        self._value: Optional[T] = None

    @property
    def is_set(self) -> bool:
        return self._done

    def get_or_init(self, init: Callable[[], T]) -> T:
        if not self._done:
            with self._lock:
                if not self._done:
                    self._value = init()
                    # Publish only after the value is fully assigned.
                    self._done = True
        return self._value

    def get(self) -> T:
        if not self._done:
            raise NotInitializedError("Provider is only available after the first begin()")
        return self._value


def _is_managed(provider) -> bool:
    """Whether the provider has a lifecycle we are responsible for."""
    return callable(getattr(provider, 'start', None)) and callable(getattr(provider, 'stop', None))


class LifecycleCoordinator(object):
    def __init__(self, settings: Optional[Settings] = None,
                 locator: Optional[ResourceLocator] = None,
                 provider_factory: Optional[Callable[[], AnyProvider]] = None,
                 pool_opener: PoolOpener = open_pool,
                 runtime: Optional[ContainerRuntime] = None) -> None:
        self.settings = settings if settings is not None else Settings.from_env()
        self.locator = locator if locator is not None else ResourceLocator(self.settings.resource_path)
        self._provider_factory = provider_factory or (
            lambda: select_provider(self.settings, self.locator, runtime)
        )
        self._pool_opener = pool_opener

        # Guards the nesting count and every 0 <-> 1 transition.
        self._lock = threading.RLock()
        self._count = 0
        self._provider: Once[AnyProvider] = Once()
        self._pool: Optional[ConnectionPool] = None
        self._query: Optional[QueryFacade] = None
        self.teardown_failures: List[TeardownError] = []

    @property
    def nesting_count(self) -> int:
        return self._count

    @property
    def provider(self) -> AnyProvider:
        return self._provider.get()

    def begin(self) -> int:
        """Enter a scope, provisioning the server if this is the outermost one.

        Returns the nesting depth after entering. On failure the depth is
        left unchanged, so a later `begin()` may try again.
        """
        with self._lock:
            depth = self._count
            self._count = depth + 1
            if depth > 0:
                logger.debug("Reusing shared postgres, nesting depth %d", self._count)
                return self._count
            try:
                self._acquire()
            except BaseException:
                self._count = depth
                raise
            return self._count

    def end(self) -> int:
        """Leave a scope, tearing the server down if it was the outermost one."""
        with self._lock:
            if self._count == 0:
                raise LifecycleError("end() called without a matching begin()")
            self._count -= 1
            if self._count > 0:
                logger.debug("Leaving nested scope, nesting depth %d", self._count)
                return self._count
            self._release()
            return 0

    @contextmanager
    def scope(self):
        self.begin()
        try:
            yield self
        finally:
            self.end()

    def close(self) -> None:
        """Release everything at process end. Safe to call repeatedly."""
        with self._lock:
            if self._count > 0:
                logger.warning("Shutting down with %d unbalanced begin() calls", self._count)
                self._count = 0
                self._release()
            elif self._provider.is_set:
                provider = self._provider.get()
                if _is_managed(provider) and getattr(provider, 'is_running', False):
                    self._stop_provider(provider)

    def _create_provider(self) -> AnyProvider:
        try:
            provider = self._provider_factory()
        except (ConfigurationError, StartupError):
            raise
        except Exception as e:
            raise StartupError("Could not create postgres provider: {}".format(e)) from e
        logger.info("Selected %r", provider)
        return provider

    def _acquire(self) -> None:
        provider = self._provider.get_or_init(self._create_provider)

        started = False
        if _is_managed(provider) and not provider.is_running:
            logger.info("Provisioning %r", provider)
            try:
                provider.start()
            except (ConfigurationError, StartupError):
                raise
            except Exception as e:
                raise StartupError("Could not start {!r}: {}".format(provider, e)) from e
            started = True

        try:
            config = self.get_connection_configuration()
            pool = self._pool_opener(config)
        except Exception as e:
            if started:
                self._stop_provider(provider)
            if isinstance(e, (ConfigurationError, StartupError)):
                raise
            raise StartupError("Could not open a connection pool: {}".format(e)) from e

        self._pool = pool
        logger.info("Shared postgres ready at %s:%d", config.host, config.port)

    def _release(self) -> None:
        # Strictly the reverse of _acquire: pool first, then the server.
        pool, self._pool, self._query = self._pool, None, None
        if pool is not None:
            try:
                pool.close()
            except Exception as e:
                self._teardown_failed("closing the connection pool", e)

        provider = self._provider.get()
        if _is_managed(provider):
            self._stop_provider(provider)
        logger.info("Shared postgres released")

    def _stop_provider(self, provider) -> None:
        try:
            provider.stop()
        except Exception as e:
            self._teardown_failed("stopping {!r}".format(provider), e)

    def _teardown_failed(self, stage: str, e: Exception) -> None:
        err = TeardownError(stage, e)
        self.teardown_failures.append(err)
        logger.error("%s, resources may have leaked", err, exc_info=e)
        warnings.warn(str(err), ResourceLeakWarning, stacklevel=4)

    # Accessors, valid once a provider has been chosen.

    @property
    def host(self) -> str:
        return self.provider.host

    @property
    def port(self) -> int:
        return self.provider.port

    @property
    def database(self) -> str:
        return self.provider.database

    @property
    def username(self) -> str:
        return self.provider.username

    @property
    def password(self) -> str:
        return self.provider.password

    def get_connection_configuration(self, **options) -> ConnectionConfig:
        options.setdefault('min_connections', self.settings.pool_min)
        options.setdefault('max_connections', self.settings.pool_max)
        return build_connection_config(self.provider.facts(), **options)

    # Certificate paths do not depend on the lifecycle at all.

    def client_certificate_path(self) -> str:
        return self.locator.client_certificate_path()

    def client_key_path(self) -> str:
        return self.locator.client_key_path()

    def server_certificate_path(self) -> str:
        return self.locator.server_certificate_path()

    def server_key_path(self) -> str:
        return self.locator.server_key_path()

    # Only valid inside an active scope.

    @property
    def pool(self) -> ConnectionPool:
        pool = self._pool
        if pool is None:
            raise LifecycleError("The connection pool only exists between begin() and end()")
        return pool

    @property
    def query_facade(self) -> QueryFacade:
        with self._lock:
            pool = self.pool
            if self._query is None:
                self._query = QueryFacade(pool)
            return self._query

    def __repr__(self):
        provider = self._provider.get() if self._provider.is_set else None
        return "LifecycleCoordinator(provider={!r}, nesting={})".format(provider, self._count)
