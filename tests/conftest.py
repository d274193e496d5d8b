from pytest_postgres_server.resources import ResourceLocator
from pytest_postgres_server.settings import Settings

import itertools
import pytest
import threading


pytest_plugins = ["pytester"]


class FakeInstance(object):
    def __init__(self, runtime, files, command, port):
        self.runtime = runtime
        self.files = files
        self.command = command
        self.port = port
        self.stopped = False

    def reachable_host(self):
        return "127.0.0.1"

    def mapped_port(self, port):
        assert port == 5432
        return self.port

    def stop(self):
        self.runtime.stops += 1
        if self.runtime.fail_stop:
            raise RuntimeError("docker went away")
        self.stopped = True


class FakeRuntime(object):
    """Hands out instances on increasing ports instead of containers."""

    def __init__(self):
        self.ports = itertools.count(49152)
        self.starts = 0
        self.stops = 0
        self.fail_start = None
        self.fail_stop = False
        self.instances = []

    def start(self, files, command):
        self.starts += 1
        if self.fail_start is not None:
            raise self.fail_start
        instance = FakeInstance(self, list(files), command, next(self.ports))
        self.instances.append(instance)
        return instance


class FakePool(object):
    def __init__(self, opener, config):
        self.opener = opener
        self.config = config
        self.closed = False

    def close(self):
        self.opener.closes += 1
        if self.opener.fail_close:
            raise RuntimeError("pool close failed")
        self.closed = True


class FakePoolOpener(object):
    def __init__(self):
        self.opens = 0
        self.closes = 0
        self.fail_open = None
        self.fail_close = False
        self.pools = []
        self._lock = threading.Lock()

    def __call__(self, config):
        with self._lock:
            self.opens += 1
        if self.fail_open is not None:
            raise self.fail_open
        pool = FakePool(self, config)
        self.pools.append(pool)
        return pool


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def pool_opener():
    return FakePoolOpener()


@pytest.fixture
def locator():
    return ResourceLocator()


@pytest.fixture
def settings():
    return Settings(provider='ephemeral', probe_timeout=0.2)
