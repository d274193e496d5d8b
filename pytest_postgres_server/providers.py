from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Union

import logging
import socket

from .errors import NotInitializedError, StartupError
from .resources import ResourceLocator
from .runtime import POSTGRESQL_PORT, ContainerRuntime, RunningInstance, StagedFile, TestcontainersRuntime
from .settings import Settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionFacts:
    host: str
    port: int
    database: str
    username: str
    password: str


@dataclass(frozen=True)
class ProvisioningInput:
    logical_name: str
    destination_path: str
    permission_mode: int


PROVISIONING_INPUTS = (
    ProvisioningInput('server.crt', '/var/server.crt', 0o600),
    ProvisioningInput('server.key', '/var/server.key', 0o600),
    ProvisioningInput('client.crt', '/var/client.crt', 0o600),
    ProvisioningInput('ca.crt', '/var/ca.crt', 0o600),
    ProvisioningInput('pg_hba.conf', '/var/pg_hba.conf', 0o600),
    ProvisioningInput('setup.sh', '/var/setup.sh', 0o755),
    ProvisioningInput('test-db-init-script.sql', '/docker-entrypoint-initdb.d/test-db-init-script.sql', 0o755),
)

LAUNCH_COMMAND = '/var/setup.sh'


class Provider(Protocol):
    """What the coordinator needs from a backing instance."""

    @property
    def host(self) -> str:
        ...

    @property
    def port(self) -> int:
        ...

    @property
    def database(self) -> str:
        ...

    @property
    def username(self) -> str:
        ...

    @property
    def password(self) -> str:
        ...

    def facts(self) -> ConnectionFacts:
        ...


class ExternalProvider(object):
    """An externally managed postgres instance.

    Nothing is started or stopped, we simply assume that somebody runs a
    server at the given address. `is_available()` can be used to check
    that assumption before committing to it.
    """

    def __init__(self, host: str = 'localhost', port: int = 5432, database: str = 'postgres',
                 username: str = 'postgres', password: str = 'postgres', probe_timeout: float = 1.0) -> None:
        self._facts = ConnectionFacts(host, port, database, username, password)
        self.probe_timeout = probe_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExternalProvider":
        return cls(
            host=settings.external_host,
            port=settings.external_port,
            database=settings.external_database,
            username=settings.external_username,
            password=settings.external_password,
            probe_timeout=settings.probe_timeout,
        )

    @property
    def host(self) -> str:
        return self._facts.host

    @property
    def port(self) -> int:
        return self._facts.port

    @property
    def database(self) -> str:
        return self._facts.database

    @property
    def username(self) -> str:
        return self._facts.username

    @property
    def password(self) -> str:
        return self._facts.password

    def facts(self) -> ConnectionFacts:
        return self._facts

    def is_available(self) -> bool:
        """Return whether something accepts TCP connections at host:port.

        Never raises: refusals, timeouts, resolution failures and host
        names the IDNA codec rejects all just mean "not available".
        """
        try:
            with socket.create_connection((self.host, self.port), timeout=self.probe_timeout):
                pass
        except (OSError, ValueError, OverflowError) as e:
            logger.debug("No postgres at %s:%d: %s", self.host, self.port, e)
            return False
        logger.debug("Found postgres at %s:%d", self.host, self.port)
        return True

    def __repr__(self):
        return "ExternalProvider({}:{})".format(self.host, self.port)


class EphemeralProvider(object):
    """A postgres container started and stopped on demand.

    `database`, `username` and `password` are fixed when the provider is
    created. `host` and `port` are only known while the container runs,
    since the runtime maps the postgres port to a random local port.
    """

    def __init__(self, runtime: ContainerRuntime, locator: ResourceLocator,
                 database: str = 'test', username: str = 'test', password: str = 'test',
                 inputs: Sequence[ProvisioningInput] = PROVISIONING_INPUTS,
                 command: Optional[str] = LAUNCH_COMMAND) -> None:
        self.runtime = runtime
        self.locator = locator
        self.inputs = tuple(inputs)
        self.command = command
        self._database = database
        self._username = username
        self._password = password
        self.instance: Optional[RunningInstance] = None

    @classmethod
    def from_settings(cls, settings: Settings, locator: ResourceLocator,
                      runtime: Optional[ContainerRuntime] = None) -> "EphemeralProvider":
        if runtime is None:
            runtime = TestcontainersRuntime(
                settings.image, settings.username, settings.password, settings.database
            )
        return cls(
            runtime, locator,
            database=settings.database,
            username=settings.username,
            password=settings.password,
        )

    @property
    def is_running(self) -> bool:
        return self.instance is not None

    def staged_files(self) -> List[StagedFile]:
        # Raises ConfigurationError for missing files, before anything is launched.
        return [
            StagedFile(self.locator.resolve(i.logical_name), i.destination_path, i.permission_mode)
            for i in self.inputs
        ]

    def start(self) -> None:
        if self.instance is not None:
            return
        files = self.staged_files()
        try:
            self.instance = self.runtime.start(files, self.command)
        except StartupError:
            raise
        except Exception as e:
            raise StartupError("Could not start ephemeral postgres: {}".format(e)) from e

    def stop(self) -> None:
        instance, self.instance = self.instance, None
        if instance is None:
            return
        instance.stop()

    def _running(self) -> RunningInstance:
        if self.instance is None:
            raise NotInitializedError("Ephemeral postgres is not running")
        return self.instance

    @property
    def host(self) -> str:
        return self._running().reachable_host()

    @property
    def port(self) -> int:
        return self._running().mapped_port(POSTGRESQL_PORT)

    @property
    def database(self) -> str:
        return self._database

    @property
    def username(self) -> str:
        return self._username

    @property
    def password(self) -> str:
        return self._password

    def facts(self) -> ConnectionFacts:
        return ConnectionFacts(self.host, self.port, self.database, self.username, self.password)

    def __repr__(self):
        state = 'running' if self.is_running else 'stopped'
        return "EphemeralProvider({})".format(state)


AnyProvider = Union[ExternalProvider, EphemeralProvider]


def select_provider(settings: Settings, locator: ResourceLocator,
                    runtime: Optional[ContainerRuntime] = None) -> AnyProvider:
    """Pick the backing instance according to `settings.provider`.

    `auto` prefers an already running external server and only provisions
    a container when none answers.
    """
    external = ExternalProvider.from_settings(settings)
    if settings.provider == 'external':
        logger.info("Using external postgres at %s:%d", external.host, external.port)
        return external
    if settings.provider == 'auto':
        if external.is_available():
            logger.info("Using external postgres at %s:%d", external.host, external.port)
            return external
        logger.info("No external postgres at %s:%d, provisioning a container",
                    external.host, external.port)
    return EphemeralProvider.from_settings(settings, locator, runtime)
