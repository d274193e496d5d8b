"""Container runtime used by the ephemeral provider.

The provider only needs a handful of capabilities from the runtime, so they
are spelled out as protocols here. `TestcontainersRuntime` is the real
implementation, tests substitute in-process fakes.
"""
from typing import Optional, Protocol, Sequence

import logging
import os
import shutil
import tempfile

from testcontainers.postgres import PostgresContainer

from .errors import StartupError


logger = logging.getLogger(__name__)

POSTGRESQL_PORT = 5432


class StagedFile(object):
    """A local file ready to be placed into the container before launch."""

    def __init__(self, source: str, destination: str, mode: int) -> None:
        self.source = source
        self.destination = destination
        self.mode = mode

    def __repr__(self):
        return "StagedFile({!r} -> {!r}, {})".format(self.source, self.destination, oct(self.mode))


class RunningInstance(Protocol):
    def reachable_host(self) -> str:
        ...

    def mapped_port(self, port: int) -> int:
        ...

    def stop(self) -> None:
        ...


class ContainerRuntime(Protocol):
    def start(self, files: Sequence[StagedFile], command: Optional[str]) -> RunningInstance:
        ...


class TestcontainersInstance(object):
    """A started `PostgresContainer` plus the staging directory it mounts."""

    def __init__(self, container: PostgresContainer, staging_dir: str) -> None:
        self.container = container
        self.staging_dir = staging_dir

    def reachable_host(self) -> str:
        return self.container.get_container_host_ip()

    def mapped_port(self, port: int) -> int:
        return int(self.container.get_exposed_port(port))

    def stop(self) -> None:
        try:
            self.container.stop()
        finally:
            shutil.rmtree(self.staging_dir, ignore_errors=True)


class TestcontainersRuntime(object):
    """Launch postgres containers through testcontainers.

    Each staged file is copied into a private staging directory with its
    permission mode applied, then bind mounted read-only at its
    destination, so it is in place before the image's entrypoint runs.
    """

    # Not a test class, despite the name.
    __test__ = False

    def __init__(self, image: str, username: str, password: str, dbname: str) -> None:
        self.image = image
        self.username = username
        self.password = password
        self.dbname = dbname

    def _stage(self, files: Sequence[StagedFile]) -> str:
        staging_dir = tempfile.mkdtemp(prefix='pytest-postgres-')
        for i, f in enumerate(files):
            # Number the copies so equal basenames can't collide.
            target = os.path.join(staging_dir, "{}-{}".format(i, os.path.basename(f.destination)))
            shutil.copyfile(f.source, target)
            os.chmod(target, f.mode)
        return staging_dir

    def start(self, files: Sequence[StagedFile], command: Optional[str]) -> TestcontainersInstance:
        staging_dir = self._stage(files)
        container = PostgresContainer(
            self.image,
            port=POSTGRESQL_PORT,
            username=self.username,
            password=self.password,
            dbname=self.dbname,
        )
        for i, f in enumerate(files):
            host_path = os.path.join(staging_dir, "{}-{}".format(i, os.path.basename(f.destination)))
            container.with_volume_mapping(host_path, f.destination, mode='ro')
        if command:
            container.with_command(command)

        logger.info("Starting %s container", self.image)
        try:
            container.start()
        except Exception as e:
            try:
                container.stop()
            except Exception:
                logger.debug("Could not clean up the failed container", exc_info=True)
            shutil.rmtree(staging_dir, ignore_errors=True)
            raise StartupError("Container {} did not become ready: {}".format(self.image, e)) from e

        instance = TestcontainersInstance(container, staging_dir)
        logger.info(
            "Container %s listening on %s:%d",
            self.image, instance.reachable_host(), instance.mapped_port(POSTGRESQL_PORT),
        )
        return instance
