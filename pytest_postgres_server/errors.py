class PostgresServerError(Exception):
    """Base class for everything raised by the shared postgres server."""


class ConfigurationError(PostgresServerError):
    """A bundled resource or a configuration value is unusable.

    This is a packaging or setup defect, never a transient condition, so
    callers should abort instead of retrying.
    """


class StartupError(PostgresServerError):
    """The provider or the connection pool failed to become ready."""


class LifecycleError(PostgresServerError):
    """`begin()`/`end()` were called out of order."""


class NotInitializedError(LifecycleError):
    """An accessor was used before the first `begin()`."""


class TeardownError(PostgresServerError):
    """Closing the pool or stopping the instance failed.

    These are recorded on the coordinator and reported as a
    `ResourceLeakWarning`, they are not raised out of `end()`.
    """

    def __init__(self, stage: str, error: BaseException):
        super(TeardownError, self).__init__(
            "Teardown failed while {}: {}".format(stage, error)
        )
        self.stage = stage
        self.error = error


class ResourceLeakWarning(UserWarning):
    """A shared resource may have been left running."""
