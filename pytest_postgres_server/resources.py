"""Lookup of the certificates and scripts bundled with this package."""
from typing import Iterable, List, Optional

import logging
import os

from .errors import ConfigurationError


logger = logging.getLogger(__name__)

BUNDLED_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data')

CLIENT_CRT = 'client.crt'
CLIENT_KEY = 'client.key'
SERVER_CRT = 'server.crt'
SERVER_KEY = 'server.key'


class ResourceLocator(object):
    """Resolve logical resource names to absolute filesystem paths.

    Directories in `search_path` are consulted in order, the bundled
    `data/` directory always comes last so a test suite can shadow
    individual files (e.g. its own certificates).
    """

    def __init__(self, search_path: Optional[Iterable[str]] = None) -> None:
        self.search_path: List[str] = [os.path.abspath(p) for p in (search_path or [])]
        self.search_path.append(BUNDLED_DIR)

    def resolve(self, name: str) -> str:
        if not name or os.path.isabs(name) or os.pardir in name.split(os.sep):
            raise ConfigurationError("Invalid resource name: {!r}".format(name))

        for directory in self.search_path:
            candidate = os.path.join(directory, name)
            if not os.path.exists(candidate):
                continue
            if not os.path.isfile(candidate):
                raise ConfigurationError(
                    "Cannot convert to path for: {} ({} is not a regular file)".format(name, candidate)
                )
            path = os.path.realpath(candidate)
            logger.debug("Resolved resource %s to %s", name, path)
            return path

        raise ConfigurationError(
            "Resource not found: {} (searched {})".format(name, ", ".join(self.search_path))
        )

    def client_certificate_path(self) -> str:
        return self.resolve(CLIENT_CRT)

    def client_key_path(self) -> str:
        return self.resolve(CLIENT_KEY)

    def server_certificate_path(self) -> str:
        return self.resolve(SERVER_CRT)

    def server_key_path(self) -> str:
        return self.resolve(SERVER_KEY)
