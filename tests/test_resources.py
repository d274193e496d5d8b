from pytest_postgres_server import ConfigurationError, ResourceLocator
from pytest_postgres_server.providers import PROVISIONING_INPUTS

import os
import pytest


def test_bundled_resources_resolve():
    locator = ResourceLocator()
    for i in PROVISIONING_INPUTS:
        path = locator.resolve(i.logical_name)
        assert os.path.isabs(path)
        assert os.path.isfile(path)


def test_nonexistent_resource():
    locator = ResourceLocator()
    with pytest.raises(ConfigurationError, match="Resource not found: nonexistent.file"):
        locator.resolve("nonexistent.file")
    # Same answer every time, nothing is cached or retried.
    with pytest.raises(ConfigurationError):
        locator.resolve("nonexistent.file")


@pytest.mark.parametrize("name", ["", "/etc/passwd", "../setup.py"])
def test_invalid_names(name):
    with pytest.raises(ConfigurationError):
        ResourceLocator().resolve(name)


def test_search_path_shadows_bundled(tmp_path):
    (tmp_path / "pg_hba.conf").write_text("local all all trust\n")
    locator = ResourceLocator([str(tmp_path)])
    assert locator.resolve("pg_hba.conf") == os.path.realpath(str(tmp_path / "pg_hba.conf"))
    # Everything else still comes from the package.
    assert os.path.dirname(locator.resolve("setup.sh")) != os.path.realpath(str(tmp_path))


def test_directory_is_not_a_resource(tmp_path):
    (tmp_path / "server.crt").mkdir()
    with pytest.raises(ConfigurationError, match="Cannot convert to path"):
        ResourceLocator([str(tmp_path)]).resolve("server.crt")


def test_certificate_helpers():
    locator = ResourceLocator()
    assert os.path.basename(locator.client_certificate_path()) == "client.crt"
    assert os.path.basename(locator.client_key_path()) == "client.key"
    assert os.path.basename(locator.server_certificate_path()) == "server.crt"
    assert os.path.basename(locator.server_key_path()) == "server.key"
