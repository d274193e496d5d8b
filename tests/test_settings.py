from pytest_postgres_server import ConfigurationError, Settings

import os
import pytest


@pytest.fixture
def clean_env(monkeypatch):
    for k in list(os.environ):
        if k.startswith('PGTEST_'):
            monkeypatch.delenv(k)
    return monkeypatch


def test_defaults(clean_env):
    s = Settings.from_env()
    assert s == Settings()
    assert s.provider == 'ephemeral'
    assert s.image == 'postgres:latest'
    assert s.resource_path == ()


def test_from_env(clean_env):
    clean_env.setenv('PGTEST_PROVIDER', 'AUTO')
    clean_env.setenv('PGTEST_EXTERNAL_PORT', '15432')
    clean_env.setenv('PGTEST_PROBE_TIMEOUT', '0.25')
    clean_env.setenv('PGTEST_RESOURCE_PATH', os.pathsep.join(['/a', '', '/b']))
    clean_env.setenv('PGTEST_DEBUG', '1')
    s = Settings.from_env()
    assert s.provider == 'auto'
    assert s.external_port == 15432
    assert s.probe_timeout == 0.25
    assert s.resource_path == ('/a', '/b')
    assert s.debug


@pytest.mark.parametrize("name,value", [
    ('PGTEST_PROVIDER', 'docker'),
    ('PGTEST_EXTERNAL_PORT', 'five'),
    ('PGTEST_PROBE_TIMEOUT', '0'),
    ('PGTEST_POOL_MAX', '0'),
])
def test_invalid_env(clean_env, name, value):
    clean_env.setenv(name, value)
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_overrides():
    s = Settings().with_overrides(provider='External', image=None)
    assert s.provider == 'external'
    assert s.image == Settings.image
    assert Settings().with_overrides() == Settings()
