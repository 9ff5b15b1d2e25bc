import os

import pytest

from arca_config import ArcaConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith(("ARCA_", "TESTAPP_")):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def env():
    return {}


@pytest.fixture
def make_cfg(tmp_path, env):
    created = []

    def _make(**kw):
        kw.setdefault("domain", "testapp")
        kw.setdefault("config_path", str(tmp_path))
        kw.setdefault("poll_interval", 60.0)  # tests tick the watcher by hand
        cfg = ArcaConfig(environ=env, **kw)
        created.append(cfg)
        return cfg

    yield _make
    for cfg in created:
        cfg.stop()


@pytest.fixture
def cfg(make_cfg):
    return make_cfg()


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "config.json"
