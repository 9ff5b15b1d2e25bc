import os

from arca_config.locator import ConfigLocator
from arca_config.settings import ArcaSettings, ConfigLocation


def locator(env, **kw):
    kw.setdefault("domain", "test-app")
    return ConfigLocator(ArcaSettings(**kw), env)


def test_variable_names_follow_domain():
    loc = locator({})
    assert loc.env_prefix == "TEST_APP"
    assert loc.path_var == "TEST_APP_CONFIG_PATH"
    assert loc.file_var == "TEST_APP_CONFIG_FILE"


def test_defaults_are_home_dot_domain(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    loc = locator({})
    assert loc.config_pathname() == os.path.join(str(tmp_path), ".test-app")
    assert loc.config_filename() == "config.json"
    assert loc.config_file() == os.path.join(str(tmp_path), ".test-app", "config.json")


def test_settings_rank_below_environment(tmp_path):
    env = {}
    loc = locator(env, config_path=str(tmp_path / "a" / ".." / "b"), config_file="s.json")
    assert loc.config_pathname() == str(tmp_path / "b")
    assert loc.config_filename() == "s.json"

    env["TEST_APP_CONFIG_PATH"] = "/srv/domain/"
    env["TEST_APP_CONFIG_FILE"] = "domain.json"
    assert loc.config_file() == "/srv/domain/domain.json"

    env["ARCA_CONFIG_PATH"] = "/srv/generic"
    env["ARCA_CONFIG_FILE"] = "generic.json"
    assert loc.config_file() == "/srv/generic/generic.json"


def test_empty_env_value_counts_as_unset():
    loc = locator({"ARCA_CONFIG_PATH": "", "TEST_APP_CONFIG_PATH": "/x"})
    assert loc.config_pathname() == "/x"


def test_data_pathname():
    loc = locator({"TEST_APP_CONFIG_PATH": "/x"})
    assert loc.data_pathname() == os.path.join("/x", "data", "links")


def test_set_location_updates_only_given_fields():
    env = {"TEST_APP_CONFIG_FILE": "keep.json"}
    loc = locator(env)

    loc.set_location(ConfigLocation(path="/new"), fields={"path"})
    assert env == {"TEST_APP_CONFIG_PATH": "/new", "TEST_APP_CONFIG_FILE": "keep.json"}
    assert loc.current_location() == ConfigLocation(path="/new", file="keep.json")

    loc.set_location(ConfigLocation(path=None, file=None))
    assert env == {}


def test_set_location_warns_when_generic_var_shadows(caplog):
    env = {"ARCA_CONFIG_PATH": "/generic"}
    loc = locator(env)
    loc.set_location(ConfigLocation(path="/domain"), fields={"path"})
    assert "ARCA_CONFIG_PATH is set" in caplog.text
    assert loc.config_pathname() == "/generic"
