import pytest

from arca_config.overrides import coerce_value, collect_overrides


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("true", True),
        ("FALSE", False),
        ("42", 42),
        ("-7", -7),
        ("2.5", 2.5),
        ("1e3", 1000.0),
        ('{"a": [1, 2]}', {"a": [1, 2]}),
        ("[1, 2]", [1, 2]),
        ('"quoted"', "quoted"),
        ("{not json", "{not json"),
        ("plain text", "plain text"),
    ],
)
def test_coerce_value(raw, expected):
    assert coerce_value(raw) == expected


def test_collect_overrides_splits_on_first_underscore():
    env = {
        "MY_APP_CONFIG_OVERRIDE_DATABASE_POOL_SIZE": "5",
        "MY_APP_CONFIG_OVERRIDE_APP_DEBUG": "true",
        "MY_APP_CONFIG_OVERRIDE_NOKEY": "ignored",
        "OTHER_CONFIG_OVERRIDE_APP_DEBUG": "false",
        "MY_APP_CONFIG_PATH": "/x",
    }
    assert collect_overrides("MY_APP", env) == [
        ("app.debug", True),
        ("database.pool_size", 5),
    ]
