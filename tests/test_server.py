import json
import threading

import pytest

from arca_config import ConfigIOError, ConfigParseError, InvalidKeyPath, KeyPathNotFound, Status
from arca_config.tree import flatten


def write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")


def collect(cfg, key):
    seen = []
    cfg.subscribe(key, lambda path, value: seen.append((path, value)))
    return seen


def assert_cache_agrees(cfg):
    tree = cfg.config
    for path, value in flatten(tree):
        assert cfg.get(path).unwrap() == value
    for path in list(cfg.cache._data):
        assert cfg.get(path).ok


def test_put_then_get(cfg, config_file):
    assert cfg.put("database.host", "localhost").value == "localhost"
    assert cfg.get("database.host").unwrap() == "localhost"
    assert cfg.get(["database"]).unwrap() == {"host": "localhost"}
    assert json.loads(config_file.read_text()) == {"database": {"host": "localhost"}}


def test_file_is_pretty_printed(cfg, config_file):
    cfg.put("a.b", 1)
    assert config_file.read_text() == '{\n    "a": {\n        "b": 1\n    }\n}'


def test_put_merges_into_existing_map(cfg, config_file):
    write(config_file, {"app": {"name": "X"}})
    cfg.put("app.version", "1.0")
    assert cfg.get("app").unwrap() == {"name": "X", "version": "1.0"}


def test_missing_key_is_not_found(cfg):
    result = cfg.get("nope.deeper")
    assert not result
    assert isinstance(result.error, KeyPathNotFound)
    assert result.error.path == ["nope", "deeper"]
    with pytest.raises(KeyError):
        cfg.get_or_raise("nope")


def test_null_is_a_value(cfg):
    cfg.put("a", None)
    assert cfg.get("a").ok
    assert cfg.get("a").value is None


def test_invalid_key_path_is_a_failure(cfg):
    assert isinstance(cfg.get("").error, InvalidKeyPath)
    assert isinstance(cfg.put("a..b", 1).error, InvalidKeyPath)
    with pytest.raises(InvalidKeyPath):
        cfg.delete_or_raise([])


def test_returned_values_are_detached(cfg):
    cfg.put("a", {"list": [1]})
    got = cfg.get("a").unwrap()
    got["list"].append(2)
    assert cfg.get("a.list").unwrap() == [1]


def test_delete_prunes_emptied_parents(cfg, config_file):
    cfg.put("a.b.c", 1)
    assert cfg.delete("a.b.c").value is Status.DELETED
    assert isinstance(cfg.get("a.b.c").error, KeyPathNotFound)
    assert isinstance(cfg.get("a").error, KeyPathNotFound)
    assert json.loads(config_file.read_text()) == {}


def test_delete_missing_path_succeeds(cfg):
    cfg.put("a", 1)
    assert cfg.delete_or_raise("x.y") is Status.DELETED
    assert cfg.get("a").unwrap() == 1


def test_putting_scalar_over_map_evicts_children(cfg):
    cfg.put("a.b.c", 1)
    assert cfg.get("a.b.c").unwrap() == 1
    cfg.put("a", 5)
    assert isinstance(cfg.get("a.b.c").error, KeyPathNotFound)
    assert cfg.get("a").unwrap() == 5
    assert_cache_agrees(cfg)


def test_put_keeps_edits_made_by_others(cfg, config_file):
    cfg.put("mine", 1)
    cfg.get("mine")
    write(config_file, {"mine": 1, "theirs": 2})

    cfg.put("more", 3)
    assert json.loads(config_file.read_text()) == {"mine": 1, "theirs": 2, "more": 3}
    assert cfg.get("theirs").unwrap() == 2
    assert_cache_agrees(cfg)


def test_external_edit_is_reflected_in_cache_after_put(cfg, config_file):
    cfg.put("x", 1)
    assert cfg.get("x").unwrap() == 1
    write(config_file, {"x": 2})

    cfg.put("y", 1)
    assert cfg.get("x").unwrap() == 2


def test_failed_put_leaves_config_unchanged(cfg, config_file):
    cfg.put("a", 1)
    result = cfg.put("b", object())
    assert isinstance(result.error, ConfigIOError)
    assert cfg.config == {"a": 1}
    assert json.loads(config_file.read_text()) == {"a": 1}
    with pytest.raises(ConfigIOError):
        cfg.put_or_raise("b", object())


def test_subscriber_and_ancestors_are_notified(cfg):
    leaf = collect(cfg, "database.host")
    parent = collect(cfg, ["database"])
    unrelated = collect(cfg, "other")

    cfg.put("database.port", 5432)
    cfg.put("database.host", "localhost")
    assert cfg.notifier.flush(timeout=5)

    assert leaf == [(["database", "host"], "localhost")]
    assert parent == [
        (["database"], {"port": 5432}),
        (["database"], {"port": 5432, "host": "localhost"}),
    ]
    assert unrelated == []


def test_delete_notifies_remaining_ancestors(cfg):
    cfg.put("a.b", 1)
    cfg.put("a.c", 2)
    cfg.notifier.flush(timeout=5)
    parent = collect(cfg, "a")
    removed = collect(cfg, "a.b")

    cfg.delete("a.b")
    assert cfg.notifier.flush(timeout=5)
    assert parent == [(["a"], {"c": 2})]
    assert removed == []


def test_callbacks_follow_subscribers(cfg):
    order = []
    cfg.subscribe("k", lambda path, value: order.append("sub"))
    cfg.register_callback("tree", lambda tree: order.append(("tree", tree)))
    cfg.add_callback(lambda: order.append("simple"))

    cfg.put("k", 1)
    assert cfg.notifier.flush(timeout=5)
    assert order == ["sub", ("tree", {"k": 1}), "simple"]


def test_failing_subscriber_does_not_block_others(cfg):
    def boom(path, value):
        raise RuntimeError("boom")

    cfg.subscribe("k", boom)
    seen = collect(cfg, "k")
    assert cfg.put("k", 1).ok
    assert cfg.notifier.flush(timeout=5)
    assert seen == [(["k"], 1)]


def test_reload_picks_up_file_and_notifies_changes(cfg, config_file):
    cfg.put("a", 1)
    cfg.put("b", 1)
    cfg.notifier.flush(timeout=5)
    a_seen = collect(cfg, "a")
    b_seen = collect(cfg, "b")
    trees = []
    cfg.register_callback("t", trees.append)

    write(config_file, {"a": 2, "b": 1})
    assert cfg.reload().unwrap() == {"a": 2, "b": 1}
    assert cfg.notifier.flush(timeout=5)

    assert a_seen == [(["a"], 2)]
    assert b_seen == []
    assert trees == [{"a": 2, "b": 1}]
    assert_cache_agrees(cfg)


def test_two_reloads_give_identical_trees(cfg, config_file):
    write(config_file, {"x": {"y": [1, 2]}})
    first = cfg.reload_or_raise()
    second = cfg.reload_or_raise()
    assert first == second == cfg.config


def test_failed_reload_leaves_empty_loaded_tree(cfg, config_file):
    cfg.put("a", 1)
    config_file.write_text("{broken", encoding="utf-8")

    result = cfg.reload()
    assert isinstance(result.error, ConfigParseError)
    assert cfg.server.loaded
    assert cfg.server.load_error is result.error
    assert cfg.config == {}
    assert isinstance(cfg.get("a").error, KeyPathNotFound)


def test_lazy_load_on_first_get(cfg, config_file):
    write(config_file, {"a": {"b": True}})
    assert not cfg.server.loaded
    assert cfg.get("a.b").unwrap() is True
    assert cfg.server.loaded


def test_notify_external_change_runs_callbacks_synchronously(cfg):
    cfg.put("a", 1)
    cfg.notifier.flush(timeout=5)
    trees, hits = [], []
    cfg.register_callback("t", trees.append)
    cfg.add_callback(lambda: hits.append(1))

    assert cfg.notify_external_change() is Status.NOTIFIED
    assert trees == [{"a": 1}]
    assert hits == [1]

    assert cfg.notify_callbacks() is Status.NOTIFIED
    assert hits == [1, 1]
    assert trees == [{"a": 1}]


def test_parallel_writers_and_readers(cfg):
    writers, per_writer = 4, 20
    done = threading.Event()
    failures, bad_reads = [], []

    def writer(n):
        for j in range(per_writer):
            result = cfg.put(["w%d" % n, "k%d" % j], j)
            if not result:
                failures.append(result.error)

    def reader():
        while not done.is_set():
            for n in range(writers):
                result = cfg.get("w%d" % n)
                if result and not isinstance(result.value, dict):
                    bad_reads.append(result.value)

    readers = [threading.Thread(target=reader) for _ in range(2)]
    threads = [threading.Thread(target=writer, args=(n,)) for n in range(writers)]
    for t in readers + threads:
        t.start()
    for t in threads:
        t.join()
    done.set()
    for t in readers:
        t.join()

    assert failures == []
    assert bad_reads == []
    tree = cfg.reload_or_raise()
    for n in range(writers):
        assert tree["w%d" % n] == {"k%d" % j: j for j in range(per_writer)}
    assert_cache_agrees(cfg)
