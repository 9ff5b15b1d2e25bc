from arca_config.cache import Cache
from arca_config.result import Status
from arca_config.tree import MISSING


def test_put_get_and_none_is_a_value():
    cache = Cache()
    assert cache.get(("a",)) is MISSING
    cache.put(("a",), None)
    assert cache.get(["a"]) is None
    assert ("a",) in cache


def test_invalidate_drops_descendants_only():
    cache = Cache()
    cache.put(("a",), {"b": {"c": 1}})
    cache.put(("a", "b"), {"c": 1})
    cache.put(("a", "b", "c"), 1)
    cache.put(("ab",), 2)

    assert cache.invalidate(("a", "b")) is Status.INVALIDATED
    assert ("a", "b") not in cache
    assert ("a", "b", "c") not in cache
    assert ("a",) in cache
    assert ("ab",) in cache


def test_clear_and_close():
    cache = Cache()
    cache.put(("a",), 1)
    assert cache.clear() is Status.CLEARED
    assert len(cache) == 0

    cache.close()
    cache.put(("a",), 1)
    assert cache.get(("a",), "default") == "default"
    assert cache.closed
