import json

import pytest

from paxoslog.lfu import LFUCache


def assert_same_state(lfu, lfu2):
    assert lfu.to_dict() == lfu2.to_dict()


def test_it_works():
    lfu = LFUCache(20)
    lfu.set(10, 10)
    lfu.set(20, 30)
    assert lfu.get(10) == 10
    assert lfu.get(30) is None


def test_lru_eviction():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    lfu.set(2, 2)
    lfu.set(3, 3)
    assert lfu.get(1) is None


def test_key_frequency_update():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    lfu.set(2, 2)
    lfu.set(1, 3)
    lfu.set(10, 10)
    assert lfu.get(2) is None
    assert lfu[10] == 10


def test_lfu_indexing():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    assert lfu[1] == 1


def test_indexing_missing_key_raises():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    with pytest.raises(KeyError):
        lfu[2]
    assert lfu[1] == 1
    assert len(lfu) == 1


def test_lfu_deletion():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    lfu.set(2, 2)
    assert lfu.remove(1) == 1
    assert lfu.get(1) is None
    lfu.set(3, 3)
    lfu.set(4, 4)
    assert lfu.get(2) is None
    assert lfu.get(3) == 3


def test_remove_missing_returns_none():
    lfu = LFUCache(2)
    assert lfu.remove(5) is None


def test_duplicates():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    lfu.set(1, 2)
    lfu.set(1, 3)
    lfu.set(5, 20)
    assert lfu[1] == 3


def test_lfu_consumption():
    lfu = LFUCache(1)
    lfu.set(1, 1)
    assert list(lfu.items()) == [(1, 1)]


def test_lfu_iter():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    lfu.set(2, 2)
    assert dict(lfu.items()) == {1: 1, 2: 2}
    assert sorted(lfu) == [1, 2]


def test_clone():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    lfu.set(2, 2)
    lfu.set(3, 3)
    lfu2 = lfu.copy()
    assert_same_state(lfu, lfu2)
    lfu2.set(9, 9)
    assert 9 not in lfu


def test_evict_and_return_value():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    lfu.set(2, 2)
    lfu.get(1)
    assert lfu.evict_and_return_value() == 2
    lfu.set(3, 3)
    assert lfu.get(2) is None


def test_evict_and_return_key():
    lfu = LFUCache(2)
    lfu.set("a", 1)
    lfu.set("b", 2)
    lfu.get("b")
    assert lfu.evict_and_return_key() == "a"
    assert "a" not in lfu
    assert len(lfu) == 1


def test_evict_on_fresh_cache_returns_none():
    lfu = LFUCache(3)
    assert lfu.evict_and_return_key() is None
    assert lfu.evict_and_return_value() is None


def test_zero_capacity_rejected():
    with pytest.raises(ValueError):
        LFUCache(0)


def test_len_contains_is_empty():
    lfu = LFUCache(3)
    assert lfu.is_empty()
    lfu.set(1, "x")
    assert not lfu.is_empty()
    assert len(lfu) == 1
    assert 1 in lfu
    assert 2 not in lfu


def test_ser():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    lfu.set(2, 2)
    lfu.set(3, 3)
    lfu.set(4, 4)
    ser = json.dumps(lfu.to_dict())
    lfu2 = LFUCache.from_dict(json.loads(ser))
    assert_same_state(lfu2, lfu)
    assert lfu2[4] == 4


def test_clone_ser():
    lfu = LFUCache(2)
    lfu.set(1, 1)
    lfu.set(2, 2)
    lfu.set(3, 3)
    lfu.set(4, 4)
    lfu2 = lfu.copy()
    ser = json.dumps(lfu2.to_dict())
    lfu3 = LFUCache.from_dict(json.loads(ser))
    assert_same_state(lfu3, lfu)


def test_from_dict_rejects_bad_data():
    with pytest.raises(ValueError):
        LFUCache.from_dict({"capacity": 2})