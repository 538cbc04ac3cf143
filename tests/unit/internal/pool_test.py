from __future__ import annotations

import threading

import pytest

from double_engine.config import EngineConfig
from double_engine.internal import pool as uut


class _Item:
    pass


def test_slot_compare_and_swap() -> None:
    slot: uut._Slot[_Item] = uut._Slot()
    item = _Item()

    assert slot.compare_and_swap(None, item) is True
    assert slot.peek() is item
    assert slot.compare_and_swap(None, _Item()) is False
    assert slot.compare_and_swap(item, None) is True
    assert slot.peek() is None


def test_slot_contended_guard_fails_without_waiting() -> None:
    slot: uut._Slot[_Item] = uut._Slot()
    slot._guard.acquire()
    try:
        assert slot.compare_and_swap(None, _Item()) is False
    finally:
        slot._guard.release()


def test_rent_constructs_when_empty() -> None:
    built: list[_Item] = []

    def _factory() -> _Item:
        built.append(_Item())
        return built[-1]

    pool = uut.InstancePool(_factory, slots=2)
    item = pool.rent()

    assert item is built[0]
    assert pool.capacity == 2
    assert pool.available == 0


def test_release_then_rent_recycles() -> None:
    pool = uut.InstancePool(_Item, slots=2)
    item = _Item()

    assert pool.release(item) is True
    assert pool.available == 1
    assert pool.rent() is item
    assert pool.available == 0


def test_release_into_full_pool_discards() -> None:
    pool = uut.InstancePool(_Item, slots=1)

    assert pool.release(_Item()) is True
    assert pool.release(_Item()) is False
    assert pool.available == 1


def test_pool_size_defaults_from_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(uut, "get_engine_config", lambda: EngineConfig(pool_slots=3))
    assert uut.InstancePool(_Item).capacity == 3


def test_pool_rejects_zero_slots() -> None:
    with pytest.raises(ValueError, match="at least one slot"):
        uut.InstancePool(_Item, slots=0)


def test_pool_for_is_shared_per_target() -> None:
    class _Target:
        pass

    first = uut.pool_for(_Target, _Item)
    assert uut.pool_for(_Target, _Item) is first


def test_concurrent_rent_and_release_keep_pooled_items_distinct() -> None:
    pool = uut.InstancePool(_Item, slots=4)
    seeded = [_Item() for _ in range(4)]
    for item in seeded:
        pool.release(item)

    rented: list[_Item] = []
    lock = threading.Lock()
    start = threading.Barrier(8)

    def _worker() -> None:
        start.wait()
        for _ in range(50):
            item = pool.rent()
            with lock:
                rented.append(item)
            pool.release(item)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(rented) == 400
    assert pool.available <= pool.capacity
    pooled = [s.peek() for s in pool._slots if s.peek() is not None]
    assert len(pooled) == len({id(p) for p in pooled})
