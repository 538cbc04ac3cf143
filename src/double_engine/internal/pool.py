from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

from double_engine.config import get_engine_config

T = TypeVar("T")


class _Slot(Generic[T]):
    """
    One pool slot with compare-and-swap semantics.

    The guard is only ever acquired without blocking: a slot another thread is touching
    counts as a failed swap and the caller moves on to the next slot.
    """

    __slots__ = ("_item", "_guard")

    def __init__(self) -> None:
        self._item: T | None = None
        self._guard = threading.Lock()

    def peek(self) -> T | None:
        return self._item

    def compare_and_swap(self, expected: T | None, new: T | None) -> bool:
        if not self._guard.acquire(blocking=False):
            return False
        try:
            if self._item is not expected:
                return False
            self._item = new
            return True
        finally:
            self._guard.release()


class InstancePool(Generic[T]):
    """
    Best-effort recycler of objects with a fixed number of slots.

    - rent(): claims the first filled slot, or builds a fresh object when none can be claimed.
    - release(): parks the object in the first empty slot it can claim, or discards it.

    Rented objects are returned as they were released; the renter resets them.
    """

    __slots__ = ("_factory", "_slots")

    def __init__(self, factory: Callable[[], T], *, slots: int | None = None) -> None:
        size = slots if slots is not None else get_engine_config().effective_pool_slots
        if size < 1:
            raise ValueError(f"pool needs at least one slot, got {size}")
        self._factory = factory
        self._slots: tuple[_Slot[T], ...] = tuple(_Slot() for _ in range(size))

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def available(self) -> int:
        return sum(1 for s in self._slots if s.peek() is not None)

    def rent(self) -> T:
        for slot in self._slots:
            item = slot.peek()
            if item is not None and slot.compare_and_swap(item, None):
                return item
        logging.debug("instance pool empty; constructing a fresh instance")
        return self._factory()

    def release(self, item: T) -> bool:
        for slot in self._slots:
            if slot.peek() is None and slot.compare_and_swap(None, item):
                return True
        logging.debug("instance pool full; discarding released instance")
        return False


_pools: dict[type, InstancePool] = {}


def pool_for(target: type, factory: Callable[[], T]) -> InstancePool[T]:
    """
    The pool shared by every mock of ``target``; created on first use.
    """
    pool = _pools.get(target)
    if pool is None:
        pool = _pools.setdefault(target, InstancePool(factory))
    return pool
