from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generator, Generic, TypeVar

from double_engine.model.keys import MemberIdentity

T = TypeVar("T")


class AsyncShape(Enum):
    """
    Pre-completed async result shapes.

    AWAITABLE: a reusable awaitable that completes without suspending.
    FUTURE: an already resolved ``concurrent.futures.Future``.
    """

    AWAITABLE = "awaitable"
    FUTURE = "future"


class CompletedAwaitable(Generic[T]):
    """
    Awaitable that hands back a fixed value without ever suspending.

    Unlike a coroutine object it can be awaited any number of times, so one instance can
    back every call to a member.
    """

    __slots__ = ("_value",)

    def __init__(self, value: T) -> None:
        self._value = value

    @property
    def value(self) -> T:
        return self._value

    def __await__(self) -> Generator[Any, None, T]:
        return self._value
        yield  # pragma: no cover

    def __repr__(self) -> str:
        return f"CompletedAwaitable({self._value!r})"


def completed(value: Any, shape: AsyncShape) -> CompletedAwaitable[Any] | Future[Any]:
    match shape:
        case AsyncShape.AWAITABLE:
            return CompletedAwaitable(value)
        case AsyncShape.FUTURE:
            fut: Future[Any] = Future()
            fut.set_result(value)
            return fut
        case _:
            raise ValueError(f"Unknown async shape: {shape!r}")


@dataclass(frozen=True, slots=True)
class SetupRecord:
    """
    Pre-registered outcome for one member.

    ``outcome`` is a plain value, a pre-completed async result or an exception. Whether it is
    an exception is derived from its type, never stored separately.
    """

    identity: MemberIdentity
    outcome: Any
    partial_only: bool = False

    @property
    def is_exception(self) -> bool:
        return isinstance(self.outcome, BaseException)

    @property
    def is_async(self) -> bool:
        return isinstance(self.outcome, (CompletedAwaitable, Future))

    def resolve(self) -> Any:
        if self.is_exception:
            # same object every call; drop the frames of earlier raises
            raise self.outcome.with_traceback(None)
        return self.outcome
