from __future__ import annotations

import inspect
import logging
from concurrent.futures import Future
from typing import Any, Generic, TypeVar

from typing_extensions import Self

from double_engine.config import get_engine_config
from double_engine.internal.members import MemberDescriptor, MemberTable, describe_interface
from double_engine.internal.static_wrapper import describe_static_surface
from double_engine.lifecycle import create_mock, create_static_mock
from double_engine.model.errors import BuilderConsumed, ProxyUnavailable
from double_engine.model.setup import AsyncShape, SetupRecord, completed
from double_engine.verification import StaticMock, VerifiableMock

T = TypeVar("T")


class _SetupBuffer:
    """
    Append-only record buffer with a fixed initial capacity that doubles when full.
    """

    __slots__ = ("_items", "_count")

    def __init__(self, capacity: int) -> None:
        self._items: list[SetupRecord | None] = [None] * capacity
        self._count = 0

    def __len__(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return len(self._items)

    def append(self, record: SetupRecord) -> None:
        if self._count == len(self._items):
            self._items.extend([None] * max(len(self._items), 1))
        self._items[self._count] = record
        self._count += 1

    def snapshot(self) -> tuple[SetupRecord, ...]:
        return tuple(r for r in self._items[: self._count] if r is not None)


def _require_class(target: Any) -> type:
    if not inspect.isclass(target):
        raise ProxyUnavailable(f"only classes can be mocked, got {target!r}")
    return target


class _BaseBuilder(Generic[T]):
    __slots__ = ("_target", "_members", "_buffer", "_consumed")

    def __init__(self, target: type, members: MemberTable, capacity: int) -> None:
        self._target = target
        self._members = members
        self._buffer = _SetupBuffer(capacity)
        self._consumed = False

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def target(self) -> type:
        return self._target

    def _ensure_open(self) -> None:
        if self._consumed:
            raise BuilderConsumed(
                f"builder for {self._target.__qualname__} was already built; start a new one"
            )

    def _resolve(self, ref: Any) -> MemberDescriptor:
        self._ensure_open()
        return self._members.resolve(ref)

    def _append(self, member: MemberDescriptor, outcome: Any, *, partial_only: bool = False) -> None:
        self._buffer.append(SetupRecord(member.identity, outcome, partial_only=partial_only))

    def _consume(self) -> tuple[SetupRecord, ...]:
        self._ensure_open()
        self._consumed = True
        return self._buffer.snapshot()


class FullBuilder(_BaseBuilder[T]):
    """
    Collects setups for a full mock. Calls without a setup answer with the zero value of the
    member's result type.
    """

    __slots__ = ()

    def __init__(self, target: type[T]) -> None:
        target = _require_class(target)
        super().__init__(
            target,
            describe_interface(target),
            get_engine_config().builder_capacity,
        )

    def setup(self, ref: Any, value: Any) -> Self:
        member = self._resolve(ref)
        if member.async_shape is not None and not (
            inspect.isawaitable(value) or isinstance(value, Future)
        ):
            logging.warning(
                f"{member.display_name} is asynchronous; setup() stores {value!r} as the raw "
                f"result, use setup_async() to return a completed awaitable"
            )
        self._append(member, value)
        return self

    def setup_async(self, ref: Any, value: Any, shape: AsyncShape | None = None) -> Self:
        """
        Set up ``ref`` to return ``value`` already completed, as an awaitable or a resolved
        future. The shape follows the member's declared result unless ``shape`` is given.
        """
        member = self._resolve(ref)
        effective = shape or member.async_shape or AsyncShape.AWAITABLE
        self._append(member, completed(value, effective))
        return self

    def throws(self, ref: Any, exception: BaseException | type[BaseException]) -> Self:
        """
        Set up ``ref`` to raise ``exception``. An exception class is instantiated without
        arguments; the resulting object is raised as-is on every call.
        """
        member = self._resolve(ref)
        if isinstance(exception, type) and issubclass(exception, BaseException):
            exception = exception()
        elif not isinstance(exception, BaseException):
            raise TypeError(
                f"throws() expects an exception instance or class, got {type(exception).__name__}"
            )
        self._append(member, exception)
        return self

    def build(self) -> VerifiableMock[T]:
        setups = self._consume()
        return VerifiableMock(self._target, create_mock(self._target, setups, partial=False))


class PartialBuilder(_BaseBuilder[T]):
    """
    Collects setups for a partial mock. Only members passed to ``only`` are implemented; any
    other call raises ``MemberNotImplementedError``.
    """

    __slots__ = ()

    def __init__(self, target: type[T]) -> None:
        target = _require_class(target)
        super().__init__(
            target,
            describe_interface(target),
            get_engine_config().partial_builder_capacity,
        )

    def only(self, ref: Any, value: Any) -> Self:
        member = self._resolve(ref)
        self._append(member, value, partial_only=True)
        return self

    def build(self) -> VerifiableMock[T]:
        setups = self._consume()
        return VerifiableMock(self._target, create_mock(self._target, setups, partial=True))


class StaticBuilder(_BaseBuilder[Any]):
    """
    Collects setups for the static surface of a type: static methods, class methods and
    class attributes. Members without a setup delegate to the real type.
    """

    __slots__ = ()

    def __init__(self, target: type) -> None:
        target = _require_class(target)
        super().__init__(
            target,
            describe_static_surface(target),
            get_engine_config().builder_capacity,
        )

    def returns(self, ref: Any, value: Any) -> Self:
        member = self._resolve(ref)
        self._append(member, value)
        return self

    def build(self) -> StaticMock:
        setups = self._consume()
        return StaticMock(self._target, create_static_mock(self._target, setups))
