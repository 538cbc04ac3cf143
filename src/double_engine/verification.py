from __future__ import annotations

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from typing_extensions import Self

from double_engine.internal.instance import MockInstance
from double_engine.internal.ledger import CallLedger
from double_engine.internal.members import MemberDescriptor, MemberTable
from double_engine.internal.static_wrapper import StaticWrapper
from double_engine.lifecycle import dispose_mock, dispose_static_mock
from double_engine.model.errors import (
    MockDisposed,
    NoMatchingCall,
    UnexpectedCalls,
    VerificationFailed,
)

T = TypeVar("T")
A = TypeVar("A")


def _non_negative(name: str, value: int) -> int:
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


class ArgHandle(Generic[A]):
    """
    Predicate check over one argument position of every recorded call of a member.
    """

    __slots__ = ("_ledger", "_member", "_position", "_arg_type")

    def __init__(
        self,
        ledger: CallLedger,
        member: MemberDescriptor,
        position: int,
        arg_type: type[A],
    ) -> None:
        self._ledger = ledger
        self._member = member
        self._position = position
        self._arg_type = arg_type

    def matching(self, predicate: Callable[[A], bool]) -> None:
        """
        Pass iff at least one recorded call has, at the bound position, a value of the bound
        type that satisfies ``predicate``; the member is then marked verified.

        Raises:
            NoMatchingCall: No recorded call qualifies.
        """
        identity = self._member.identity
        calls = self._ledger.call_arguments(identity)
        for arguments in calls:
            if self._position >= len(arguments):
                continue
            value = arguments[self._position]
            if isinstance(value, self._arg_type) and predicate(value):
                self._ledger.mark_verified(identity)
                return

        raise NoMatchingCall(
            member=self._member.display_name,
            position=self._position,
            arg_type=self._arg_type,
            calls=len(calls),
        )


class VerifyHandle:
    """
    Call count assertions bound to one member. Every passing assertion marks the member as
    verified; nothing here touches counts or argument history.
    """

    __slots__ = ("_ledger", "_member")

    def __init__(self, ledger: CallLedger, member: MemberDescriptor) -> None:
        self._ledger = ledger
        self._member = member

    @property
    def call_count(self) -> int:
        return self._ledger.call_count(self._member.identity)

    def _fail(self, expected: int, actual: int, comparison: str) -> VerificationFailed:
        return VerificationFailed(
            member=self._member.display_name,
            expected=expected,
            actual=actual,
            comparison=comparison,
        )

    def times(self, n: int) -> None:
        _non_negative("n", n)
        actual = self.call_count
        if actual != n:
            raise self._fail(n, actual, "exactly")
        self._ledger.mark_verified(self._member.identity)

    def once(self) -> None:
        self.times(1)

    def never(self) -> None:
        self.times(0)

    def at_least(self, n: int) -> None:
        _non_negative("n", n)
        actual = self.call_count
        if actual < n:
            raise self._fail(n, actual, "at least")
        self._ledger.mark_verified(self._member.identity)

    def with_argument(self, position: int = 0, arg_type: type[A] = object) -> ArgHandle[A]:
        _non_negative("position", position)
        return ArgHandle(self._ledger, self._member, position, arg_type)


class _Verifiable(Generic[T]):
    __slots__ = ("_target", "_disposed")

    def __init__(self, target: type) -> None:
        self._target = target
        self._disposed = False

    # overridden by the concrete mocks
    def _ledger(self) -> CallLedger:
        raise NotImplementedError

    def _members(self) -> MemberTable:
        raise NotImplementedError

    def _proxy(self) -> Any:
        raise NotImplementedError

    def _release(self) -> None:
        raise NotImplementedError

    def _ensure_active(self) -> None:
        if self._disposed:
            raise MockDisposed(f"mock of {self._target.__qualname__} was disposed")

    @property
    def target(self) -> type:
        return self._target

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def object(self) -> T:
        self._ensure_active()
        return self._proxy()

    def verify(self, ref: Any) -> VerifyHandle:
        """
        Bind a verification handle to the member ``ref`` refers to.

        Raises:
            InvalidReference: ``ref`` is not exactly one member of the mocked type.
        """
        self._ensure_active()
        return VerifyHandle(self._ledger(), self._members().resolve(ref))

    def verify_no_other_calls(self) -> None:
        """
        Raises:
            UnexpectedCalls: Some called member never passed a verification. Every such
                member is listed, in first-call order.
        """
        self._ensure_active()
        unverified = self._ledger().unverified_members()
        if unverified:
            raise UnexpectedCalls([i.display_name for i in unverified])

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._release()

    def __enter__(self) -> Self:
        self._ensure_active()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()


class VerifiableMock(_Verifiable[T]):
    """
    A built full or partial mock: the substitute object plus the verification surface over
    its call ledger.

    ``dispose()`` (or leaving a ``with`` block) detaches the substitute and hands the backing
    instance back to its pool; both the mock and the substitute are unusable afterwards.
    """

    __slots__ = ("_instance",)

    def __init__(self, target: type, instance: MockInstance) -> None:
        super().__init__(target)
        self._instance = instance

    @property
    def is_partial(self) -> bool:
        self._ensure_active()
        return self._instance.is_partial_mode

    def _ledger(self) -> CallLedger:
        return self._instance.ledger

    def _members(self) -> MemberTable:
        return self._instance.members

    def _proxy(self) -> Any:
        return self._instance.proxy

    def _release(self) -> None:
        dispose_mock(self._target, self._instance)

    def __repr__(self) -> str:
        mode = "partial" if self._instance.is_partial_mode else "full"
        return f"VerifiableMock({self._target.__qualname__}, {mode})"


class StaticMock(_Verifiable[Any]):
    """
    A built static mock. ``object`` mirrors the static surface of the wrapped type; members
    without a setup run the real implementation.
    """

    __slots__ = ("_wrapper",)

    def __init__(self, target: type, wrapper: StaticWrapper) -> None:
        super().__init__(target)
        self._wrapper = wrapper

    def _ledger(self) -> CallLedger:
        return self._wrapper.ledger

    def _members(self) -> MemberTable:
        return self._wrapper.members

    def _proxy(self) -> Any:
        return self._wrapper.proxy

    def _release(self) -> None:
        dispose_static_mock(self._wrapper)

    def __repr__(self) -> str:
        return f"StaticMock({self._target.__qualname__})"
