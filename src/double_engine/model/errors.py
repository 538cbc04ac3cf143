from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class MockError(Exception):
    """
    Base error type for every failure raised by the engine itself.

    Exceptions configured through ``throws`` are never wrapped in this type; they reach
    the caller verbatim.
    """


class InvalidReference(MockError):
    """
    Raised when a member reference cannot be resolved to exactly one member of the owner.
    """

    def __init__(self, message: str, *, owner: type, reference: Any):
        super().__init__(message)
        self.owner = owner
        self.reference = reference


class VerificationFailed(MockError, AssertionError):
    """
    Raised when the recorded call count of a member does not satisfy an expectation.

    Attributes:
        member (str): Display name of the verified member.
        expected (int): The expected count (or minimum, see ``comparison``).
        actual (int): The recorded count.
        comparison (str): ``"exactly"`` or ``"at least"``.
    """

    def __init__(self, *, member: str, expected: int, actual: int, comparison: str = "exactly"):
        plural = "" if expected == 1 else "s"
        super().__init__(
            f"{member}: expected {comparison} {expected} call{plural}, got {actual}"
        )
        self.member = member
        self.expected = expected
        self.actual = actual
        self.comparison = comparison


class NoMatchingCall(MockError, AssertionError):
    """
    Raised when no recorded call satisfies an argument predicate.
    """

    def __init__(self, *, member: str, position: int, arg_type: type, calls: int):
        super().__init__(
            f"{member}: no call out of {calls} matched predicate for "
            f"{arg_type.__name__} argument at position {position}"
        )
        self.member = member
        self.position = position
        self.arg_type = arg_type
        self.calls = calls


class UnexpectedCalls(MockError, AssertionError):
    """
    Raised by ``verify_no_other_calls`` when called members were never verified.
    """

    def __init__(self, members: Sequence[str]):
        super().__init__(f"Unexpected calls: {', '.join(members)}")
        self.members = tuple(members)


class MemberNotImplementedError(MockError, NotImplementedError):
    """
    Raised when a partial mock receives a call for a member that was not set up.
    """

    def __init__(self, member: str, *, owner: str):
        super().__init__(f"{owner}.{member} is not mocked in partial mock")
        self.member = member
        self.owner = owner


class ProxyUnavailable(MockError):
    """
    Raised when no substitute object can be produced for a mocked type.
    """


class MockDisposed(MockError):
    """
    Raised when a disposed mock, or the substitute object it handed out, is used again.
    """


class BuilderConsumed(MockError):
    """
    Raised when a builder is used again after ``build()``.
    """


class ZeroValueUnavailable(MockError):
    """
    Raised under the strict zero value policy when an unmatched call returns a type that has
    neither a natural zero nor a registered default.
    """

    def __init__(self, message: str, *, hint: Any):
        super().__init__(message)
        self.hint = hint


class EngineConfigError(MockError, ValueError):
    pass


class ShapeMismatch(MockError, AssertionError):
    """
    Raised when an interface has drifted from the real class it stands in for.
    """

    def __init__(self, message: str, *, mismatches: Sequence[str]):
        super().__init__(message)
        self.mismatches = tuple(mismatches)
