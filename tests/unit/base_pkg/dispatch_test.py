from __future__ import annotations

from typing import Any, Mapping, Sequence

import pytest

from double_engine import dispatch as uut
from double_engine.internal.members import describe_interface
from double_engine.model.errors import MockDisposed
from double_engine.model.keys import MemberIdentity
from double_engine.model.setup import SetupRecord
from unit.helpers.fixtures import User, UserRepository

# ==============================================================================
# BRANCH LEDGER: dispatch (C000)
# ==============================================================================
#
# ------------------------------------------------------------------------------
# ## dispatch(contract, member, args, kwargs)
#    (Module ID: C000, Function ID: F001)
# ------------------------------------------------------------------------------
# C000F001B0001: contract is None -> MockDisposed
# C000F001B0002: arguments do not bind -> TypeError, nothing recorded
# C000F001B0003: setup found, value -> recorded, value returned
# C000F001B0004: setup found, exception -> recorded, exception raised
# C000F001B0005: no setup -> recorded, fallback result returned
# C000F001B0006: no setup, fallback raises -> recorded, error propagates

_TABLE = describe_interface(UserRepository)
_GET = _TABLE.resolve("get_by_id")


class _Contract(uut.DispatchContract):
    def __init__(self, setups: list[SetupRecord], fallback_error: BaseException | None = None) -> None:
        self.setups = setups
        self.fallback_error = fallback_error
        self.events: list[str] = []
        self.recorded: list[tuple[MemberIdentity, tuple[Any, ...]]] = []

    @property
    def is_partial_mode(self) -> bool:
        return False

    def record_call(self, identity: MemberIdentity, arguments: tuple[Any, ...]) -> None:
        self.events.append("record")
        self.recorded.append((identity, arguments))

    def try_get_setup(self, identity: MemberIdentity) -> SetupRecord | None:
        self.events.append("lookup")
        return next((s for s in self.setups if s.identity == identity), None)

    def fallback(self, member: Any, args: Sequence[Any], kwargs: Mapping[str, Any]) -> Any:
        self.events.append("fallback")
        if self.fallback_error is not None:
            raise self.fallback_error
        return "zero"


def test_dispatch_without_contract_raises_mock_disposed() -> None:
    # Covers: C000F001B0001
    with pytest.raises(MockDisposed, match="get_by_id"):
        uut.dispatch(None, _GET, (1,), {})


def test_dispatch_bad_arguments_record_nothing() -> None:
    # Covers: C000F001B0002
    contract = _Contract([])
    with pytest.raises(TypeError):
        uut.dispatch(contract, _GET, (), {"nope": 1})
    assert contract.events == []


def test_dispatch_returns_setup_value_after_recording() -> None:
    # Covers: C000F001B0003
    user = User(id=1)
    contract = _Contract([SetupRecord(_GET.identity, user)])

    assert uut.dispatch(contract, _GET, (), {"user_id": 1}) is user
    assert contract.events == ["record", "lookup"]
    assert contract.recorded == [(_GET.identity, (1,))]


def test_dispatch_raises_setup_exception_after_recording() -> None:
    # Covers: C000F001B0004
    error = LookupError("gone")
    contract = _Contract([SetupRecord(_GET.identity, error)])

    with pytest.raises(LookupError) as ei:
        uut.dispatch(contract, _GET, (1,), {})
    assert ei.value is error
    assert contract.events == ["record", "lookup"]


def test_dispatch_uses_fallback_without_setup() -> None:
    # Covers: C000F001B0005
    contract = _Contract([])
    assert uut.dispatch(contract, _GET, (1,), {}) == "zero"
    assert contract.events == ["record", "lookup", "fallback"]


def test_dispatch_records_even_when_fallback_raises() -> None:
    # Covers: C000F001B0006
    contract = _Contract([], fallback_error=NotImplementedError("nope"))
    with pytest.raises(NotImplementedError):
        uut.dispatch(contract, _GET, (1,), {})
    assert contract.recorded == [(_GET.identity, (1,))]


def test_dispatch_contract_is_abstract() -> None:
    with pytest.raises(TypeError):
        uut.DispatchContract()  # type: ignore[abstract]
