from __future__ import annotations

import asyncio
from concurrent.futures import Future

import pytest

from double_engine.model import setup as uut
from double_engine.model.keys import MemberIdentity
from unit.helpers.fixtures import User, UserRepository

_GET = MemberIdentity.for_member(UserRepository, "get_by_id")

# ==============================================================================
# Case matrix
# ==============================================================================

_RECORD_CASES = [
    {
        "name": "plain value",
        "outcome": User(id=1),
        "is_exception": False,
        "is_async": False,
        "covers": ["C002M001B0001"],
    },
    {
        "name": "exception instance",
        "outcome": KeyError("missing"),
        "is_exception": True,
        "is_async": False,
        "covers": ["C002M001B0002"],
    },
    {
        "name": "completed awaitable",
        "outcome": uut.CompletedAwaitable(3),
        "is_exception": False,
        "is_async": True,
        "covers": ["C002M001B0003"],
    },
    {
        "name": "exception class is a value, not an exception",
        "outcome": KeyError,
        "is_exception": False,
        "is_async": False,
        "covers": ["C002M001B0004"],
    },
]


@pytest.mark.parametrize("case", [pytest.param(c, id=c["name"]) for c in _RECORD_CASES])
def test_setup_record_derived_flags(case: dict) -> None:
    record = uut.SetupRecord(_GET, case["outcome"])
    assert record.is_exception is case["is_exception"]
    assert record.is_async is case["is_async"]
    assert record.partial_only is False


def test_setup_record_resolve_returns_value_identity() -> None:
    user = User(id=1)
    assert uut.SetupRecord(_GET, user).resolve() is user


def test_setup_record_resolve_raises_same_exception_object() -> None:
    error = KeyError("missing")
    record = uut.SetupRecord(_GET, error)

    with pytest.raises(KeyError) as ei:
        record.resolve()
    assert ei.value is error


def _traceback_depth(exc: BaseException) -> int:
    depth, tb = 0, exc.__traceback__
    while tb is not None:
        depth, tb = depth + 1, tb.tb_next
    return depth


def test_setup_record_resolve_does_not_grow_traceback() -> None:
    error = KeyError("missing")
    record = uut.SetupRecord(_GET, error)

    depths = []
    for _ in range(3):
        with pytest.raises(KeyError):
            record.resolve()
        depths.append(_traceback_depth(error))

    assert depths == [depths[0]] * 3


def test_completed_awaitable_can_be_awaited_repeatedly() -> None:
    awaitable = uut.CompletedAwaitable("v")

    async def _twice() -> tuple[str, str]:
        return await awaitable, await awaitable

    assert asyncio.run(_twice()) == ("v", "v")
    assert awaitable.value == "v"
    assert repr(awaitable) == "CompletedAwaitable('v')"


@pytest.mark.parametrize(
    "shape, expected_type",
    [
        pytest.param(uut.AsyncShape.AWAITABLE, uut.CompletedAwaitable, id="awaitable"),
        pytest.param(uut.AsyncShape.FUTURE, Future, id="future"),
    ],
)
def test_completed_shapes(shape: uut.AsyncShape, expected_type: type) -> None:
    result = uut.completed(42, shape)
    assert isinstance(result, expected_type)
    if isinstance(result, Future):
        assert result.done()
        assert result.result() == 42
    else:
        assert result.value == 42


def test_completed_rejects_unknown_shape() -> None:
    with pytest.raises(ValueError, match="Unknown async shape"):
        uut.completed(1, "later")  # type: ignore[arg-type]
