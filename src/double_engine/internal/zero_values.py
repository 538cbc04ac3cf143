from __future__ import annotations

import collections.abc as cabc
import inspect
import types
import typing
from collections.abc import Callable
from typing import Any

from double_engine.config import ZeroValuePolicy, get_engine_config
from double_engine.model.errors import ZeroValueUnavailable

_BUILTIN_ZEROS: dict[Any, Callable[[], Any]] = {
    int: int,
    float: float,
    complex: complex,
    bool: bool,
    str: str,
    bytes: bytes,
    bytearray: bytearray,
    list: list,
    dict: dict,
    set: set,
    frozenset: frozenset,
    tuple: tuple,
    cabc.Sequence: tuple,
    cabc.MutableSequence: list,
    cabc.Mapping: dict,
    cabc.MutableMapping: dict,
    cabc.Set: frozenset,
    cabc.MutableSet: set,
    cabc.Collection: tuple,
    cabc.Iterable: tuple,
}

_registered: dict[type, Callable[[], Any]] = {}


def register_default(tp: type, value: Any) -> None:
    """
    Register the value an unmatched call on a full mock returns for result type ``tp``.

    ``value`` may be a zero-argument callable (called once per fallback, so mutable
    defaults are not shared between calls) or a plain value returned as-is. Registrations
    also cover subclasses of ``tp``.
    """
    if not inspect.isclass(tp):
        raise TypeError(f"defaults are registered per class, got {tp!r}")
    _registered[tp] = value if callable(value) else (lambda: value)


def unregister_default(tp: type) -> None:
    _registered.pop(tp, None)


def _is_optional(hint: Any) -> bool:
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        return type(None) in typing.get_args(hint)
    return False


def _registered_factory(origin: Any) -> Callable[[], Any] | None:
    if not inspect.isclass(origin):
        return None
    for klass in origin.__mro__:
        factory = _registered.get(klass)
        if factory is not None:
            return factory
    return None


def zero_value_for(hint: Any, *, policy: ZeroValuePolicy | None = None) -> Any:
    """
    Resolve the zero value of a result type hint.

    Order: no hint, ``None`` and ``Optional`` hints give ``None``; then registered
    defaults; then builtin zeros; then the zero value policy decides.

    Raises:
        ZeroValueUnavailable: Under ``ZeroValuePolicy.STRICT`` for a type with no zero.
    """
    if hint is None or hint is type(None) or hint is Any or isinstance(hint, str):
        return None
    if _is_optional(hint):
        return None

    origin = typing.get_origin(hint) or hint
    factory = _registered_factory(origin)
    if factory is not None:
        return factory()

    factory = _BUILTIN_ZEROS.get(origin)
    if factory is not None:
        return factory()

    effective = policy if policy is not None else get_engine_config().zero_value_policy
    if effective is ZeroValuePolicy.STRICT:
        raise ZeroValueUnavailable(
            f"no zero value for {hint!r}; register one with register_default()",
            hint=hint,
        )
    return None
