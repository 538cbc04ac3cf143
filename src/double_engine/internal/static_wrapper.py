from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Mapping, Sequence
from functools import cache
from typing import Any

from double_engine.dispatch import DispatchContract
from double_engine.internal.ledger import CallLedger
from double_engine.internal.members import (
    MemberDescriptor,
    MemberGroup,
    MemberTable,
    describe_function,
)
from double_engine.model.keys import MemberIdentity, MemberKind
from double_engine.model.setup import SetupRecord


def _describe_attribute(owner: type, name: str) -> MemberDescriptor:
    return MemberDescriptor(
        identity=MemberIdentity.for_member(owner, name, kind=MemberKind.ATTRIBUTE),
        name=name,
        kind=MemberKind.ATTRIBUTE,
        source=None,
        signature=inspect.Signature(),
    )


# :: FeatureFlow | type=feature_start | name=static_surface_discovery
@cache
def describe_static_surface(target: type) -> MemberTable:
    """
    Enumerate the static surface of ``target`` once: static methods, class methods (Python
    and builtin) and public class attributes that are plain values.

    Instance methods, properties and other data descriptors are not part of the static
    surface and are skipped.
    """
    if not inspect.isclass(target):
        raise TypeError(f"expected a class, got {type(target).__name__}")

    groups: list[MemberGroup] = []
    sources: dict[Any, MemberDescriptor | MemberGroup] = {}

    for name in sorted(dir(target)):
        if name.startswith("_"):
            continue
        raw = inspect.getattr_static(target, name)

        match raw:
            case staticmethod():
                func = raw.__func__
                desc = describe_function(target, name, func, receiver=False, origin=func)
                sources[func] = desc

            case classmethod():
                bound = getattr(target, name)
                desc = describe_function(target, name, bound, receiver=False, origin=bound)
                sources[raw.__func__] = desc

            case types.ClassMethodDescriptorType():
                # resolved by name through the bound method's __self__
                bound = getattr(target, name)
                desc = describe_function(target, name, bound, receiver=False, origin=bound)

            case _ if callable(raw) or hasattr(type(raw), "__get__"):
                continue

            case _:
                desc = _describe_attribute(target, name)

        groups.append(MemberGroup(name=name, variants=(desc,)))

    return MemberTable.build(target, groups, sources)


class StaticWrapper(DispatchContract):
    """
    Dispatch contract of a static mock.

    Shares the setup lookup and ledger behavior of ``MockInstance``; there is no partial mode
    and an unmatched call is delegated to the real static member. Attributes are re-read from
    the type on every unmatched access.
    """

    __slots__ = ("_target", "_members", "_setups", "ledger", "proxy")

    def __init__(self, target: type, setups: Sequence[SetupRecord]) -> None:
        self._target = target
        self._members = describe_static_surface(target)
        self._setups: tuple[SetupRecord, ...] = tuple(setups)
        self.ledger = CallLedger()
        self.proxy: Any = None

    @property
    def target(self) -> type:
        return self._target

    @property
    def members(self) -> MemberTable:
        return self._members

    @property
    def setups(self) -> tuple[SetupRecord, ...]:
        return self._setups

    @property
    def is_partial_mode(self) -> bool:
        return False

    def record_call(self, identity: MemberIdentity, arguments: tuple[Any, ...]) -> None:
        self.ledger.record(identity, arguments)

    def try_get_setup(self, identity: MemberIdentity) -> SetupRecord | None:
        for setup in self._setups:
            if setup.identity == identity:
                return setup
        return None

    def fallback(
        self,
        member: MemberDescriptor,
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
    ) -> Any:
        logging.debug(f"static mock delegating {member.display_name} to {self._target.__qualname__}")
        if member.kind is MemberKind.ATTRIBUTE:
            return getattr(self._target, member.name)
        return member.origin(*args, **kwargs)

    def detach(self) -> None:
        self._setups = ()
        self.ledger.clear()
        self.proxy = None
