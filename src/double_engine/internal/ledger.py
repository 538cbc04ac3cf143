from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from double_engine.model.keys import MemberIdentity


@dataclass(slots=True)
class CallLedger:
    """
    Per-member record of calls: a count, the ordered argument tuples, and the set of members
    that passed a verification.

    Counts and argument history are only ever appended to by ``record``; verification reads
    them and touches nothing but the verified set.
    """

    _counts: dict[MemberIdentity, int] = field(default_factory=dict)
    _arguments: dict[MemberIdentity, list[tuple[Any, ...]]] = field(default_factory=dict)
    _verified: set[MemberIdentity] = field(default_factory=set)

    def record(self, identity: MemberIdentity, arguments: tuple[Any, ...]) -> None:
        self._counts[identity] = self._counts.get(identity, 0) + 1
        self._arguments.setdefault(identity, []).append(arguments)

    def call_count(self, identity: MemberIdentity) -> int:
        return self._counts.get(identity, 0)

    def call_arguments(self, identity: MemberIdentity) -> tuple[tuple[Any, ...], ...]:
        return tuple(self._arguments.get(identity, ()))

    def mark_verified(self, identity: MemberIdentity) -> None:
        self._verified.add(identity)

    def is_verified(self, identity: MemberIdentity) -> bool:
        return identity in self._verified

    def called_members(self) -> tuple[MemberIdentity, ...]:
        return tuple(i for i, n in self._counts.items() if n > 0)

    def unverified_members(self) -> tuple[MemberIdentity, ...]:
        """
        Members with at least one call that never passed a verification, in first-call order.
        """
        return tuple(i for i in self.called_members() if i not in self._verified)

    def clear(self) -> None:
        self._counts.clear()
        self._arguments.clear()
        self._verified.clear()
