from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from double_engine.dispatch import DispatchContract
from double_engine.internal.ledger import CallLedger
from double_engine.internal.members import MemberDescriptor, MemberTable
from double_engine.internal.zero_values import zero_value_for
from double_engine.model.errors import MemberNotImplementedError
from double_engine.model.keys import MemberIdentity
from double_engine.model.setup import SetupRecord, completed

_INITIAL_SETUP_SLOTS = 32


class MockInstance(DispatchContract):
    """
    Mutable runtime state behind one built mock.

    Properties:
    - Setups: replaced wholesale by ``initialize``; never merged across builds.
    - Lookup: linear scan in setup order; the first record for an identity wins.
    - Ledger: every intercepted call is recorded, including calls that end in an exception.
    - Fallback: zero value in full mode, ``MemberNotImplementedError`` in partial mode.

    Instances are recycled through an ``InstancePool``; a rented instance keeps stale state
    until ``initialize`` is called.
    """

    __slots__ = ("_setups", "_setup_count", "_partial", "_members", "ledger", "proxy")

    def __init__(self) -> None:
        self._setups: list[SetupRecord | None] = [None] * _INITIAL_SETUP_SLOTS
        self._setup_count = 0
        self._partial = False
        self._members: MemberTable | None = None
        self.ledger = CallLedger()
        self.proxy: Any = None

    # -------------------------
    # lifecycle
    # -------------------------

    def initialize(
        self,
        setups: Sequence[SetupRecord],
        *,
        partial: bool,
        members: MemberTable,
    ) -> None:
        if len(setups) > len(self._setups):
            self._setups.extend([None] * (len(setups) - len(self._setups)))
        self._setups[: len(setups)] = setups
        for i in range(len(setups), self._setup_count):
            self._setups[i] = None
        self._setup_count = len(setups)
        self._partial = partial
        self._members = members
        self.ledger.clear()
        self.proxy = None

    def detach(self) -> None:
        """
        Drop every reference held for the last build so a pooled instance pins nothing.
        """
        for i in range(self._setup_count):
            self._setups[i] = None
        self._setup_count = 0
        self._members = None
        self.ledger.clear()
        self.proxy = None

    @property
    def members(self) -> MemberTable:
        if self._members is None:
            raise RuntimeError("mock instance used before initialize()")
        return self._members

    @property
    def setups(self) -> tuple[SetupRecord, ...]:
        return tuple(s for s in self._setups[: self._setup_count] if s is not None)

    # -------------------------
    # dispatch contract
    # -------------------------

    @property
    def is_partial_mode(self) -> bool:
        return self._partial

    def record_call(self, identity: MemberIdentity, arguments: tuple[Any, ...]) -> None:
        self.ledger.record(identity, arguments)

    def try_get_setup(self, identity: MemberIdentity) -> SetupRecord | None:
        for i in range(self._setup_count):
            setup = self._setups[i]
            if setup is None or setup.identity != identity:
                continue
            if self._partial and not setup.partial_only:
                continue
            return setup
        return None

    def fallback(
        self,
        member: MemberDescriptor,
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
    ) -> Any:
        if self._partial:
            raise MemberNotImplementedError(
                member.display_name, owner=self.members.owner.__qualname__
            )

        value = zero_value_for(member.result_hint)
        logging.debug(f"full mock fallback for {member.display_name}: {value!r}")
        if member.async_shape is not None:
            return completed(value, member.async_shape)
        return value
