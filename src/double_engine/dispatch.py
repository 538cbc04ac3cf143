from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from double_engine.model.errors import MockDisposed
from double_engine.model.keys import MemberIdentity
from double_engine.model.setup import SetupRecord

if TYPE_CHECKING:
    from double_engine.internal.members import MemberDescriptor

# Attribute under which a substitute object keeps its reference to the backing contract.
INSTANCE_ATTR = "_double_instance"


class DispatchContract(ABC):
    """
    What a substitute object needs from the engine to answer an intercepted call.

    A substitute must call ``record_call`` before ``try_get_setup`` on every call, so that
    the ledger also holds calls whose outcome is an exception. ``dispatch`` does exactly
    that and is the intended entry point for generated substitutes.
    """

    @abstractmethod
    def record_call(self, identity: MemberIdentity, arguments: tuple[Any, ...]) -> None: ...

    @abstractmethod
    def try_get_setup(self, identity: MemberIdentity) -> SetupRecord | None: ...

    @property
    @abstractmethod
    def is_partial_mode(self) -> bool: ...

    @abstractmethod
    def fallback(
        self,
        member: MemberDescriptor,
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
    ) -> Any:
        """
        Produce the outcome of a call that matched no setup.
        """
        raise NotImplementedError


# :: FeatureFlow | type=feature_start | name=call_dispatch
def dispatch(
    contract: DispatchContract | None,
    member: MemberDescriptor,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
) -> Any:
    """
    Handle one intercepted call: record it, then answer from the matching setup or the
    contract's fallback policy.

    Raises:
        MockDisposed: The substitute was detached from its mock.
        TypeError: The arguments do not fit the member signature (nothing is recorded).
    """
    if contract is None:
        raise MockDisposed(f"{member.display_name}: the mock backing this object was disposed")

    identity = member.identity
    contract.record_call(identity, member.bind(args, kwargs))

    setup = contract.try_get_setup(identity)
    if setup is None:
        logging.debug(f"no setup for {identity.display_name}; applying fallback")
        return contract.fallback(member, args, kwargs)
    return setup.resolve()
