from __future__ import annotations

import asyncio
import inspect
import typing
from abc import ABC
from collections.abc import Awaitable, Coroutine, Iterator, Mapping, Sequence
from concurrent.futures import Future
from dataclasses import dataclass, field
from functools import cache
from typing import Any, Generic, Protocol

from typing_extensions import get_overloads

from double_engine.model.errors import InvalidReference
from double_engine.model.keys import MemberIdentity, MemberKind
from double_engine.model.setup import AsyncShape

_SKIPPED_BASES = (object, Protocol, Generic, ABC)
# dunders an interface may declare as part of its contract
PROTOCOL_DUNDERS = frozenset(
    {
        "__call__",
        "__iter__",
        "__len__",
        "__contains__",
        "__getitem__",
        "__enter__",
        "__exit__",
        "__aenter__",
        "__aexit__",
    }
)
_AWAITABLE_ORIGINS: tuple[Any, ...] = (Awaitable, Coroutine, asyncio.Future)
_UNCHECKED_PARAM_KINDS = (
    inspect.Parameter.VAR_POSITIONAL,
    inspect.Parameter.VAR_KEYWORD,
)


def safe_signature(obj: Any) -> inspect.Signature | None:
    try:
        return inspect.signature(obj)
    except (TypeError, ValueError):
        return None


def type_hints(obj: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(obj)
    except (NameError, TypeError, AttributeError, SyntaxError):
        return {}


def _drop_first_parameter(sig: inspect.Signature) -> inspect.Signature:
    params = list(sig.parameters.values())[1:]
    return sig.replace(parameters=params)


def _produced(hint: Any) -> Any:
    # get_type_hints turns "-> None" into NoneType
    return None if hint is type(None) else hint


def result_shape(func: Any, hints: Mapping[str, Any]) -> tuple[Any, AsyncShape | None]:
    """
    Work out what a member ultimately produces and whether it is produced asynchronously.

    Returns the hint of the produced value (``None`` when nothing is produced) and the async
    shape it is delivered in, or ``None`` for a synchronous result.
    """
    ret = hints.get("return")
    if inspect.iscoroutinefunction(func):
        return _produced(ret), AsyncShape.AWAITABLE

    origin = typing.get_origin(ret) or ret
    args = typing.get_args(ret)
    inner = args[-1] if args else None
    if origin is Future:
        return _produced(inner), AsyncShape.FUTURE
    if origin in _AWAITABLE_ORIGINS:
        return _produced(inner), AsyncShape.AWAITABLE
    return _produced(ret), None


@dataclass(frozen=True, slots=True)
class MemberDescriptor:
    """
    Everything the engine knows about one member: its identity, its call signature and the
    shape of its result.

    ``signature`` excludes the receiver, so recorded argument positions match the declared
    parameter order as a caller sees it. ``origin`` is the real callable for static members
    and is ``None`` for interface members.
    """

    identity: MemberIdentity
    name: str
    kind: MemberKind
    source: Any
    signature: inspect.Signature | None = None
    result_hint: Any = None
    async_shape: AsyncShape | None = None
    param_hints: Mapping[str, Any] = field(default_factory=dict)
    origin: Any = None

    @property
    def display_name(self) -> str:
        return self.identity.display_name

    def bind(self, args: Sequence[Any], kwargs: Mapping[str, Any]) -> tuple[Any, ...]:
        """
        Normalize call arguments into one tuple in declared parameter order.

        Raises TypeError when the arguments do not fit the signature, exactly as calling
        the real member would.
        """
        if self.signature is None:
            return tuple(args) + tuple(kwargs.values())
        bound = self.signature.bind(*args, **kwargs)
        bound.apply_defaults()
        return tuple(bound.arguments.values())

    def accepts(self, args: Sequence[Any], kwargs: Mapping[str, Any]) -> bool:
        if self.signature is None:
            return True
        try:
            bound = self.signature.bind(*args, **kwargs)
        except TypeError:
            return False

        for name, value in bound.arguments.items():
            if self.signature.parameters[name].kind in _UNCHECKED_PARAM_KINDS:
                continue
            hint = self.param_hints.get(name)
            if hint is None or hint is Any or typing.get_origin(hint) is not None:
                continue
            if not isinstance(hint, type):
                continue
            try:
                if not isinstance(value, hint):
                    return False
            except TypeError:
                # non runtime-checkable protocols cannot be tested; accept them
                continue
        return True


@dataclass(frozen=True, slots=True)
class MemberGroup:
    """
    All descriptors sharing one member name. More than one variant means the member is
    overloaded and a call is routed to the first variant that accepts its arguments.
    """

    name: str
    variants: tuple[MemberDescriptor, ...]
    overloaded: bool = False

    def select(self, args: Sequence[Any], kwargs: Mapping[str, Any]) -> MemberDescriptor:
        if not self.overloaded:
            return self.variants[0]
        for variant in self.variants:
            if variant.accepts(args, kwargs):
                return variant
        raise TypeError(f"no overload of {self.name}() accepts the given arguments")


def _reference_key(ref: Any) -> Any:
    if isinstance(ref, (staticmethod, classmethod)) or inspect.ismethod(ref):
        return ref.__func__
    return ref


@dataclass(frozen=True, slots=True)
class MemberTable:
    """
    Lookup of every mockable member of one type, keyed by name, by declaring object and by
    identity.
    """

    owner: type
    groups: Mapping[str, MemberGroup]
    by_source: Mapping[Any, MemberDescriptor | MemberGroup]
    by_identity: Mapping[MemberIdentity, MemberDescriptor]

    @classmethod
    def build(
        cls,
        owner: type,
        groups: Sequence[MemberGroup],
        sources: Mapping[Any, MemberDescriptor | MemberGroup],
    ) -> MemberTable:
        by_identity = {v.identity: v for g in groups for v in g.variants}
        return cls(
            owner=owner,
            groups={g.name: g for g in groups},
            by_source=dict(sources),
            by_identity=by_identity,
        )

    def __iter__(self) -> Iterator[MemberDescriptor]:
        for group in self.groups.values():
            yield from group.variants

    def describe(self, identity: MemberIdentity) -> MemberDescriptor | None:
        return self.by_identity.get(identity)

    def resolve(self, ref: Any) -> MemberDescriptor:
        """
        Resolve a member reference into exactly one descriptor.

        Raises:
            InvalidReference: The reference is not declared on the owner, is private, or
                names an overloaded member without picking one variant.
        """
        owner_name = self.owner.__qualname__
        match ref:
            case MemberIdentity():
                found = self.by_identity.get(ref)
                if found is None:
                    raise InvalidReference(
                        f"{ref.display_name!r} is not a member of {owner_name}",
                        owner=self.owner,
                        reference=ref,
                    )
                return found

            case str():
                if ref.startswith("_") and ref not in PROTOCOL_DUNDERS:
                    raise InvalidReference(
                        f"private member {ref!r} of {owner_name} cannot be mocked",
                        owner=self.owner,
                        reference=ref,
                    )
                group = self.groups.get(ref)
                if group is None:
                    raise InvalidReference(
                        f"{owner_name} has no mockable member {ref!r}",
                        owner=self.owner,
                        reference=ref,
                    )
                return self._only_variant(group, ref)

            case _:
                try:
                    found_any = self.by_source.get(_reference_key(ref))
                except TypeError:
                    found_any = None

                if isinstance(found_any, MemberGroup):
                    return self._only_variant(found_any, ref)
                if found_any is not None:
                    return found_any

                # bound builtin class methods (datetime.now) have no __func__ to key on
                if getattr(ref, "__self__", None) is self.owner and hasattr(ref, "__name__"):
                    return self.resolve(ref.__name__)

                raise InvalidReference(
                    f"{ref!r} does not resolve to a member declared on {owner_name}",
                    owner=self.owner,
                    reference=ref,
                )

    def _only_variant(self, group: MemberGroup, ref: Any) -> MemberDescriptor:
        if group.overloaded:
            raise InvalidReference(
                f"{self.owner.__qualname__}.{group.name} is overloaded; reference one of its "
                f"overloads instead",
                owner=self.owner,
                reference=ref,
            )
        return group.variants[0]


def describe_function(
    owner: type,
    name: str,
    func: Any,
    *,
    receiver: bool = True,
    display_name: str | None = None,
    origin: Any = None,
) -> MemberDescriptor:
    sig = safe_signature(func)
    call_sig = _drop_first_parameter(sig) if sig is not None and receiver else sig
    hints = type_hints(func)
    result_hint, shape = result_shape(func, hints)
    param_hints = {k: v for k, v in hints.items() if k != "return"}

    signature_text = str(call_sig) if call_sig is not None else ""
    identity = MemberIdentity.for_member(
        owner,
        name,
        signature_text=signature_text,
        kind=MemberKind.METHOD,
        display_name=display_name or name,
    )
    return MemberDescriptor(
        identity=identity,
        name=name,
        kind=MemberKind.METHOD,
        source=func,
        signature=call_sig,
        result_hint=result_hint,
        async_shape=shape,
        param_hints=param_hints,
        origin=origin,
    )


def describe_property(owner: type, name: str, prop: property) -> MemberDescriptor:
    hints = type_hints(prop.fget) if prop.fget is not None else {}
    result_hint, shape = result_shape(prop.fget, hints)
    identity = MemberIdentity.for_member(owner, name, kind=MemberKind.PROPERTY)
    return MemberDescriptor(
        identity=identity,
        name=name,
        kind=MemberKind.PROPERTY,
        source=prop,
        signature=inspect.Signature(),
        result_hint=result_hint,
        async_shape=shape,
    )


def _public_attributes(target: type) -> dict[str, Any]:
    raw_members: dict[str, Any] = {}
    for klass in reversed(target.__mro__):
        if klass in _SKIPPED_BASES:
            continue
        for name, raw in vars(klass).items():
            if name.startswith("_") and name not in PROTOCOL_DUNDERS:
                continue
            raw_members[name] = raw
    return raw_members


# :: FeatureFlow | type=feature_start | name=member_discovery
@cache
def describe_interface(target: type) -> MemberTable:
    """
    Enumerate the instance surface of ``target`` once: public functions (including each
    ``@overload`` variant), properties, protocol dunders such as ``__call__`` and abstract
    static or class methods declared anywhere in its MRO.
    """
    if not inspect.isclass(target):
        raise TypeError(f"expected a class, got {type(target).__name__}")

    groups: list[MemberGroup] = []
    sources: dict[Any, MemberDescriptor | MemberGroup] = {}

    for name, raw in _public_attributes(target).items():
        match raw:
            case property():
                desc = describe_property(target, name, raw)
                groups.append(MemberGroup(name=name, variants=(desc,)))
                sources[raw] = desc

            case staticmethod() | classmethod():
                # concrete ones are inherited as-is; abstract ones are forwarded per instance
                if not getattr(raw, "__isabstractmethod__", False):
                    continue
                desc = describe_function(
                    target, name, raw.__func__, receiver=isinstance(raw, classmethod)
                )
                groups.append(MemberGroup(name=name, variants=(desc,)))
                sources[raw.__func__] = desc

            case _ if inspect.isfunction(raw):
                overloads = get_overloads(raw)
                if not overloads:
                    desc = describe_function(target, name, raw)
                    groups.append(MemberGroup(name=name, variants=(desc,)))
                    sources[raw] = desc
                    continue

                variants: list[MemberDescriptor] = []
                for variant in overloads:
                    sig = safe_signature(variant)
                    shown = f"{name}{_drop_first_parameter(sig)}" if sig else name
                    desc = describe_function(target, name, variant, display_name=shown)
                    variants.append(desc)
                    sources[variant] = desc
                group = MemberGroup(name=name, variants=tuple(variants), overloaded=True)
                groups.append(group)
                sources[raw] = group

            case _:
                continue

    return MemberTable.build(target, groups, sources)


class MemberRefs:
    """
    Attribute namespace of the member identities of one type.

    ``Mock.refs(UserRepository).get_by_id`` is the identity constant for ``get_by_id``.
    """

    __slots__ = ("_table",)

    def __init__(self, table: MemberTable) -> None:
        self._table = table

    def __getattr__(self, name: str) -> MemberIdentity:
        if name.startswith("_") and name not in self._table.groups:
            raise AttributeError(name)
        return self._table.resolve(name).identity

    def __dir__(self) -> list[str]:
        return sorted(self._table.groups)

    def overloads(self, name: str) -> tuple[MemberIdentity, ...]:
        group = self._table.groups.get(name)
        if group is None:
            raise InvalidReference(
                f"{self._table.owner.__qualname__} has no mockable member {name!r}",
                owner=self._table.owner,
                reference=name,
            )
        return tuple(v.identity for v in group.variants)


@cache
def member_refs(target: type) -> MemberRefs:
    return MemberRefs(describe_interface(target))
