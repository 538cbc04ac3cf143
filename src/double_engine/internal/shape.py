from __future__ import annotations

import inspect
from dataclasses import dataclass

from double_engine.internal.members import (
    MemberDescriptor,
    describe_interface,
    result_shape,
    safe_signature,
    type_hints,
)
from double_engine.model.errors import ShapeMismatch
from double_engine.model.keys import MemberKind

_MISSING = object()


@dataclass(frozen=True, slots=True)
class ShapeReport:
    """
    Outcome of comparing an interface with a real class that claims to implement it.

    Each mismatch list holds one human readable line per offending member.
    """

    interface: type
    real: type
    missing: tuple[str, ...] = ()
    kind_mismatches: tuple[str, ...] = ()
    parameter_mismatches: tuple[str, ...] = ()
    async_mismatches: tuple[str, ...] = ()

    @property
    def mismatches(self) -> tuple[str, ...]:
        return self.missing + self.kind_mismatches + self.parameter_mismatches + self.async_mismatches

    @property
    def ok(self) -> bool:
        return not self.mismatches

    def pretty(self) -> str:
        header = f"{self.interface.__qualname__} vs {self.real.__qualname__}"
        if self.ok:
            return f"{header}: shapes match"
        lines = [f"{header}: {len(self.mismatches)} mismatch(es)"]
        lines.extend(f"  - {m}" for m in self.mismatches)
        return "\n".join(lines)


def _parameter_names(sig: inspect.Signature | None) -> tuple[str, ...] | None:
    if sig is None:
        return None
    return tuple(sig.parameters)


def _declared(real: type, name: str) -> object:
    # class dicts only; the metaclass (type.__call__) is not part of the instance surface
    for klass in real.__mro__:
        if name in vars(klass):
            return vars(klass)[name]
    return _MISSING


def _real_shape(raw: object) -> tuple[MemberKind | None, object, bool]:
    """
    Kind of a raw class attribute, the callable behind it and whether that callable takes
    a receiver as its first parameter.
    """
    match raw:
        case property():
            return MemberKind.PROPERTY, raw.fget, True
        case staticmethod():
            return MemberKind.METHOD, raw.__func__, False
        case classmethod():
            return MemberKind.METHOD, raw.__func__, True
        case _ if inspect.isfunction(raw):
            return MemberKind.METHOD, raw, True
        case _:
            return None, raw, False


def _parameter_mismatch(
    name: str, wanted: MemberDescriptor, func: object, receiver: bool
) -> str | None:
    real_params = _parameter_names(safe_signature(func))
    wanted_params = _parameter_names(wanted.signature)
    if real_params is None or wanted_params is None:
        return None
    if receiver:
        real_params = real_params[1:]
    if real_params == wanted_params:
        return None
    return (
        f"Method {name} takes ({', '.join(real_params)}) but the interface declares "
        f"({', '.join(wanted_params)})"
    )


def _async_mismatch(name: str, wanted: MemberDescriptor, func: object) -> str | None:
    _, real_async = result_shape(func, type_hints(func))
    if (wanted.async_shape is None) == (real_async is None):
        return None
    wanted_mode = "sync" if wanted.async_shape is None else "async"
    real_mode = "sync" if real_async is None else "async"
    return f"Method {name} is {real_mode} but the interface declares it {wanted_mode}"


# :: FeatureFlow | type=feature_start | name=shape_check
def check_shape(interface: type, real: type) -> ShapeReport:
    """
    Compare every member of ``interface`` with what ``real`` declares under the same name.

    Checked per member: presence, kind (method or property), parameter names in order and
    whether the result is produced synchronously. Overloaded members are checked against
    their implementation only for presence, kind and sync/async.
    """
    table = describe_interface(interface)
    missing: list[str] = []
    kinds: list[str] = []
    parameters: list[str] = []
    asyncs: list[str] = []

    for name, group in table.groups.items():
        wanted = group.variants[0]
        label = "Property" if wanted.kind is MemberKind.PROPERTY else "Method"

        raw = _declared(real, name)
        if raw is _MISSING:
            missing.append(f"{label} {name} exists in the interface but not in {real.__qualname__}")
            continue

        real_kind, func, receiver = _real_shape(raw)
        if real_kind is not wanted.kind:
            found = real_kind.value if real_kind is not None else type(raw).__name__
            kinds.append(f"{label} {name} is a {found} on {real.__qualname__}")
            continue

        if wanted.kind is not MemberKind.METHOD:
            continue

        if not group.overloaded:
            problem = _parameter_mismatch(name, wanted, func, receiver)
            if problem is not None:
                parameters.append(problem)

        problem = _async_mismatch(name, wanted, func)
        if problem is not None:
            asyncs.append(problem)

    return ShapeReport(
        interface=interface,
        real=real,
        missing=tuple(missing),
        kind_mismatches=tuple(kinds),
        parameter_mismatches=tuple(parameters),
        async_mismatches=tuple(asyncs),
    )


def assert_matches_real(interface: type, real: type) -> ShapeReport:
    """
    Raises:
        ShapeMismatch: ``real`` has drifted from ``interface``; the message lists every
            mismatch.
    """
    report = check_shape(interface, real)
    if not report.ok:
        raise ShapeMismatch(report.pretty(), mismatches=report.mismatches)
    return report
