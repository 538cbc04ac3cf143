from __future__ import annotations

import functools
import inspect
from collections.abc import Callable
from functools import cache
from typing import Any

from double_engine.dispatch import INSTANCE_ATTR, DispatchContract, dispatch
from double_engine.internal.members import MemberDescriptor, MemberGroup, describe_interface
from double_engine.internal.static_wrapper import describe_static_surface
from double_engine.model.errors import ProxyUnavailable
from double_engine.model.keys import MemberKind


def _init(self: Any, instance: DispatchContract) -> None:
    object.__setattr__(self, INSTANCE_ATTR, instance)


def _contract(proxy: Any) -> DispatchContract | None:
    return object.__getattribute__(proxy, INSTANCE_ATTR)


def _method_forwarder(group: MemberGroup) -> Callable[..., Any]:
    def forward(self: Any, *args: Any, **kwargs: Any) -> Any:
        member = group.select(args, kwargs)
        return dispatch(_contract(self), member, args, kwargs)

    first = group.variants[0]
    if group.overloaded:
        forward.__name__ = group.name
        forward.__doc__ = getattr(first.source, "__doc__", None)
    else:
        # __dict__ is left alone: it would carry __isabstractmethod__ over
        functools.update_wrapper(forward, first.source, updated=())
        if first.signature is not None:
            forward.__signature__ = first.signature.replace(
                parameters=[
                    inspect.Parameter("self", inspect.Parameter.POSITIONAL_ONLY),
                    *first.signature.parameters.values(),
                ]
            )
    return forward


def _property_forwarder(member: MemberDescriptor) -> property:
    def read(self: Any) -> Any:
        return dispatch(_contract(self), member, (), {})

    read.__name__ = member.name
    return property(read, doc=getattr(member.source, "__doc__", None))


def _repr(self: Any) -> str:
    contract = _contract(self)
    state = "disposed" if contract is None else "active"
    return f"<{type(self).__qualname__} ({state})>"


# :: FeatureFlow | type=feature_start | name=dynamic_proxy_synthesis
@cache
def synthesize_proxy_class(target: type) -> type:
    """
    Build, once per target, a subclass of ``target`` whose public methods and properties
    forward into ``dispatch``.

    Raises:
        ProxyUnavailable: The target cannot be subclassed or keeps abstract members the
            proxy does not cover.
    """
    if getattr(target, "__final__", False):
        raise ProxyUnavailable(f"{target.__qualname__} is final and cannot be substituted")

    table = describe_interface(target)
    namespace: dict[str, Any] = {
        "__slots__": (INSTANCE_ATTR,),
        "__init__": _init,
        "__repr__": _repr,
        "__module__": target.__module__,
    }
    for name, group in table.groups.items():
        if group.variants[0].kind is MemberKind.PROPERTY:
            namespace[name] = _property_forwarder(group.variants[0])
        else:
            namespace[name] = _method_forwarder(group)

    try:
        proxy_cls = type(f"{target.__name__}Double", (target,), namespace)
    except TypeError as e:
        raise ProxyUnavailable(f"cannot subclass {target.__qualname__}: {e}") from e

    remaining = sorted(getattr(proxy_cls, "__abstractmethods__", ()))
    if remaining:
        raise ProxyUnavailable(
            f"{target.__qualname__} keeps abstract members a proxy cannot cover: {remaining}"
        )
    return proxy_cls


@cache
def synthesize_static_proxy_class(target: type) -> type:
    """
    Build, once per target, the accessor class behind ``StaticMock.object``: one forwarding
    method per static or class method and one read-only property per class attribute.
    """
    table = describe_static_surface(target)
    namespace: dict[str, Any] = {
        "__slots__": (INSTANCE_ATTR,),
        "__init__": _init,
        "__repr__": _repr,
        "__module__": target.__module__,
    }
    for name, group in table.groups.items():
        member = group.variants[0]
        if member.kind is MemberKind.ATTRIBUTE:
            namespace[name] = _property_forwarder(member)
        else:
            namespace[name] = _method_forwarder(group)

    return type(f"{target.__name__}StaticDouble", (), namespace)


def create_dynamic_proxy(*, instance: DispatchContract, target: type) -> Any:
    """
    Builtin proxy factory: instantiate the synthesized subclass of ``target``.
    """
    proxy_cls = synthesize_proxy_class(target)
    try:
        return proxy_cls(instance)
    except TypeError as e:
        raise ProxyUnavailable(f"cannot instantiate a proxy of {target.__qualname__}: {e}") from e
