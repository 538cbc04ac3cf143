from __future__ import annotations

from typing import Any, Mapping, Protocol

from double_engine.dispatch import DispatchContract
from double_engine.internal.proxies.dynamic import create_dynamic_proxy


class ProxyFactory(Protocol):
    def __call__(self, *, instance: DispatchContract, target: type) -> Any: ...


DEFAULT_PROXY_FACTORY_ID = "dynamic"

BUILTIN_PROXY_FACTORIES: Mapping[str, ProxyFactory] = {
    DEFAULT_PROXY_FACTORY_ID: create_dynamic_proxy,
}
