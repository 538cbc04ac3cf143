from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from functools import cache
from importlib.metadata import entry_points
from typing import Literal, Mapping

from double_engine.internal.proxies.builtin import (
    BUILTIN_PROXY_FACTORIES,
    DEFAULT_PROXY_FACTORY_ID,
    ProxyFactory,
)
from double_engine.model.errors import ProxyUnavailable

PROXY_ENTRYPOINT_GROUP = "double_engine.proxies"

_REQUIRED_KEYWORDS = ("instance", "target")


class ProxyRegistryError(ProxyUnavailable):
    pass


class ProxyEntrypointError(ProxyRegistryError):
    pass


def proxy_key(target: type) -> str:
    """
    Registry key of a mocked type: ``module:Qualname``, the same form an entry point
    name takes.
    """
    return f"{target.__module__}:{target.__qualname__}"


@dataclass(frozen=True, slots=True)
class ProxySelection:
    """
    The proxy factory chosen for one mocked type.

    Attributes:
        target_key: ``module:Qualname`` of the mocked type.
        origin: Where the factory came from, in lookup order "runtime", "entrypoint",
            "builtin".
        factory: The selected factory.
    """

    target_key: str
    origin: Literal["runtime", "entrypoint", "builtin"]
    factory: ProxyFactory


@dataclass(frozen=True, slots=True)
class ProxyRegistry:
    """
    Proxy factories available when a mock is built.

    builtins: fallback factories shipped with the library, keyed by factory id
    externals: factories discovered via entry points, keyed by mocked type
    overrides: factories registered at runtime, keyed by mocked type
    """

    builtins: Mapping[str, ProxyFactory]
    externals: Mapping[str, ProxyFactory]
    overrides: Mapping[str, ProxyFactory]

    def select(self, target: type) -> ProxySelection:
        key = proxy_key(target)
        if key in self.overrides:
            return ProxySelection(target_key=key, origin="runtime", factory=self.overrides[key])
        if key in self.externals:
            return ProxySelection(target_key=key, origin="entrypoint", factory=self.externals[key])

        default = self.builtins.get(DEFAULT_PROXY_FACTORY_ID)
        if default is None:
            raise ProxyRegistryError(
                f"no proxy factory for {key} and no builtin {DEFAULT_PROXY_FACTORY_ID!r} factory"
            )
        return ProxySelection(target_key=key, origin="builtin", factory=default)


def _validate_proxy_factory_callable(
    factory_id: str, factory_obj: object, *, error: type[ProxyRegistryError] = ProxyRegistryError
) -> ProxyFactory:
    """
    Enforce a strict factory contract.

    A proxy factory is a callable (not a class) accepting keywordable ``instance`` and
    ``target`` parameters:
        def factory(*, instance: DispatchContract, target: type) -> T
    """
    if not callable(factory_obj):
        raise error(
            f"proxy factory '{factory_id}' must be callable; got {type(factory_obj).__name__}"
        )

    if inspect.isclass(factory_obj):
        raise error(
            f"proxy factory '{factory_id}' must be a callable factory; got class {factory_obj.__name__}"
        )

    try:
        sig = inspect.signature(factory_obj)
    except (TypeError, ValueError) as e:
        raise error(f"proxy factory '{factory_id}' has no inspectable signature") from e

    params = sig.parameters
    for keyword in _REQUIRED_KEYWORDS:
        if keyword not in params:
            raise error(
                f"proxy factory '{factory_id}' must accept keyword argument '{keyword}'. Signature={sig}"
            )
        if params[keyword].kind not in (
            inspect.Parameter.KEYWORD_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            raise error(
                f"proxy factory '{factory_id}' param '{keyword}' must be keywordable. Signature={sig}"
            )

    return factory_obj


@cache
def _load_entrypoint_proxy_factories(*, group: str) -> Mapping[str, ProxyFactory]:
    """
    Discover proxy factories from entry points, once per process.

    Determinism rules:
      - entry point name is the ``module:Qualname`` key of the mocked type
      - duplicate keys within the same group are an error
      - loaded object must be a valid ProxyFactory callable
    """
    factories: dict[str, ProxyFactory] = {}
    dupes: set[str] = set()

    for ep in entry_points().select(group=group):
        key = ep.name
        factory = _validate_proxy_factory_callable(key, ep.load(), error=ProxyEntrypointError)

        if key in factories:
            dupes.add(key)
            continue

        factories[key] = factory

    if dupes:
        raise ProxyEntrypointError(
            f"duplicate proxy keys found in entry points group '{group}': {sorted(dupes)}"
        )

    logging.debug(f"loaded {len(factories)} proxy factories from entry points group '{group}'")
    return factories


_runtime_factories: dict[str, ProxyFactory] = {}


def register_proxy_factory(target: type, factory: ProxyFactory) -> None:
    """
    Register ``factory`` as the substitute maker for ``target``. Runtime registrations take
    precedence over entry points and the builtin dynamic proxy.
    """
    key = proxy_key(target)
    _runtime_factories[key] = _validate_proxy_factory_callable(key, factory)


def unregister_proxy_factory(target: type) -> None:
    _runtime_factories.pop(proxy_key(target), None)


def build_proxy_registry() -> ProxyRegistry:
    """
    Snapshot the proxy factories currently available.

    This is the only place that knows about PROXY_ENTRYPOINT_GROUP.
    """
    return ProxyRegistry(
        builtins=BUILTIN_PROXY_FACTORIES,
        externals=_load_entrypoint_proxy_factories(group=PROXY_ENTRYPOINT_GROUP),
        overrides=dict(_runtime_factories),
    )
