from __future__ import annotations

import logging
from typing import Any

from double_engine.dispatch import DispatchContract
from double_engine.internal.proxies.registry import (
    ProxyRegistry,
    ProxySelection,
    build_proxy_registry,
)
from double_engine.model.errors import ProxyUnavailable


# :: FeatureFlow | type=feature_start | name=proxy_creation
def create_proxy(
    *,
    target: type,
    instance: DispatchContract,
    registry: ProxyRegistry | None = None,
) -> Any:
    """
    Produce the substitute object for one built mock.

    Parameters:
      - target: the mocked type
      - instance: the dispatch contract the substitute forwards every call to
      - registry: test seam. When omitted the current registry snapshot is used.

    Raises:
        ProxyUnavailable: No factory could produce a substitute, the factory raised, or it
            returned ``None``.
    """
    if registry is None:
        registry = build_proxy_registry()

    selection: ProxySelection = registry.select(target)
    logging.debug(f"proxy factory for {selection.target_key}: {selection.origin}")

    try:
        proxy = selection.factory(instance=instance, target=target)
    except ProxyUnavailable:
        raise
    except Exception as e:
        raise ProxyUnavailable(
            f"{selection.origin} proxy factory for {selection.target_key} failed: {e}"
        ) from e

    if proxy is None:
        raise ProxyUnavailable(
            f"{selection.origin} proxy factory for {selection.target_key} returned None"
        )
    return proxy
