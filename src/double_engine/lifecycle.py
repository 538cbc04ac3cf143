from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from double_engine.dispatch import INSTANCE_ATTR
from double_engine.internal.instance import MockInstance
from double_engine.internal.members import describe_interface
from double_engine.internal.pool import pool_for
from double_engine.internal.proxies.dynamic import synthesize_static_proxy_class
from double_engine.internal.proxies.factory import create_proxy
from double_engine.internal.proxies.registry import ProxyRegistry
from double_engine.internal.static_wrapper import StaticWrapper
from double_engine.model.setup import SetupRecord


def _detach_proxy(proxy: Any) -> None:
    if proxy is not None and hasattr(proxy, INSTANCE_ATTR):
        object.__setattr__(proxy, INSTANCE_ATTR, None)


# :: FeatureFlow | type=feature_start | name=mock_build
def create_mock(
    target: type,
    setups: Sequence[SetupRecord],
    *,
    partial: bool,
    registry: ProxyRegistry | None = None,
) -> MockInstance:
    """
    Rent an instance for ``target``, load it with ``setups`` and wire a substitute to it.

    The returned instance holds the substitute in ``proxy``. When no substitute can be made
    the instance goes back to its pool before ``ProxyUnavailable`` propagates.
    """
    members = describe_interface(target)
    pool = pool_for(target, MockInstance)

    instance = pool.rent()
    instance.initialize(setups, partial=partial, members=members)
    try:
        proxy = create_proxy(target=target, instance=instance, registry=registry)
    except BaseException:
        instance.detach()
        pool.release(instance)
        raise

    instance.proxy = proxy
    return instance


def dispose_mock(target: type, instance: MockInstance) -> None:
    """
    Cut the substitute loose from ``instance`` and return the instance to its pool.
    """
    _detach_proxy(instance.proxy)
    instance.detach()
    released = pool_for(target, MockInstance).release(instance)
    logging.debug(f"disposed mock of {target.__qualname__} (pooled={released})")


def create_static_mock(target: type, setups: Sequence[SetupRecord]) -> StaticWrapper:
    wrapper = StaticWrapper(target, setups)
    wrapper.proxy = synthesize_static_proxy_class(target)(wrapper)
    return wrapper


def dispose_static_mock(wrapper: StaticWrapper) -> None:
    _detach_proxy(wrapper.proxy)
    wrapper.detach()
    logging.debug(f"disposed static mock of {wrapper.target.__qualname__}")
