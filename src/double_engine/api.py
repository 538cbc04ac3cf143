from __future__ import annotations

from pathlib import Path
from typing import Any, TypeVar

from double_engine.builders import FullBuilder, PartialBuilder, StaticBuilder
from double_engine.config import EngineConfig, get_engine_config, set_engine_config
from double_engine.internal.members import MemberRefs, member_refs
from double_engine.internal.proxies.registry import (
    register_proxy_factory,
    unregister_proxy_factory,
)
from double_engine.internal.shape import ShapeReport, assert_matches_real, check_shape
from double_engine.internal.zero_values import register_default, unregister_default
from double_engine.model.errors import ProxyUnavailable

T = TypeVar("T")

__all__ = [
    "Mock",
    "ShapeReport",
    "assert_matches_real",
    "check_shape",
    "configure",
    "register_default",
    "register_proxy_factory",
    "unregister_default",
    "unregister_proxy_factory",
]


class Mock:
    """
    Entry points for building test doubles.

        repo = Mock.of(UserRepository).setup(UserRepository.get_by_id, user).build()
        repo.object.get_by_id(1)
        repo.verify(UserRepository.get_by_id).once()
    """

    __slots__ = ()

    @staticmethod
    def of(target: type[T]) -> FullBuilder[T]:
        """
        Start a full mock of ``target``: calls without a setup return a zero value.
        """
        return FullBuilder(target)

    @staticmethod
    def partial(target: type[T]) -> PartialBuilder[T]:
        """
        Start a partial mock of ``target``: calls without a setup raise
        ``MemberNotImplementedError``.
        """
        return PartialBuilder(target)

    @staticmethod
    def static(target: type) -> StaticBuilder:
        """
        Start a mock of the static surface of ``target``: calls without a setup run the real
        static member.
        """
        return StaticBuilder(target)

    @staticmethod
    def refs(target: type) -> MemberRefs:
        if not isinstance(target, type):
            raise ProxyUnavailable(f"only classes can be mocked, got {target!r}")
        return member_refs(target)


def configure(
    config: EngineConfig | str | Path | None = None, /, **changes: Any
) -> EngineConfig:
    """
    Replace the active engine config and return the previous one.

    ``config`` is a complete ``EngineConfig`` or the path of a TOML file to load one from;
    when omitted, ``changes`` are applied on top of the active config.

    Raises:
        EngineConfigError: A value is invalid or a key is unknown.
    """
    match config:
        case EngineConfig():
            new = config
        case str() | Path():
            new = EngineConfig.from_toml_file(config)
        case None:
            new = get_engine_config()
        case _:
            raise TypeError(f"configure() expects an EngineConfig or a path, got {config!r}")

    if changes:
        new = new.with_changes(**changes)
    return set_engine_config(new)
