from __future__ import annotations

import os
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, TypedDict

from typing_extensions import Self

from double_engine.internal.util.toml import dump_toml_to_str, load_toml_file, load_toml_text
from double_engine.model.errors import EngineConfigError

CONFIG_TOOL_SECTION = "double-engine"


class ZeroValuePolicy(str, Enum):
    """
    What a full mock returns for an unmatched call whose result type has no natural zero.

    NONE: return ``None``.
    STRICT: raise ``ZeroValueUnavailable`` unless a default was registered for the type.
    """

    NONE = "none"
    STRICT = "strict"


class EngineConfigMapping(TypedDict, total=False):
    """
    Mapping form of ``EngineConfig`` as it appears under ``[tool.double-engine]``.
    """

    pool_slots: int
    builder_capacity: int
    partial_builder_capacity: int
    zero_value_policy: str


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EngineConfigError(f"{name}: expected int, got {type(value).__name__}")
    if value < 1:
        raise EngineConfigError(f"{name}: must be >= 1, got {value}")
    return value


@dataclass(kw_only=True, frozen=True, slots=True)
class EngineConfig:
    """
    Engine-wide knobs.

    Attributes:
        pool_slots (int | None): Slots per mocked-type instance pool. ``None`` sizes pools
            from the CPU count.
        builder_capacity (int): Initial setup buffer size of full and static builders.
        partial_builder_capacity (int): Initial setup buffer size of partial builders.
        zero_value_policy (ZeroValuePolicy): Fallback for result types without a zero.
    """

    pool_slots: int | None = None
    builder_capacity: int = 32
    partial_builder_capacity: int = 8
    zero_value_policy: ZeroValuePolicy = ZeroValuePolicy.NONE

    def __post_init__(self) -> None:
        if self.pool_slots is not None:
            _positive_int("pool_slots", self.pool_slots)
        _positive_int("builder_capacity", self.builder_capacity)
        _positive_int("partial_builder_capacity", self.partial_builder_capacity)
        if not isinstance(self.zero_value_policy, ZeroValuePolicy):
            raise EngineConfigError(
                f"zero_value_policy: expected ZeroValuePolicy, got "
                f"{type(self.zero_value_policy).__name__}"
            )

    @property
    def effective_pool_slots(self) -> int:
        if self.pool_slots is not None:
            return self.pool_slots
        return (os.cpu_count() or 1) * 4

    # :: MechanicalOperation | type=serialization
    def to_mapping(self) -> EngineConfigMapping:
        mapping: EngineConfigMapping = {
            "builder_capacity": self.builder_capacity,
            "partial_builder_capacity": self.partial_builder_capacity,
            "zero_value_policy": self.zero_value_policy.value,
        }
        if self.pool_slots is not None:
            mapping["pool_slots"] = self.pool_slots
        return mapping

    # :: MechanicalOperation | type=deserialization
    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Self:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise EngineConfigError(f"unknown engine config keys: {unknown}")

        kwargs: dict[str, Any] = dict(mapping)
        if "zero_value_policy" in kwargs:
            raw = kwargs["zero_value_policy"]
            try:
                kwargs["zero_value_policy"] = ZeroValuePolicy(raw)
            except ValueError as e:
                raise EngineConfigError(f"zero_value_policy: invalid value {raw!r}") from e
        return cls(**kwargs)

    @classmethod
    def from_toml_file(cls, path: str | Path) -> Self:
        """
        Load the config from a TOML file.

        A ``pyproject.toml`` is read from its ``[tool.double-engine]`` table (an absent table
        yields the defaults); any other file is read from its root table.
        """
        path = Path(path)
        data = load_toml_file(path)
        if path.name == "pyproject.toml":
            data = data.get("tool", {}).get(CONFIG_TOOL_SECTION, {})
        return cls.from_mapping(data)

    def to_toml(self) -> str:
        return dump_toml_to_str({"tool": {CONFIG_TOOL_SECTION: dict(self.to_mapping())}})

    @classmethod
    def from_toml(cls, text: str) -> Self:
        """
        Parse a document in the form written by ``to_toml``; a missing
        ``[tool.double-engine]`` table yields the defaults.
        """
        data = load_toml_text(text)
        return cls.from_mapping(data.get("tool", {}).get(CONFIG_TOOL_SECTION, {}))

    def with_changes(self, **changes: Any) -> Self:
        return type(self).from_mapping({**self.to_mapping(), **changes})


_active_config: EngineConfig = EngineConfig()


def get_engine_config() -> EngineConfig:
    return _active_config


def set_engine_config(config: EngineConfig) -> EngineConfig:
    """
    Install ``config`` as the active engine config and return the one it replaced.

    Pools that already exist keep their slot count.
    """
    global _active_config
    previous = _active_config
    _active_config = config
    return previous
