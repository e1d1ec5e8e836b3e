from __future__ import annotations

import types
import typing
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar, get_type_hints

import yaml

T = TypeVar("T", bound="BaseConfig")

__all__ = ["BaseConfig", "to_primitive"]


def _enum_type(field_type: Any) -> type[Enum] | None:
    """Return the Enum class behind ``E`` or ``E | None`` hints."""
    if isinstance(field_type, type) and issubclass(field_type, Enum):
        return field_type
    origin = typing.get_origin(field_type)
    if origin is typing.Union or origin is types.UnionType:
        for arg in typing.get_args(field_type):
            if isinstance(arg, type) and issubclass(arg, Enum):
                return arg
    return None


def _is_path(field_type: Any) -> bool:
    return field_type is Path or Path in typing.get_args(field_type)


def to_primitive(value: Any) -> Any:
    """Recursively convert enums and paths to YAML-safe primitives."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {k: to_primitive(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [to_primitive(v) for v in value]
    return value


@dataclass(frozen=True)
class BaseConfig:
    """Base configuration class with utility methods."""

    @classmethod
    def from_yaml(cls: type[T], path: str | Path) -> T:
        """Load configuration from a YAML file."""
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls: type[T], data: dict[str, Any]) -> T:
        """Create configuration from a dictionary, recursively handling nested configs."""
        hints = get_type_hints(cls)
        kwargs = {}
        for k, v in data.items():
            if k not in hints:
                continue
            field_type = hints[k]
            enum_cls = _enum_type(field_type)
            # Handle nested BaseConfig
            if (
                isinstance(field_type, type)
                and issubclass(field_type, BaseConfig)
                and isinstance(v, dict)
            ):
                kwargs[k] = field_type.from_dict(v)
            elif enum_cls is not None and v is not None and not isinstance(v, enum_cls):
                kwargs[k] = enum_cls(v)
            elif v is not None and _is_path(field_type):
                kwargs[k] = Path(v).expanduser()
            else:
                kwargs[k] = v
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a dictionary of primitives."""
        return to_primitive(asdict(self))

    def to_yaml(self, path: str | Path) -> None:
        """Write configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
