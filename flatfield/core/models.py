from __future__ import annotations
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List, Mapping, Optional

from .errors import ConfigError
from .tokens import TokenCursor

DEFAULT_ROOT_FIELD = "json"
KEYED_SUFFIX = "._keyed"
DEFAULT_DEPTH_LIMIT = 20
DEFAULT_IGNORE_ABOVE = sys.maxsize


@dataclass(frozen=True)
class FieldRecord:
    name: str
    value: str


@dataclass(frozen=True)
class FlattenerConfig:
    root_field_name: str = DEFAULT_ROOT_FIELD
    keyed_field_name: Optional[str] = None  # defaults to <root>._keyed
    depth_limit: int = DEFAULT_DEPTH_LIMIT
    ignore_above: int = DEFAULT_IGNORE_ABOVE
    null_value: Optional[str] = None  # None: null leaves are skipped

    def __post_init__(self) -> None:
        if not self.root_field_name:
            raise ConfigError("root_field_name must not be empty")
        if self.keyed_field_name is None:
            object.__setattr__(self, "keyed_field_name", self.root_field_name + KEYED_SUFFIX)
        elif not self.keyed_field_name:
            raise ConfigError("keyed_field_name must not be empty")
        if self.keyed_field_name == self.root_field_name:
            raise ConfigError(
                f"keyed_field_name must differ from root_field_name, both are [{self.root_field_name}]"
            )
        if self.depth_limit < 1:
            raise ConfigError(f"depth_limit must be a positive integer, got [{self.depth_limit}]")
        if self.ignore_above < 0:
            raise ConfigError(f"ignore_above must not be negative, got [{self.ignore_above}]")

    @classmethod
    def from_mapping(cls, name: str, params: Mapping[str, Any]) -> "FlattenerConfig":
        """Build the config of field ``name`` from mapping-style parameters."""
        known = {f.name for f in fields(cls)} - {"root_field_name"}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ConfigError(f"Unknown parameters for field [{name}]: {', '.join(unknown)}")
        kwargs = dict(params)
        try:
            for key in ("depth_limit", "ignore_above"):
                if key in kwargs:
                    kwargs[key] = int(kwargs[key])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid numeric parameter for field [{name}]: {exc}") from exc
        if kwargs.get("null_value") is not None:
            kwargs["null_value"] = str(kwargs["null_value"])
        return cls(root_field_name=name, **kwargs)


@dataclass
class SourceDocument:
    file_path: Path
    line_num: int
    cursor: TokenCursor


@dataclass
class FlattenedDocument:
    file_path: Path
    line_num: int
    fields: List[FieldRecord] = field(default_factory=list)


@dataclass
class RejectedDocument:
    file_path: Path
    line_num: int
    error: str
    reason: str  # exception class name
