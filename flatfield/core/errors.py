"""Errors raised while flattening a document."""

from __future__ import annotations


class FlattenError(ValueError):
    """Base class for failures that reject a whole document."""


class StructuralError(FlattenError):
    """The token stream was positioned on a token that cannot appear here.

    A conforming token producer never triggers this; it is raised to stay
    safe rather than emit fields for a stream the flattener does not
    understand.
    """


class DepthLimitExceeded(FlattenError):
    def __init__(self, field_name: str, limit: int) -> None:
        super().__init__(
            f"The provided JSON field [{field_name}] exceeds the maximum depth limit of [{limit}]."
        )
        self.field_name = field_name
        self.limit = limit


class ReservedCharacterInKey(FlattenError):
    def __init__(self, key: str) -> None:
        super().__init__(
            "Keys in [json] fields cannot contain the reserved character \\0."
            f" Offending key: [{key}]."
        )
        self.key = key


class ConfigError(ValueError):
    """Invalid flattener configuration."""
