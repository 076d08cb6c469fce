from __future__ import annotations
from pathlib import Path
from typing import Iterator, List, Tuple, Type

from ..core.models import SourceDocument
from ..core.utils import DEFAULT_MAX_BYTES


class ParserPlugin:
    NAME = "base"
    SUPPORTED_EXTENSIONS: List[str] = []  # override in subclasses
    # errors the token producer raises on malformed input; they reject one document
    ERRORS: Tuple[Type[Exception], ...] = ()

    def documents(self, path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> Iterator[SourceDocument]:
        raise NotImplementedError("documents must be implemented in subclasses")
