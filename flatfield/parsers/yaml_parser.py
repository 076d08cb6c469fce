from __future__ import annotations
from pathlib import Path
from typing import Iterator

import yaml

from .base import ParserPlugin
from ..core.models import SourceDocument
from ..core.tokens import Event, TokenCursor, iter_events
from ..core.utils import DEFAULT_MAX_BYTES, read_text_safely


class YamlTokenCursor(TokenCursor):
    """Cursor over a single YAML document, loaded on the first advance."""

    def __init__(self, text: str) -> None:
        super().__init__(self._load(text))

    @staticmethod
    def _load(text: str) -> Iterator[Event]:
        yield from iter_events(yaml.safe_load(text))


class YAMLParser(ParserPlugin):
    NAME = "yaml"
    SUPPORTED_EXTENSIONS = ["yaml", "yml"]
    ERRORS = (yaml.YAMLError,)

    def documents(self, path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> Iterator[SourceDocument]:
        content = read_text_safely(path, max_bytes)
        if content is None:
            return
        yield SourceDocument(file_path=path, line_num=1, cursor=YamlTokenCursor(content))


YAML = YAMLParser
