from __future__ import annotations
from pathlib import Path
from typing import Iterator

import ijson

from .base import ParserPlugin
from .json_parser import JsonTokenCursor
from ..core.models import SourceDocument
from ..core.utils import DEFAULT_MAX_BYTES, iter_lines, read_text_safely


class JSONLinesParser(ParserPlugin):
    """One document per non-blank line."""

    NAME = "jsonl"
    SUPPORTED_EXTENSIONS = ["jsonl", "ndjson"]
    ERRORS = (ijson.JSONError,)

    def documents(self, path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> Iterator[SourceDocument]:
        content = read_text_safely(path, max_bytes)
        if content is None:
            return
        for i, line in enumerate(iter_lines(content), start=1):
            if not line.strip():
                continue
            yield SourceDocument(file_path=path, line_num=i, cursor=JsonTokenCursor.from_text(line))


JSONL = JSONLinesParser
