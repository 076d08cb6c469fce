from __future__ import annotations
import io
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

import ijson

from .base import ParserPlugin
from ..core.models import SourceDocument
from ..core.tokens import Event, Token, TokenCursor
from ..core.utils import DEFAULT_MAX_BYTES, read_text_safely

IJSON_TOKENS = {
    "start_map": Token.START_OBJECT,
    "end_map": Token.END_OBJECT,
    "start_array": Token.START_ARRAY,
    "end_array": Token.END_ARRAY,
    "map_key": Token.FIELD_NAME,
    "null": Token.VALUE_NULL,
    "boolean": Token.VALUE,
    "integer": Token.VALUE,
    "double": Token.VALUE,
    "number": Token.VALUE,
    "string": Token.VALUE,
}


class JsonTokenCursor(TokenCursor):
    """Cursor over the events of ijson's pull parser."""

    def __init__(self, stream: BinaryIO) -> None:
        self._prefix: Optional[str] = None
        super().__init__(self._translate(ijson.parse(stream)))

    @classmethod
    def from_text(cls, text: str) -> "JsonTokenCursor":
        return cls(io.BytesIO(text.encode("utf-8")))

    def _translate(self, events) -> Iterator[Event]:
        for prefix, event, value in events:
            self._prefix = prefix
            yield IJSON_TOKENS[event], value

    def location(self) -> Optional[str]:
        if self._prefix is None:
            return None
        return f"prefix [{self._prefix}]"


class JSONParser(ParserPlugin):
    NAME = "json"
    SUPPORTED_EXTENSIONS = ["json"]
    ERRORS = (ijson.JSONError,)

    def documents(self, path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> Iterator[SourceDocument]:
        content = read_text_safely(path, max_bytes)
        if content is None:
            return
        yield SourceDocument(file_path=path, line_num=1, cursor=JsonTokenCursor.from_text(content))


JSON = JSONParser
