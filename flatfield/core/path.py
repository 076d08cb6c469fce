from __future__ import annotations
from typing import List

DELIMITER = "."


class PathTracker:
    """Stack of the object field names currently open during a traversal."""

    def __init__(self, delimiter: str = DELIMITER) -> None:
        self.delimiter = delimiter
        self._segments: List[str] = []

    def push(self, segment: str) -> None:
        self._segments.append(segment)

    def pop(self) -> str:
        return self._segments.pop()

    def __len__(self) -> int:
        return len(self._segments)

    def path_as_text(self, name: str) -> str:
        # every open segment is followed by the delimiter, then the leaf name
        return "".join(s + self.delimiter for s in self._segments) + name
