"""Pull-based token cursors over structured documents.

A cursor exposes one token at a time: ``next_token()`` advances, and
``current_token`` names what the cursor is positioned on. Field names and
scalar values are read through ``current_name()`` and ``text()``.
"""

from __future__ import annotations
import enum
from typing import Any, Iterator, Mapping, Optional, Tuple

from .errors import StructuralError


class Token(enum.Enum):
    START_OBJECT = "start_object"
    END_OBJECT = "end_object"
    START_ARRAY = "start_array"
    END_ARRAY = "end_array"
    FIELD_NAME = "field_name"
    VALUE = "value"
    VALUE_NULL = "value_null"


Event = Tuple[Token, Any]


def scalar_text(value: Any) -> str:
    """Text form of a scalar leaf, spelled the way JSON spells it."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class TokenCursor:
    """Cursor over a stream of ``(Token, payload)`` events.

    Subclasses supply the events; the cursor starts before the first token
    and ``current_token`` is None again once the stream is exhausted.
    """

    def __init__(self, events: Iterator[Event]) -> None:
        self._events = events
        self.current_token: Optional[Token] = None
        self._payload: Any = None

    def next_token(self) -> Optional[Token]:
        event = next(self._events, None)
        if event is None:
            self.current_token, self._payload = None, None
        else:
            self.current_token, self._payload = event
        return self.current_token

    def current_name(self) -> str:
        if self.current_token is not Token.FIELD_NAME:
            raise StructuralError(f"No field name at token [{self.current_token}].")
        return self._payload

    def text(self) -> str:
        if self.current_token is not Token.VALUE:
            raise StructuralError(f"No scalar value at token [{self.current_token}].")
        return scalar_text(self._payload)

    def finish(self) -> None:
        """Require the stream to end after the document just parsed."""
        token = self.next_token()
        if token is not None:
            where = self.location()
            suffix = f" at {where}" if where else ""
            raise StructuralError(f"Unexpected content after the end of the document: token [{token.value}]{suffix}.")

    def location(self) -> Optional[str]:
        return None


def iter_events(obj: Any) -> Iterator[Event]:
    """Token events for a Python structure, in document order."""
    if isinstance(obj, Mapping):
        yield Token.START_OBJECT, None
        for key, value in obj.items():
            yield Token.FIELD_NAME, scalar_text(key)
            yield from iter_events(value)
        yield Token.END_OBJECT, None
    elif isinstance(obj, (list, tuple)):
        yield Token.START_ARRAY, None
        for item in obj:
            yield from iter_events(item)
        yield Token.END_ARRAY, None
    elif obj is None:
        yield Token.VALUE_NULL, None
    else:
        yield Token.VALUE, obj


class ObjectTokenCursor(TokenCursor):
    """Cursor over an already-loaded Python structure (dicts, lists, scalars)."""

    def __init__(self, obj: Any) -> None:
        super().__init__(iter_events(obj))
