"""Flattening of a JSON object into pairs of indexable fields.

Each leaf value of the object produces two records: one in the root field
holding the raw value, and one in the keyed field holding
``<dotted path>\\0<value>`` so that values can also be matched by the path
leading to them.
"""

from __future__ import annotations
import logging
from typing import Any, List, Optional

from .errors import DepthLimitExceeded, ReservedCharacterInKey, StructuralError
from .models import FieldRecord, FlattenerConfig
from .path import PathTracker
from .tokens import ObjectTokenCursor, Token, TokenCursor

SEPARATOR = "\0"

logger = logging.getLogger("flatfield").getChild("flattener")


def create_keyed_value(key: str, value: str) -> str:
    return key + SEPARATOR + value


def keyed_prefix(key: str) -> str:
    """Prefix shared by every keyed value stored under ``key``."""
    return key + SEPARATOR


def extract_key(keyed_value: str) -> str:
    key, sep, _ = keyed_value.partition(SEPARATOR)
    if not sep:
        raise ValueError(f"Value [{keyed_value!r}] is not a keyed value.")
    return key


def extract_value(keyed_value: str) -> str:
    _, sep, value = keyed_value.partition(SEPARATOR)
    if not sep:
        raise ValueError(f"Value [{keyed_value!r}] is not a keyed value.")
    return value


class Flattener:
    """Parses a JSON object and produces a pair of fields for each leaf value.

    The instance only holds its configuration; every ``parse`` call works on
    its own path stack and output list, so one flattener can be shared
    between threads.
    """

    def __init__(self, config: FlattenerConfig) -> None:
        self.config = config

    def parse(self, cursor: TokenCursor) -> List[FieldRecord]:
        token = cursor.current_token
        if token is None:
            token = cursor.next_token()
        if token is not Token.START_OBJECT:
            where = cursor.location()
            raise StructuralError(
                f"Expected [{Token.START_OBJECT}] but found [{token}]"
                + (f" at {where}" if where else "")
                + "."
            )

        path = PathTracker()
        fields: List[FieldRecord] = []
        try:
            self._parse_object(cursor, path, fields)
        except RecursionError as exc:
            raise StructuralError(
                f"The provided JSON field [{self.config.root_field_name}] is nested too deeply to flatten."
            ) from exc
        return fields

    def _parse_object(self, cursor: TokenCursor, path: PathTracker, fields: List[FieldRecord]) -> None:
        current_name: Optional[str] = None
        while True:
            token = cursor.next_token()
            if token is Token.END_OBJECT:
                return
            if token is Token.FIELD_NAME:
                current_name = cursor.current_name()
            elif current_name is None:
                raise StructuralError(f"Encountered token [{token}] before any field name.")
            else:
                self._parse_field_value(token, cursor, path, current_name, fields)

    def _parse_array(
        self,
        cursor: TokenCursor,
        path: PathTracker,
        current_name: Optional[str],
        fields: List[FieldRecord],
    ) -> None:
        while True:
            token = cursor.next_token()
            if token is Token.END_ARRAY:
                return
            self._parse_field_value(token, cursor, path, current_name, fields)

    def _parse_field_value(
        self,
        token: Optional[Token],
        cursor: TokenCursor,
        path: PathTracker,
        current_name: Optional[str],
        fields: List[FieldRecord],
    ) -> None:
        if token is Token.START_OBJECT:
            path.push(current_name)
            self._validate_depth_limit(path)
            self._parse_object(cursor, path, fields)
            path.pop()
        elif token is Token.START_ARRAY:
            self._parse_array(cursor, path, current_name, fields)
        elif token is Token.VALUE:
            self._add_field(path, current_name, cursor.text(), fields)
        elif token is Token.VALUE_NULL:
            if self.config.null_value is not None:
                self._add_field(path, current_name, self.config.null_value, fields)
        else:
            # unreachable for a well-formed stream; refuse rather than guess
            where = cursor.location()
            raise StructuralError(
                f"Encountered unexpected token [{token}]" + (f" at {where}" if where else "") + "."
            )

    def _add_field(self, path: PathTracker, current_name: str, value: str, fields: List[FieldRecord]) -> None:
        if len(value) > self.config.ignore_above:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Skipping value of %d chars under [%s] (ignore_above=%d)",
                    len(value),
                    path.path_as_text(current_name),
                    self.config.ignore_above,
                )
            return

        key = path.path_as_text(current_name)
        if SEPARATOR in key:
            raise ReservedCharacterInKey(key)
        keyed_value = create_keyed_value(key, value)

        fields.append(FieldRecord(self.config.root_field_name, value))
        fields.append(FieldRecord(self.config.keyed_field_name, keyed_value))

    def _validate_depth_limit(self, path: PathTracker) -> None:
        if len(path) + 1 > self.config.depth_limit:
            raise DepthLimitExceeded(self.config.root_field_name, self.config.depth_limit)


def flatten(obj: Any, config: Optional[FlattenerConfig] = None) -> List[FieldRecord]:
    """Flatten an in-memory mapping, e.g. the result of ``json.loads``."""
    return Flattener(config or FlattenerConfig()).parse(ObjectTokenCursor(obj))
