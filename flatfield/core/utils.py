from __future__ import annotations
import codecs
import io
import chardet  # type: ignore
from pathlib import Path
from typing import Iterator, Optional

BINARY_BYTES = bytes(range(0, 32)) + b"\x7f"
DEFAULT_MAX_BYTES = 20_000_000


def is_likely_binary(
    data: bytes, control_threshold: float = 0.30, high_bit_threshold: float = 0.60
) -> bool:
    if not data:
        return False
    total = len(data)
    if 0 in data:
        return True
    control = sum(1 for b in data if b in BINARY_BYTES and b not in (9, 10, 13))
    if (control / total) > control_threshold:
        return True
    high = sum(1 for b in data if b >= 0x80)
    if (high / total) > high_bit_threshold:
        # utf-8 heavy documents are fine; anything else is treated as binary
        try:
            # a multi-byte sequence may be cut at the end of a sniffed head
            codecs.getincrementaldecoder("utf-8")().decode(data, final=False)
        except UnicodeDecodeError:
            return True
    return False


def decode_bytes(data: bytes) -> Optional[str]:
    """Decode document bytes, trying utf-8 first and then chardet's guess."""
    if data.startswith(b"\xef\xbb\xbf"):
        data = data[3:]
    try:
        return data.decode("utf-8", errors="strict")
    except UnicodeDecodeError:
        pass
    enc = chardet.detect(data).get("encoding")
    if not enc:
        return None
    try:
        return data.decode(enc, errors="strict")
    except (LookupError, UnicodeDecodeError):
        return None


def read_text_safely(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> Optional[str]:
    try:
        with path.open("rb") as f:
            head = f.read(min(4096, max_bytes))
            if is_likely_binary(head):
                return None
            # one byte past the cap tells an oversized file from one that fits exactly
            rest = f.read(max_bytes + 1 - len(head))
            data = head + rest
    except OSError:
        return None
    if len(data) > max_bytes:
        return None
    if is_likely_binary(data):
        return None
    return decode_bytes(data)


def iter_lines(text: str) -> Iterator[str]:
    buf = io.StringIO(text)
    for line in buf:
        yield line.rstrip("\r\n")
