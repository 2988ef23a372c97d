"""
Best-effort extraction of one string field from an incomplete JSON object.

Used while a breakdown is still streaming, when the buffer is a prefix of
the final JSON and a real parser would reject it. Never raises: malformed
or truncated input just yields a shorter (possibly empty) value.
"""
import codecs
from typing import Union

ESCAPES = {'"': '"', "n": "\n", "t": "\t", "\\": "\\"}

WHITESPACE = " \t\r\n"


def _skip_whitespace(text: str, i: int) -> int:
    while i < len(text) and text[i] in WHITESPACE:
        i += 1
    return i


def extract_string_field(buffer: str, field: str = "guidance") -> str:
    """
    Return the current value of `field` in a partial JSON buffer.

    Resolves \\", \\n, \\t and \\\\; any other escaped character is kept
    as-is without its backslash. Stops at the closing quote, or at the
    end of the buffer while the value is still streaming.
    """
    if not isinstance(buffer, str):
        return ""

    # The key is the first occurrence followed by a colon; the same text
    # can appear earlier inside another field's value.
    marker = f'"{field}"'
    start = buffer.find(marker)
    while start != -1:
        i = _skip_whitespace(buffer, start + len(marker))
        if i < len(buffer) and buffer[i] == ":":
            break
        start = buffer.find(marker, start + 1)
    else:
        return ""

    i = _skip_whitespace(buffer, i + 1)
    if i >= len(buffer) or buffer[i] != '"':
        return ""
    i += 1

    chars = []
    while i < len(buffer):
        c = buffer[i]
        if c == "\\":
            if i + 1 >= len(buffer):
                # Escape split across deltas; wait for the next one
                break
            escaped = buffer[i + 1]
            chars.append(ESCAPES.get(escaped, escaped))
            i += 2
        elif c == '"':
            break
        else:
            chars.append(c)
            i += 1
    return "".join(chars)


class FieldTracker:
    """Tracks one field's value while deltas arrive.

    Accepts str deltas, or raw bytes split at any boundary (including in
    the middle of a multi-byte UTF-8 character).
    """

    def __init__(self, field: str = "guidance"):
        self.field = field
        self.buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, delta: Union[str, bytes]) -> str:
        """Append a delta and return the field's current value."""
        if isinstance(delta, (bytes, bytearray)):
            delta = self._decoder.decode(bytes(delta))
        self.buffer += delta
        return self.value

    @property
    def value(self) -> str:
        return extract_string_field(self.buffer, self.field)
