"""Capability descriptors exchanged between endpoints and the multiplexer.

A caps string looks like::

    application/x-rtp, media=(string)video, clock-rate=(int)90000, encoding-name=H264

The first item is the media type, the rest are ``key=value`` fields with an
optional ``(type)`` prefix on the value.
"""

from typing import Any, Union

FieldValue = Union[int, str, bool]

_TRUE_WORDS = ("true", "yes", "1")
_FALSE_WORDS = ("false", "no", "0")


def _split_fields(text: str) -> list[str]:
    """Split on commas that are not inside double quotes."""
    parts: list[str] = []
    current: list[str] = []
    quoted = False
    for ch in text:
        if ch == '"':
            quoted = not quoted
        if ch == "," and not quoted:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    if quoted:
        raise ValueError("Unterminated quoted string in caps")
    parts.append("".join(current))
    return parts


def _parse_value(raw: str) -> FieldValue:
    raw = raw.strip()
    type_name = None
    if raw.startswith("("):
        end = raw.find(")")
        if end < 0:
            raise ValueError(f"Malformed caps value: {raw!r}")
        type_name = raw[1:end].strip()
        raw = raw[end + 1 :].strip()

    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        raw = raw[1:-1]
        if type_name is None:
            return raw

    if type_name in ("int", "i", "uint", "u"):
        return int(raw, 0)
    if type_name in ("boolean", "bool", "b"):
        lowered = raw.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        raise ValueError(f"Invalid boolean in caps: {raw!r}")
    if type_name in ("string", "str", "s"):
        return raw
    if type_name is not None:
        raise ValueError(f"Unsupported caps field type: {type_name}")

    # Untyped: integers are integers, everything else stays a string
    try:
        return int(raw, 10)
    except ValueError:
        return raw


def _format_value(value: FieldValue) -> str:
    if isinstance(value, bool):
        return f"(boolean){'true' if value else 'false'}"
    if isinstance(value, int):
        return f"(int){value}"
    if any(ch in value for ch in ', "'):
        return f'(string)"{value}"'
    return f"(string){value}"


class Caps:
    def __init__(self, media_type: str, **fields: FieldValue) -> None:
        if not media_type or "/" not in media_type:
            raise ValueError(f"Invalid caps media type: {media_type!r}")
        self._media_type = media_type
        self._fields: dict[str, FieldValue] = {
            key.replace("_", "-"): value for key, value in fields.items()
        }

    @classmethod
    def from_string(cls, text: str) -> "Caps":
        """Parse a caps string; raises ``ValueError`` when malformed."""
        parts = _split_fields(text.strip().rstrip(";"))
        media_type = parts[0].strip()
        caps = cls(media_type)
        for part in parts[1:]:
            if not part.strip():
                continue
            key, sep, value = part.partition("=")
            key = key.strip()
            if not sep or not key:
                raise ValueError(f"Malformed caps field: {part!r}")
            caps._fields[key] = _parse_value(value)
        return caps

    @property
    def media_type(self) -> str:
        return self._media_type

    @property
    def fields(self) -> dict[str, FieldValue]:
        return dict(self._fields)

    def get(self, key: str, default: Any = None) -> Any:
        return self._fields.get(key, default)

    def is_fixed(self) -> bool:
        return bool(self._fields)

    def can_intersect(self, other: "Caps") -> bool:
        """True when both describe the same media type and shared fields agree."""
        if self._media_type != other._media_type:
            return False
        for key in self._fields.keys() & other._fields.keys():
            if self._fields[key] != other._fields[key]:
                return False
        return True

    def to_string(self) -> str:
        items = [self._media_type]
        items.extend(f"{k}={_format_value(v)}" for k, v in self._fields.items())
        return ", ".join(items)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Caps({self.to_string()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Caps):
            return NotImplemented
        return self._media_type == other._media_type and self._fields == other._fields

    def __hash__(self) -> int:
        return hash((self._media_type, tuple(sorted(self._fields.items()))))


RTP_CAPS = Caps("application/x-rtp")
RTCP_CAPS = Caps("application/x-rtcp")
