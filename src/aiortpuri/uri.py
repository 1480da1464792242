"""``rtp://host:port?key=value`` parsing and query-to-field coercion."""

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit

from .caps import Caps
from .errors import InvalidURI

logger = logging.getLogger(__name__)

SCHEME = "rtp"
DEFAULT_PORT = 5004

_TRUE_VALUES = ("true", "1", "on")

# Leading whitespace, sign, then a hex, octal or decimal literal (C strtoll)
_INTEGER_RE = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_UINT64_MAX = (1 << 64) - 1


@dataclass(frozen=True)
class SessionURI:
    host: str
    port: int = DEFAULT_PORT
    params: tuple[tuple[str, str], ...] = ()
    scheme: str = SCHEME

    def with_host(self, host: str) -> "SessionURI":
        return replace(self, host=host)

    def with_port(self, port: int) -> "SessionURI":
        return replace(self, port=port)

    @property
    def query(self) -> dict[str, str]:
        """Query parameters with later duplicates overriding earlier ones."""
        return dict(self.params)

    def to_string(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        text = f"{self.scheme}://{host}:{self.port}"
        if self.params:
            text += "?" + urlencode(self.params, safe="/()")
        return text

    def __str__(self) -> str:
        return self.to_string()


def resolve(uri: str) -> SessionURI:
    """Parse *uri* into a :class:`SessionURI`.

    Raises :class:`InvalidURI` if the scheme is not ``rtp`` or the authority
    (host and optional port) cannot be parsed.
    """
    try:
        parts = urlsplit(uri.strip())
    except ValueError as exc:
        raise InvalidURI(f"Cannot parse URI {uri!r}: {exc}") from exc

    if parts.scheme.lower() != SCHEME:
        raise InvalidURI(f"Unsupported URI scheme {parts.scheme!r}, expected {SCHEME!r}")

    host = parts.hostname
    if not host:
        raise InvalidURI(f"URI {uri!r} has no host")

    try:
        port = parts.port
    except ValueError as exc:
        raise InvalidURI(f"URI {uri!r} has an invalid port") from exc
    if port is None:
        port = DEFAULT_PORT

    params = tuple(parse_qsl(parts.query, keep_blank_values=True))
    return SessionURI(host=host, port=port, params=params)


class FieldKind(Enum):
    BOOLEAN = "boolean"
    INT = "int"
    UINT = "uint"
    UINT8 = "uint8"
    INT64 = "int64"
    UINT64 = "uint64"
    DOUBLE = "double"
    STRING = "string"
    FRACTION = "fraction"
    CAPS = "caps"


@dataclass
class Field:
    """A named, typed configuration field with its accessors."""

    name: str
    kind: FieldKind
    setter: Callable[[Any], None]
    getter: Optional[Callable[[], Any]] = None


FieldRegistry = dict[str, Field]


class Configurable(Protocol):
    @property
    def fields(self) -> Mapping[str, Field]: ...


def _wrap(value: int, bits: int, signed: bool) -> int:
    value &= (1 << bits) - 1
    if signed and value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def _scan_integer(value: str) -> Optional[int]:
    match = _INTEGER_RE.match(value)
    if match is None:
        return None
    sign, digits = match.groups()
    if digits[:2] in ("0x", "0X"):
        number = int(digits, 16)
    elif digits.startswith("0"):
        number = int(digits, 8)
    else:
        number = int(digits, 10)
    return -number if sign == "-" else number


def parse_int64(value: str) -> int:
    """``strtoll(value, NULL, 0)``: prefix parse, saturating, 0 on garbage."""
    number = _scan_integer(value)
    if number is None:
        return 0
    return max(_INT64_MIN, min(_INT64_MAX, number))


def parse_uint64(value: str) -> int:
    """``strtoull(value, NULL, 0)``: negative input wraps around."""
    number = _scan_integer(value)
    if number is None:
        return 0
    if abs(number) > _UINT64_MAX:
        return _UINT64_MAX
    return number & _UINT64_MAX


def parse_boolean(value: str) -> bool:
    return value.lower() in _TRUE_VALUES


def parse_fraction(value: str) -> Optional[tuple[int, int]]:
    parts = value.split("/")
    if len(parts) != 2:
        return None
    return parse_uint64(parts[0]), parse_uint64(parts[1])


def coerce(kind: FieldKind, value: str) -> Any:
    """Convert a query string value for a field of *kind*.

    Returns ``None`` when the value must be ignored (malformed fraction or
    caps); every other malformed value degrades to a default instead.
    """
    if kind is FieldKind.BOOLEAN:
        return parse_boolean(value)
    if kind is FieldKind.INT:
        return _wrap(parse_int64(value), 32, signed=True)
    if kind is FieldKind.UINT:
        return _wrap(parse_uint64(value), 32, signed=False)
    if kind is FieldKind.UINT8:
        return _wrap(parse_uint64(value), 8, signed=False)
    if kind is FieldKind.INT64:
        return parse_int64(value)
    if kind is FieldKind.UINT64:
        return parse_uint64(value)
    if kind is FieldKind.DOUBLE:
        return float(parse_int64(value))
    if kind is FieldKind.STRING:
        return value
    if kind is FieldKind.FRACTION:
        return parse_fraction(value)
    if kind is FieldKind.CAPS:
        try:
            return Caps.from_string(value)
        except ValueError:
            logger.warning("Ignoring unparsable caps %r", value)
            return None
    raise ValueError(f"Unsupported field kind: {kind}")


def apply_query_overlay(
    target: Configurable, params: Iterable[tuple[str, str]]
) -> list[str]:
    """Set every recognized field of *target* from *params*.

    Unknown keys and values the field rejects are skipped. Returns the names
    of the fields that were set, in the order they were applied.
    """
    applied: list[str] = []
    registry = target.fields
    for key, value in params:
        spec = registry.get(key)
        if spec is None or key == "uri":
            logger.debug("Property %s not supported", key)
            continue
        coerced = coerce(spec.kind, value)
        if coerced is None:
            logger.debug("Ignoring malformed value %r for %s", value, key)
            continue
        try:
            spec.setter(coerced)
        except ValueError as exc:
            logger.warning("Ignoring value %r for %s: %s", value, key, exc)
            continue
        applied.append(key)
        logger.debug("Set property %s: %s", key, value)
    return applied
