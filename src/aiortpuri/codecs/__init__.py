"""Payload type to codec resolution."""

import logging
from dataclasses import replace
from typing import Optional

from .base import CodecDescriptor
from .tables import DYNAMIC_PAYLOADS, STATIC_PAYLOADS

logger = logging.getLogger(__name__)

DYNAMIC_PT_MIN = 96
DYNAMIC_PT_MAX = 127

# Used when neither the payload type nor a configured name identifies the codec
DEFAULT_ENCODING_NAME = "H264"

_static: dict[int, CodecDescriptor] = {d.payload_type: d for d in STATIC_PAYLOADS}  # type: ignore[misc]
_dynamic: list[CodecDescriptor] = list(DYNAMIC_PAYLOADS)


def register_payload(descriptor: CodecDescriptor) -> None:
    """Register an extra encoding.

    Descriptors with a payload type replace the static entry for that type;
    the others are looked up by name, ahead of the built-in dynamic table.
    """
    if descriptor.payload_type is not None:
        if DYNAMIC_PT_MIN <= descriptor.payload_type <= DYNAMIC_PT_MAX:
            raise ValueError(
                f"Payload type {descriptor.payload_type} is in the dynamic range"
            )
        _static[descriptor.payload_type] = descriptor
    else:
        _dynamic.insert(0, descriptor)


def resolve_by_payload_type(pt: int) -> Optional[CodecDescriptor]:
    """Look up a static payload type; dynamic and unknown types give None."""
    if DYNAMIC_PT_MIN <= pt <= DYNAMIC_PT_MAX:
        return None
    return _static.get(pt)


def _find_by_name(
    table: "list[CodecDescriptor] | tuple[CodecDescriptor, ...]",
    name: str,
    media: Optional[str] = None,
) -> Optional[CodecDescriptor]:
    lowered = name.lower()
    for descriptor in table:
        if descriptor.encoding_name.lower() != lowered:
            continue
        if media is None or descriptor.media == media:
            return descriptor
    return None


def resolve_by_encoding_name(
    name: str, preferred_media: str = "video"
) -> Optional[CodecDescriptor]:
    """Find an encoding by name.

    Names present for both media kinds resolve to *preferred_media*; then the
    other kind is tried, then the static table. A dynamic entry without a
    clock rate takes the rate of the static entry of the same name.
    """
    static = _find_by_name(tuple(_static.values()), name)
    other_media = "audio" if preferred_media == "video" else "video"
    for media in (preferred_media, other_media):
        descriptor = _find_by_name(_dynamic, name, media)
        if descriptor is not None:
            if not descriptor.clock_rate and static is not None:
                return replace(descriptor, clock_rate=static.clock_rate)
            return descriptor
    if static is not None:
        return static
    # Entries not tied to audio or video
    return _find_by_name(_dynamic, name)


def resolve_payload(
    pt: int,
    encoding_name: Optional[str] = None,
    fallback: Optional[str] = DEFAULT_ENCODING_NAME,
) -> Optional[CodecDescriptor]:
    """Resolve the codec for packets carrying payload type *pt*.

    Static payload types win. Otherwise *encoding_name* is looked up, and if
    that is unset or unknown the *fallback* encoding is used.
    """
    descriptor = resolve_by_payload_type(pt)
    if descriptor is not None:
        return descriptor

    if encoding_name:
        descriptor = resolve_by_encoding_name(encoding_name)
        if descriptor is not None:
            return descriptor
        logger.warning("Unknown encoding-name %s", encoding_name)

    if fallback is None:
        return None
    logger.warning(
        "Could not determine codec for payload type %d, assuming %s", pt, fallback
    )
    return resolve_by_encoding_name(fallback)


__all__ = [
    "DEFAULT_ENCODING_NAME",
    "DYNAMIC_PAYLOADS",
    "CodecDescriptor",
    "STATIC_PAYLOADS",
    "register_payload",
    "resolve_by_encoding_name",
    "resolve_by_payload_type",
    "resolve_payload",
]
