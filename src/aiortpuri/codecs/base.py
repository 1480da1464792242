from dataclasses import dataclass
from typing import Optional, Union

from ..caps import Caps


@dataclass(frozen=True)
class CodecDescriptor:
    payload_type: Optional[int]
    encoding_name: str
    media: str
    clock_rate: int

    @property
    def is_dynamic(self) -> bool:
        return self.payload_type is None

    def to_caps(self, payload_type: Optional[int] = None) -> Caps:
        """Build ``application/x-rtp`` caps for this encoding."""
        fields: dict[str, Union[int, str]] = {
            "media": self.media,
            "encoding-name": self.encoding_name,
        }
        if self.clock_rate:
            fields["clock-rate"] = self.clock_rate
        pt = payload_type if payload_type is not None else self.payload_type
        if pt is not None:
            fields["payload"] = pt
        return Caps("application/x-rtp", **fields)
