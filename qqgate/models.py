"""Data models for qqgate: credentials, gateway frames and normalized messages."""

from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

MESSAGE_CREATE_EVENTS = frozenset({"AT_MESSAGE_CREATE", "MESSAGE_CREATE"})
MAX_SEQUENCE = 2**32 - 1


class Opcode(IntEnum):
    DISPATCH = 0
    HEARTBEAT = 1
    IDENTIFY = 2
    HELLO = 10


class Credential(BaseModel):
    """An access token and the epoch second after which it must not be used."""

    model_config = ConfigDict(frozen=True)

    token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class GatewayFrame(BaseModel):
    """
    Envelope of every frame exchanged over the gateway.

    ``s`` and ``t`` are kept as raw JSON values; callers decide what a usable
    sequence number or event name looks like so that odd values can be
    skipped instead of failing the whole frame.
    """

    op: int = 0
    d: Any = None
    s: Any = None
    t: Any = None

    @field_validator("op", mode="before")
    @classmethod
    def coerce_op(cls, value: Any) -> int:
        # Anything that is not an unsigned integer reads as a dispatch.
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            return Opcode.DISPATCH
        return value

    @classmethod
    def from_wire(cls, data: Any) -> "GatewayFrame":
        """Build a frame from decoded JSON; non-object values become an empty dispatch."""
        return cls.model_validate(data if isinstance(data, dict) else {})

    @property
    def sequence(self) -> int | None:
        """The dispatch sequence number if it fits an unsigned 32-bit integer."""
        s = self.s
        if isinstance(s, bool) or not isinstance(s, int):
            return None
        if 0 <= s <= MAX_SEQUENCE:
            return s
        return None

    @property
    def event_type(self) -> str | None:
        return self.t if isinstance(self.t, str) else None

    @property
    def payload(self) -> dict[str, Any]:
        return self.d if isinstance(self.d, dict) else {}

    @classmethod
    def identify(
        cls,
        authorization: str,
        intents: int,
        shard: list[int],
        properties: dict[str, str],
    ) -> "GatewayFrame":
        return cls(
            op=Opcode.IDENTIFY,
            d={
                "token": authorization,
                "intents": intents,
                "shard": shard,
                "properties": properties,
            },
        )

    @classmethod
    def heartbeat(cls, last_sequence: int | None) -> "GatewayFrame":
        return cls(op=Opcode.HEARTBEAT, d=last_sequence)

    def to_wire(self) -> str:
        """Serialize for sending; ``s``/``t`` are only present on inbound dispatches."""
        return self.model_dump_json(include={"op", "d"})


class ChannelMessage(BaseModel):
    """A platform message normalized for the downstream consumer."""

    model_config = ConfigDict(frozen=True)

    id: str
    sender: str
    content: str
    channel: str
    timestamp: int
