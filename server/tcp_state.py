from dataclasses import dataclass, field
from typing import Any, Optional, Set

# Sentinel op code carried by every gateway control message
PROXY_OP = -1

# client <-> gateway control tags
GATEWAY_HELLO = "GATEWAY_HELLO"
GATEWAY_CONNECT = "GATEWAY_CONNECT"
GATEWAY_DISCONNECT = "GATEWAY_DISCONNECT"
GATEWAY_UPDATE_SUPPORTED_EVENTS = "GATEWAY_UPDATE_SUPPORTED_EVENTS"
GATEWAY_SHOW_GUILD_EMOJI = "GATEWAY_SHOW_GUILD_EMOJI"
GATEWAY_SEND_TYPING = "GATEWAY_SEND_TYPING"

# gateway -> client synthesized events
J2ME_READY = "J2ME_READY"
J2ME_READ_STATES = "J2ME_READ_STATES"
J2ME_PREFIX = "J2ME_"

_MISSING = object()


@dataclass
class Envelope:
    """Gateway event envelope: op code, type tag, sequence number, payload.

    s and d are only serialized when set, mirroring upstream where hello
    frames carry neither.
    """
    op: Optional[int] = None
    t: Optional[str] = None
    s: Any = _MISSING
    d: Any = _MISSING

    @classmethod
    def from_dict(cls, obj: dict) -> "Envelope":
        return cls(
            op=obj.get("op"),
            t=obj.get("t"),
            s=obj.get("s", _MISSING),
            d=obj.get("d", _MISSING),
        )

    @classmethod
    def control(cls, t: str, d: Any = _MISSING, s: Any = _MISSING) -> "Envelope":
        return cls(op=PROXY_OP, t=t, s=s, d=d)

    @property
    def is_control(self) -> bool:
        return self.op == PROXY_OP

    @property
    def payload(self) -> Any:
        return None if self.d is _MISSING else self.d

    @property
    def seq(self) -> Any:
        return None if self.s is _MISSING else self.s

    def to_dict(self) -> dict:
        out = {"op": self.op}
        if self.s is not _MISSING:
            out["s"] = self.s
        out["t"] = self.t
        if self.d is not _MISSING:
            out["d"] = self.d
        return out


@dataclass
class SessionState:
    """Per-connection settings, written only by the client read loop."""
    supported_events: Set[str] = field(default_factory=set)
    show_guild_emoji: bool = False
    auth_token: Optional[str] = None

    def wants(self, event_name: str) -> bool:
        return event_name in self.supported_events
