"""Rewrites upstream gateway events into what a constrained client receives."""
import json
import logging
from typing import List

from server.tcp_state import (
    Envelope, SessionState, J2ME_READY, J2ME_READ_STATES, J2ME_PREFIX,
)
from .parse_message import NormalizationError, project_message

logger = logging.getLogger("Normalizer")

READY = "READY"
PROJECTED_EVENTS = ("MESSAGE_CREATE", "MESSAGE_UPDATE")


def _encode(env: Envelope) -> str:
    return json.dumps(env.to_dict(), separators=(",", ":"), ensure_ascii=False)


def read_state_pairs(ready: dict) -> list:
    """Flatten read states into [channel_id, last_message_id, ...].

    Entries that were never read carry no last_message_id and are skipped.
    """
    read_state = ready.get("read_state") or {}
    entries = read_state.get("entries", []) if isinstance(read_state, dict) else read_state
    pairs = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("last_message_id"):
            continue
        pairs.append(entry.get("id"))
        pairs.append(entry["last_message_id"])
    return pairs


def _normalize_ready(event: Envelope, state: SessionState) -> List[str]:
    ready = event.payload
    try:
        user_id = ready["user"]["id"]
    except (KeyError, TypeError):
        raise NormalizationError("READY without user id") from None

    out = [_encode(Envelope.control(J2ME_READY, {"id": user_id}, s=event.s))]
    if state.wants(J2ME_READ_STATES):
        out.append(_encode(Envelope.control(J2ME_READ_STATES, read_state_pairs(ready), s=event.s)))
    if state.wants(READY):
        out.append(_encode(Envelope.control(READY, ready, s=event.s)))
    return out


def normalize_event(raw: str, state: SessionState) -> List[str]:
    """Return the lines (without delimiter) to send to the client for one upstream frame.

    Raises NormalizationError when a rewritten event misses required fields.
    """
    try:
        decoded = json.loads(raw)
    except ValueError as e:
        logger.warning("Undecodable upstream frame dropped: %s", e)
        return []
    if not isinstance(decoded, dict):
        logger.warning("Upstream frame is not an object, dropped")
        return []

    event = Envelope.from_dict(decoded)
    name = event.t

    if name == READY:
        return _normalize_ready(event, state)

    if name in PROJECTED_EVENTS and state.wants(J2ME_PREFIX + name):
        projected = project_message(event.payload, state.show_guild_emoji)
        return [_encode(Envelope.control(J2ME_PREFIX + name, projected, s=event.s))]

    # unnamed frames (hello, heartbeat ack, reconnect) keep the connection alive
    if not name or not state.supported_events or state.wants(name):
        return [raw]

    logger.debug("Filtered out %s", name)
    return []
