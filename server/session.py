import asyncio
import json
import logging
import re
from typing import Optional

from gateway.device import rewrite_identity
from gateway.gateway_ws import UpstreamRelay
from gateway.normalizer import normalize_event
from gateway.parse_message import NormalizationError, SNOWFLAKE
from gateway.typing_indicator import TypingDispatcher
from .protocol import LineFramer, send_line, send_msg
from .tcp_state import (
    Envelope, SessionState,
    GATEWAY_HELLO, GATEWAY_CONNECT, GATEWAY_DISCONNECT,
    GATEWAY_UPDATE_SUPPORTED_EVENTS, GATEWAY_SHOW_GUILD_EMOJI, GATEWAY_SEND_TYPING,
)

logger = logging.getLogger("Session")

CHANNEL_ID_RE = re.compile(SNOWFLAKE, re.ASCII)
READ_SIZE = 64 * 1024


class Session:
    """
    One constrained client connection and its upstream leg.

    - Client lines are handled in arrival order by a single read loop, which
      is also the only writer of `state`.
    - Upstream frames go through the normalizer and are written back as lines.
    - Whichever side ends first tears down the other.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                 relay: Optional[UpstreamRelay] = None,
                 typing: Optional[TypingDispatcher] = None) -> None:
        self.reader = reader
        self.writer = writer
        self.state = SessionState()
        self.framer = LineFramer()
        self.relay = relay or UpstreamRelay(self.on_upstream_message, self.on_upstream_closed)
        self.typing = typing or TypingDispatcher()
        self._terminated = asyncio.Event()
        peer = writer.get_extra_info("peername")
        self.peer = f"{peer[0]}:{peer[1]}" if peer else "?"

    @property
    def terminated(self) -> bool:
        return self._terminated.is_set()

    async def send_object(self, env: Envelope):
        await send_msg(self.writer, env.to_dict())

    # ---- lifecycle ----
    async def run(self):
        await self.send_object(Envelope.control(GATEWAY_HELLO))

        client_task = asyncio.create_task(self._pump_client())
        closed_task = asyncio.create_task(self._terminated.wait())
        try:
            await asyncio.wait([client_task, closed_task], return_when=asyncio.FIRST_COMPLETED)
        finally:
            client_task.cancel()
            closed_task.cancel()
            await self.close()

    async def _pump_client(self):
        while True:
            try:
                chunk = await self.reader.read(READ_SIZE)
            except ConnectionError as e:
                logger.info("Client %s connection error: %s", self.peer, e)
                break
            if not chunk:
                logger.info("Client %s disconnected", self.peer)
                break
            for line in self.framer.feed(chunk):
                await self.handle_message(line)

    async def close(self):
        self._terminated.set()
        # client socket first: nothing pending may keep it half open
        if not self.writer.is_closing():
            self.writer.close()
        await self.relay.shutdown()
        await self.typing.close()
        try:
            await self.writer.wait_closed()
        except Exception:
            pass

    # ---- client -> gateway ----
    async def handle_message(self, line: str):
        logger.debug("From client %s: %s", self.peer, line)
        try:
            parsed = json.loads(line)
        except ValueError as e:
            logger.warning("Invalid JSON from %s dropped: %s", self.peer, e)
            return
        if not isinstance(parsed, dict):
            logger.warning("Non-object message from %s dropped", self.peer)
            return

        env = Envelope.from_dict(parsed)
        if env.is_control:
            await self.handle_proxy_message(env)
            return

        payload = parsed.get("d")
        if isinstance(payload, dict):
            if payload.get("token"):
                self.state.auth_token = payload["token"]
            rewrite_identity(payload)

        await self.relay.send(json.dumps(parsed, separators=(",", ":"), ensure_ascii=False))

    async def handle_proxy_message(self, env: Envelope):
        t, d = env.t, env.payload
        try:
            if t == GATEWAY_CONNECT:
                self.state.supported_events = set(d.get("supported_events") or [])
                await self.relay.connect(d["url"])
            elif t == GATEWAY_DISCONNECT:
                await self.relay.disconnect()
            elif t == GATEWAY_UPDATE_SUPPORTED_EVENTS:
                self.state.supported_events = set(d.get("supported_events") or [])
            elif t == GATEWAY_SHOW_GUILD_EMOJI:
                self.state.show_guild_emoji = bool(d)
            elif t == GATEWAY_SEND_TYPING:
                channel_id = str(d)
                if CHANNEL_ID_RE.fullmatch(channel_id):
                    self.typing.send_typing(channel_id, self.state.auth_token)
            else:
                logger.debug("Unknown control message ignored: %s", t)
        except (AttributeError, KeyError, TypeError) as e:
            logger.warning("Malformed %s from %s dropped: %r", t, self.peer, e)

    # ---- upstream -> client ----
    async def on_upstream_message(self, raw: str):
        try:
            lines = normalize_event(raw, self.state)
        except NormalizationError as e:
            logger.warning("Upstream event dropped: %s", e)
            return
        except Exception:
            logger.exception("Failed to normalize upstream event")
            return
        for line in lines:
            await send_line(self.writer, line)

    async def on_upstream_closed(self, reason: str):
        if self.terminated:
            return
        logger.info("Upstream of %s closed: %r", self.peer, reason)
        await self.send_object(Envelope.control(GATEWAY_DISCONNECT, {"message": reason}))
        # losing upstream ends the whole session
        self._terminated.set()
