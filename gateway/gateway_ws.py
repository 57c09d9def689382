import asyncio
import logging
from typing import Awaitable, Callable, Optional

import websockets

import config


logger = logging.getLogger("UpstreamRelay")


class UpstreamRelay:
    """
    Outbound WebSocket leg of one client session.

    - At most one upstream connection at a time; connect() replaces the old one.
    - Inbound frames go to `on_message` in arrival order.
    - When the connection ends for any reason other than shutdown()/replacement,
      `on_closed(reason)` is called exactly once.
    """

    def __init__(self, on_message: Callable[[str], Awaitable[None]],
                 on_closed: Callable[[str], Awaitable[None]],
                 connect: Callable = websockets.connect,
                 max_size: Optional[int] = config.UPSTREAM_MAX_SIZE) -> None:
        self.on_message = on_message
        self.on_closed = on_closed
        self._connect = connect
        self.max_size = max_size
        self.ws = None
        self._task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self.ws is not None

    async def connect(self, url: str):
        await self.shutdown()
        logger.info("Connecting upstream: %s", url)
        try:
            ws = await self._connect(url, max_size=self.max_size)
        except Exception as e:  # bad URI, refused, handshake rejected
            logger.error("Upstream connect error: %s", e)
            await self.on_closed(str(e))
            return
        self.ws = ws
        self._task = asyncio.create_task(self._pump(ws))

    async def _pump(self, ws):
        try:
            async for frame in ws:
                if isinstance(frame, (bytes, bytearray)):
                    frame = bytes(frame).decode("utf-8", errors="replace")
                await self.on_message(frame)
            reason = ws.close_reason or ""
            logger.info("Upstream closed: %r", reason)
        except websockets.exceptions.ConnectionClosed as e:
            reason = ws.close_reason or str(e)
            logger.error("Upstream connection lost: %s", e)
        except Exception as e:
            reason = str(e)
            logger.error("Error reading from upstream: %s", e)
            try:
                await ws.close()
            except Exception:
                pass

        # replaced or shut down on purpose: nobody to tell
        if ws is not self.ws:
            return
        self.ws = None
        await self.on_closed(reason)

    async def send(self, text: str) -> bool:
        ws = self.ws
        if ws is None:
            logger.debug("No upstream connection, dropped: %s", text)
            return False
        try:
            await ws.send(text)
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning("Upstream send failed: %s", e)
            return False
        return True

    async def disconnect(self):
        """Client-requested close; the pump still reports it through on_closed."""
        if self.ws is not None:
            await self.ws.close()

    async def shutdown(self):
        """Close without notifying, used for teardown and reconnects."""
        ws, task = self.ws, self._task
        self.ws, self._task = None, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug("Upstream close error: %s", e)
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)
