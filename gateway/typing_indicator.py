import asyncio
import logging
from typing import Optional, Set

import aiohttp

import config
from .device import DEFAULT_HEADERS

logger = logging.getLogger("TypingIndicator")


class TypingDispatcher:
    """
    Fire-and-forget typing indicator calls to the upstream REST API.

    - One HTTP session per client session, created on first use.
    - Failures are logged and never retried; the caller never waits on them.
    """

    def __init__(self, api_base: str = config.API_BASE, timeout: float = config.TYPING_TIMEOUT) -> None:
        self.api_base = api_base
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._http: Optional[aiohttp.ClientSession] = None
        self._pending: Set[asyncio.Task] = set()

    def typing_url(self, channel_id: str) -> str:
        return f"{self.api_base}/channels/{channel_id}/typing"

    def headers_for(self, token: Optional[str]) -> dict:
        headers = dict(DEFAULT_HEADERS)
        if token:
            headers["Authorization"] = token
        return headers

    def send_typing(self, channel_id: str, token: Optional[str]) -> asyncio.Task:
        task = asyncio.create_task(self._post(self.typing_url(channel_id), self.headers_for(token)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _post(self, url: str, headers: dict):
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(timeout=self.timeout)
        try:
            async with self._http.post(url, data=b"", headers=headers) as resp:
                if resp.status >= 400:
                    logger.warning("Typing request to %s failed: HTTP %s", url, resp.status)
                else:
                    logger.debug("Typing sent: %s", url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Typing request to %s failed: %s", url, e)

    async def close(self):
        """Abandon in-flight requests and release the HTTP session."""
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self._http is not None:
            await self._http.close()
            self._http = None
