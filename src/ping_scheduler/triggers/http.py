import asyncio
import logging
from typing import Set

import aiohttp

from ping_scheduler.triggers.protocol import DaemonTrigger

logger = logging.getLogger(__name__)


class HttpDaemonTrigger(DaemonTrigger):
    """
    Triggers the daemon by sending a fire-and-forget POST request to its URL.
    """

    def __init__(self, url: str, timeout: float = 1.0):
        self.url: str = url
        self.timeout: float = timeout
        self._pending: Set[asyncio.Task] = set()

    async def trigger(self) -> None:
        """
        Schedule the POST request in the background and return immediately.
        """
        task = asyncio.create_task(self._post())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _post(self) -> None:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, data=b"") as response:
                    logger.debug("Daemon trigger to %s answered with status %s", self.url, response.status)
        except asyncio.TimeoutError:
            # The daemon keeps running after we stop waiting for its response
            logger.debug("Daemon trigger to %s timed out after %s seconds", self.url, self.timeout)
        except aiohttp.ClientError as e:
            logger.warning("Daemon trigger to %s failed: %s", self.url, e)

    async def aclose(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
