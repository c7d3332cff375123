"""
Connectivity Monitor for NoteBrain Sync
Tracks server reachability and reports when the connection comes back.
"""

import asyncio
import logging
from typing import Callable, List, Optional

import requests

from config import is_valid_base_url
from models import SyncState

logger = logging.getLogger(__name__)


def http_probe(session: requests.Session, base_url: Optional[str], timeout: float = 5.0) -> Callable[[], bool]:
    """Build a probe that treats any HTTP answer from the server as reachable."""

    def probe() -> bool:
        if not is_valid_base_url(base_url):
            return False
        try:
            session.head(base_url, timeout=timeout, allow_redirects=False)
            return True
        except requests.exceptions.RequestException as e:
            logger.debug(f"Reachability probe failed: {e}")
            return False

    return probe


class ConnectivityMonitor:
    def __init__(
        self,
        probe: Optional[Callable[[], bool]] = None,
        interval: float = 10.0,
        state: Optional[SyncState] = None,
    ):
        self.probe = probe
        self.interval = interval
        self.state = state
        self._connected = False
        self._listeners: List[Callable[[], None]] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    def attach_state(self, state: SyncState) -> None:
        self.state = state
        state.is_connected = self._connected

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback fired on every disconnected -> connected edge."""
        self._listeners.append(callback)

    def update(self, connected: bool) -> bool:
        """
        Record a reachability observation.

        Returns:
            True if this observation restored connectivity
        """
        was_connected = self._connected
        self._connected = bool(connected)
        if self.state is not None:
            self.state.is_connected = self._connected
        if was_connected == self._connected:
            return False

        if not self._connected:
            logger.info("📴 Server unreachable")
            return False

        logger.info("📶 Connectivity restored")
        for callback in list(self._listeners):
            try:
                callback()
            except Exception as e:
                logger.error(f"Connectivity listener failed: {e}")
        return True

    async def check_once(self) -> bool:
        if self.probe is None:
            return self._connected
        connected = await asyncio.to_thread(self.probe)
        self.update(connected)
        return connected

    async def run(self) -> None:
        while True:
            await self.check_once()
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
