"""Background expiry of abandoned nonces.

``NonceRegistry.verify`` already rejects expired nonces; the sweeper only
keeps memory bounded when linking attempts are never completed.
"""

from __future__ import annotations

import asyncio
import logging

from discourse_near.services.nonce import NonceRegistry

logger = logging.getLogger(__name__)


class NonceSweepWorker:
    """Periodically removes expired records from a ``NonceRegistry``."""

    def __init__(self, registry: NonceRegistry, interval_seconds: float = 300.0) -> None:
        self.registry = registry
        self.interval_seconds = max(0.01, float(interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if not self.running:
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                pass
            else:
                return

            try:
                self.registry.sweep()
            except Exception:  # pragma: no cover - keep sweeping on unexpected errors
                logger.exception("Nonce sweep failed")
