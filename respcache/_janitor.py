from __future__ import annotations

import logging
import time
import typing as tp

import anyio
from anyio.abc import TaskStatus

from ._storages import AsyncBaseStore

logger = logging.getLogger("respcache.janitor")

__all__ = ("Janitor",)


class Janitor:
    """
    Periodically evicts entries older than the server TTL.

    Args:
        store: The store to sweep.
        ttl: Entries whose age exceeds this many seconds are removed.
        interval: Seconds between sweeps. Defaults to ``ttl``.

    Example:
        ```python
        async with anyio.create_task_group() as tg:
            await tg.start(Janitor(store, ttl=600).run)
        ```
    """

    def __init__(
        self,
        store: AsyncBaseStore,
        ttl: tp.Union[int, float],
        interval: tp.Optional[tp.Union[int, float]] = None,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.interval = interval if interval is not None else ttl

    async def sweep(self, now: tp.Optional[float] = None) -> int:
        """
        Removes every expired entry once and returns how many were removed.

        Leftover files older than the TTL that do not form a readable entry
        are removed as well, but are not counted.
        """
        now = time.time() if now is None else now
        expired = [key async for key, timestamp in self.store.scan() if now - timestamp > self.ttl]

        removed = 0
        for key in expired:
            try:
                deleted = await self.store.delete(key)
            except Exception as exc:
                logger.warning("Could not evict expired entry: key=%s error=%s", key, exc)
                continue
            if deleted:
                removed += 1
            else:
                logger.warning("Could not evict expired entry: key=%s", key)

        if removed:
            logger.info("Evicted %d expired cache entries", removed)

        pruned = await self.store.prune(now - self.ttl)
        if pruned:
            logger.info("Removed %d leftover cache files", pruned)
        return removed

    async def run(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        # A zero TTL would otherwise spin
        interval = self.interval if self.interval > 0 else 1
        logger.info("Starting cache janitor: store=%s interval=%ss", self.store.kind.value, interval)
        task_status.started()
        while True:
            await anyio.sleep(interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Cache sweep failed")
