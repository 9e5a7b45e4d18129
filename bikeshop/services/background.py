"""Fire-and-forget background work detached from the request that started it."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bikeshop.db import crud

logger = logging.getLogger(__name__)


class BackgroundCounters:
    """Runs best-effort counter updates on their own DB sessions.

    Tasks are not awaited by the request; failures are logged and dropped.
    Strong references are held until each task finishes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._tasks: set[asyncio.Task] = set()

    def fire(self, op: Callable[[AsyncSession], Awaitable[None]], label: str) -> None:
        task = asyncio.create_task(self._run(op, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, op: Callable[[AsyncSession], Awaitable[None]], label: str) -> None:
        try:
            async with self._session_factory() as db:
                await op(db)
        except Exception:
            logger.warning("Background task %s failed", label, exc_info=True)

    def ad_impression(self, ad_id: int) -> None:
        self.fire(lambda db: crud.increment_ad_impressions(db, ad_id), f"ad-impression:{ad_id}")

    def ad_click(self, ad_id: int) -> None:
        self.fire(lambda db: crud.increment_ad_clicks(db, ad_id), f"ad-click:{ad_id}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled task to finish."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))
            # let done-callbacks discard finished tasks
            await asyncio.sleep(0)
