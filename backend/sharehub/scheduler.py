"""In-process scheduler for deferred automated chat replies."""

from __future__ import annotations

import asyncio
import logging
import os
import random
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

# purpose: run fire-and-forget reply tasks with explicit shutdown cancellation
# status: active

logger = logging.getLogger(__name__)

ReplyHandler = Callable[[UUID, str], object]


@dataclass(frozen=True)
class DeadLetter:
    user_id: UUID
    message: str
    error: str
    failed_at: datetime


def delay_range_from_env() -> tuple[float, float]:
    low = float(os.getenv("CHAT_REPLY_DELAY_MIN", "1"))
    high = float(os.getenv("CHAT_REPLY_DELAY_MAX", "3"))
    return low, max(low, high)


class ReplyScheduler:
    """Queue of pending reply tasks owned by the application lifespan.

    Each task sleeps a random delay, then runs ``handler`` in a worker
    thread. Failures land in ``dead_letters`` and are never retried.
    ``shutdown`` cancels whatever is still pending; those replies are lost.
    """

    def __init__(
        self,
        handler: ReplyHandler,
        *,
        delay_range: tuple[float, float] = (1.0, 3.0),
        dead_letter_limit: int = 100,
        rng: random.Random | None = None,
    ):
        self._handler = handler
        self._delay_range = delay_range
        self._rng = rng or random.Random()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self.dead_letters: deque[DeadLetter] = deque(maxlen=dead_letter_limit)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, user_id: UUID, message: str) -> asyncio.Task | None:
        """Queue a reply; must be called from the running event loop."""

        if self._closed:
            logger.warning("Reply scheduler closed; dropping reply for %s", user_id)
            return None
        delay = self._rng.uniform(*self._delay_range)
        task = asyncio.get_running_loop().create_task(self._run(user_id, message, delay))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, user_id: UUID, message: str, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await asyncio.to_thread(self._handler, user_id, message)
        except Exception as exc:
            logger.exception("Automated reply failed for user %s", user_id)
            self.dead_letters.append(
                DeadLetter(
                    user_id=user_id,
                    message=message,
                    error=repr(exc),
                    failed_at=datetime.now(timezone.utc),
                )
            )

    async def drain(self) -> None:
        """Wait for every currently pending reply to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d pending reply task(s)", len(tasks))
