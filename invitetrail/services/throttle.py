"""
invitetrail.services.throttle — Per-channel join-notice throttle
=================================================================

A join raid can fire dozens of ``on_member_join`` events per second.
Notices are rate-limited per log channel with a sliding window; overflow
goes to a bounded per-channel queue that a background task drains every
few seconds.  When a queue is full the oldest pending notice is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict, deque

import discord
from discord.abc import Messageable

logger = logging.getLogger(__name__)


class NoticeThrottle:
    """Sliding-window throttle with a bounded overflow queue per channel.

    - Up to ``max_per_window`` notices per channel per ``window`` seconds.
    - At most ``max_queued`` notices wait per channel.
    """

    def __init__(
        self,
        max_per_window: int = 5,
        window: int = 60,
        max_queued: int = 50,
        drain_interval: float = 5.0,
    ) -> None:
        self.max_per_window = max_per_window
        self.window = window
        self.max_queued = max_queued
        self.drain_interval = drain_interval
        self._timestamps: dict[int, list[float]] = defaultdict(list)
        self._queues: dict[int, deque[tuple[discord.Embed, Messageable]]] = {}
        self._drain_task: asyncio.Task | None = None

    def is_allowed(self, channel_id: int) -> bool:
        """True if a notice may go out now; records the send."""
        now = time.monotonic()
        cutoff = now - self.window
        stamps = [t for t in self._timestamps[channel_id] if t > cutoff]
        if len(stamps) >= self.max_per_window:
            self._timestamps[channel_id] = stamps
            return False
        stamps.append(now)
        self._timestamps[channel_id] = stamps
        return True

    def enqueue(self, channel_id: int, embed: discord.Embed, channel: Messageable) -> None:
        queue = self._queues.setdefault(channel_id, deque())
        if len(queue) >= self.max_queued:
            queue.popleft()
            logger.warning("Notice queue full for channel %d; dropped oldest notice", channel_id)
        queue.append((embed, channel))

    def pending(self, channel_id: int) -> int:
        return len(self._queues.get(channel_id, ()))

    async def send(self, channel: Messageable, embed: discord.Embed) -> bool:
        """Send now if the window allows, else queue.  Returns True if sent."""
        channel_id = getattr(channel, "id", 0)
        if not self.is_allowed(channel_id):
            self.enqueue(channel_id, embed, channel)
            return False
        try:
            await channel.send(embed=embed)
        except discord.HTTPException:
            logger.exception("Failed to send invite notice to channel %d", channel_id)
            return False
        return True

    async def drain_once(self) -> None:
        """Send queued notices for channels whose window has reopened."""
        for ch_id, queue in list(self._queues.items()):
            while queue and self.is_allowed(ch_id):
                embed, channel = queue.popleft()
                try:
                    await channel.send(embed=embed)
                except discord.HTTPException:
                    logger.exception("Failed to send queued notice to channel %d", ch_id)

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._drain_task is not None:
            return

        async def _drain_loop() -> None:
            while True:
                await asyncio.sleep(self.drain_interval)
                try:
                    await self.drain_once()
                except Exception:
                    logger.exception("Notice drain error")

        self._drain_task = loop.create_task(_drain_loop(), name="invite-notice-drain")

    def stop(self) -> None:
        if self._drain_task:
            self._drain_task.cancel()
            self._drain_task = None
