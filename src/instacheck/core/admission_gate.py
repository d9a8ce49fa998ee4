#!/usr/bin/env python3
"""
Admission Gate Module
Counting semaphore with a FIFO wait queue that caps in-flight lookups.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from typing import Deque

from instacheck.config import DEFAULT_CONCURRENCY

logger = logging.getLogger(__name__)


class AdmissionGate:
    """Bounded counting semaphore with strict FIFO hand-off.

    Only bookkeeping happens under ``_lock``; waiting is done on a per-caller
    future outside of it. A released permit is handed straight to the oldest
    waiter instead of being returned to the pool.
    """

    def __init__(self, capacity: int = DEFAULT_CONCURRENCY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._permits = capacity
        self._waiters: Deque[asyncio.Future] = deque()
        self._lock = threading.Lock()

    @property
    def available(self) -> int:
        with self._lock:
            return self._permits

    @property
    def waiting(self) -> int:
        with self._lock:
            return len(self._waiters)

    async def acquire(self) -> bool:
        """Wait for a permit.

        Returns True when a permit was granted, False when the caller was woken
        by ``drain_all`` and holds nothing (it must not call ``release``).
        """
        with self._lock:
            if self._permits > 0:
                self._permits -= 1
                return True
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)

        try:
            return await waiter
        except asyncio.CancelledError:
            with self._lock:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            # A permit may already have been handed over before the cancel landed
            if waiter.done() and not waiter.cancelled() and waiter.result():
                self.release()
            raise

    def release(self) -> None:
        """Return a permit, handing it to the oldest waiter if there is one."""
        with self._lock:
            if self._waiters:
                waiter = self._waiters.popleft()
            else:
                # Bounded by capacity: permits held across a drain come back here
                self._permits = min(self.capacity, self._permits + 1)
                return
        waiter.get_loop().call_soon_threadsafe(self._wake, waiter, True)

    def drain_all(self) -> None:
        """Wake every queued waiter without a permit and reset to full capacity."""
        with self._lock:
            waiters = list(self._waiters)
            self._waiters.clear()
            self._permits = self.capacity
        if waiters:
            logger.debug(f"Draining {len(waiters)} gate waiters")
        for waiter in waiters:
            waiter.get_loop().call_soon_threadsafe(self._wake, waiter, False)

    def _wake(self, waiter: asyncio.Future, admitted: bool) -> None:
        if not waiter.done():
            waiter.set_result(admitted)
        elif admitted:
            # The waiter gave up in the meantime; pass the permit along
            self.release()
