#!/usr/bin/env python3
"""
Cancellation Token Module
Cooperative, single-use cancellation shared by every task of one run.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, List, Set

logger = logging.getLogger(__name__)


def _settle(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_result(True)


class CancellationToken:
    """One-way cancellation flag.

    ``signal`` may be called from any thread. Tasks poll ``is_signalled`` at
    their checkpoints; nothing in flight is interrupted. Callbacks registered
    with ``add_callback`` (the admission gate drain) run once, on the first
    signal.
    """

    def __init__(self):
        self._signalled = False
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self._sleepers: Set[asyncio.Future] = set()

    def is_signalled(self) -> bool:
        return self._signalled

    def signal(self) -> bool:
        """Signal cancellation. Returns True only for the call that flipped the flag."""
        with self._lock:
            if self._signalled:
                return False
            self._signalled = True
            callbacks = list(self._callbacks)
            sleepers = list(self._sleepers)
            self._callbacks.clear()

        for sleeper in sleepers:
            sleeper.get_loop().call_soon_threadsafe(_settle, sleeper)
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")
        logger.info("Cancellation signalled")
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on signal, or right away if already signalled."""
        with self._lock:
            if not self._signalled:
                self._callbacks.append(callback)
                return
        callback()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``, waking early on signal. Returns ``is_signalled()``."""
        if self._signalled:
            return True
        waiter = asyncio.get_running_loop().create_future()
        with self._lock:
            if self._signalled:
                return True
            self._sleepers.add(waiter)
        try:
            await asyncio.wait_for(waiter, timeout=max(seconds, 0))
        except asyncio.TimeoutError:
            pass
        finally:
            with self._lock:
                self._sleepers.discard(waiter)
        return self._signalled
