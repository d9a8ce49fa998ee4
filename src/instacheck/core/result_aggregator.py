#!/usr/bin/env python3
"""
Result Aggregator Module
Thread-safe run counters, rolling event logs and the found-set.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Deque, List, Mapping, Optional

from instacheck.config import RESULTS_LOG_CAP, INFO_LOG_CAP
from instacheck.core.models import INFO, Outcome, ResultEvent, RunSnapshot, RunStats

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[RunSnapshot], None]


class ResultAggregator:
    """Single writer for everything a run reports.

    Every mutation happens under one lock so a counter increment is never
    interleaved with a log trim. Consumers only ever see ``RunSnapshot``
    copies. Both logs are newest-first and drop their oldest entries past
    their cap.
    """

    def __init__(self, total: int = 0, results_cap: int = RESULTS_LOG_CAP, info_cap: int = INFO_LOG_CAP):
        if results_cap < 1 or info_cap < 1:
            raise ValueError("log caps must be positive")
        self.results_cap = results_cap
        self.info_cap = info_cap
        self._lock = threading.Lock()
        self._listeners: List[SnapshotListener] = []
        self._total = 0
        self._counts = {outcome: 0 for outcome in Outcome}
        self._results: Deque[ResultEvent] = deque(maxlen=results_cap)
        self._info: Deque[ResultEvent] = deque(maxlen=info_cap)
        self._found: List[Mapping[str, str]] = []
        self.reset(total)

    def reset(self, total: int) -> None:
        """Zero all counters, clear both logs and the found-set."""
        if total < 0:
            raise ValueError("total must be non-negative")
        with self._lock:
            self._total = total
            self._counts = {outcome: 0 for outcome in Outcome}
            self._results.clear()
            self._info.clear()
            self._found.clear()
        self._notify()

    def add_listener(self, listener: SnapshotListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def record_terminal(self, outcome: Outcome, message: str,
                        payload: Optional[Mapping[str, str]] = None) -> ResultEvent:
        """Count one terminal outcome and log it; Active payloads join the found-set."""
        outcome = Outcome(outcome)
        event = ResultEvent(status=outcome.value, message=message)
        with self._lock:
            self._counts[outcome] += 1
            self._results.appendleft(event)
            if outcome is Outcome.ACTIVE and payload is not None:
                self._found.append(payload)
        logger.debug(f"[{outcome.value}] {message}")
        self._notify()
        return event

    def record_info(self, message: str) -> ResultEvent:
        event = ResultEvent(status=INFO, message=message)
        with self._lock:
            self._info.appendleft(event)
        logger.debug(message)
        self._notify()
        return event

    @property
    def stats(self) -> RunStats:
        with self._lock:
            return self._stats_locked()

    @property
    def found(self) -> List[Mapping[str, str]]:
        with self._lock:
            return list(self._found)

    def snapshot(self) -> RunSnapshot:
        with self._lock:
            return RunSnapshot(
                stats=self._stats_locked(),
                results=tuple(self._results),
                info=tuple(self._info),
                found=tuple(self._found),
            )

    def _stats_locked(self) -> RunStats:
        active = self._counts[Outcome.ACTIVE]
        available = self._counts[Outcome.AVAILABLE]
        error = self._counts[Outcome.ERROR]
        return RunStats(
            total=self._total,
            processed=active + available + error,
            active=active,
            available=available,
            error=error,
            cancelled=self._counts[Outcome.CANCELLED],
        )

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            return
        snapshot = self.snapshot()
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                # Listener errors never reach the workers
                logger.debug("Snapshot listener raised but was ignored", exc_info=True)
