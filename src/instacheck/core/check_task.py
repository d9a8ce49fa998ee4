#!/usr/bin/env python3
"""
Check Task Module
Drives one username through admission, probing, backoff and classification.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from instacheck.config import MAX_RETRIES, REQUEST_TIMEOUT
from instacheck.core.admission_gate import AdmissionGate
from instacheck.core.backoff import BackoffPolicy
from instacheck.core.cancellation import CancellationToken
from instacheck.core.models import InputRecord, Outcome, ProbeOutcome, ProbeStatus
from instacheck.core.result_aggregator import ResultAggregator
from instacheck.utils import truncate_string

logger = logging.getLogger(__name__)

Probe = Callable[[str], Awaitable[ProbeOutcome]]


class TaskState(str, Enum):
    PENDING = "pending"
    ADMITTED = "admitted"
    PROBING = "probing"
    BACKOFF_WAIT = "backoff_wait"
    TERMINAL = "terminal"


class CheckTask:
    """Retry state machine for a single input record.

    Cancellation is observed at loop entry, right after a permit is granted
    and around the backoff delay. A probe that was already dispatched is
    allowed to settle and its outcome is still recorded.
    """

    def __init__(self, record: InputRecord, probe: Probe, gate: AdmissionGate,
                 token: CancellationToken, aggregator: ResultAggregator, *,
                 max_retries: int = MAX_RETRIES, probe_timeout: float = REQUEST_TIMEOUT,
                 backoff: Optional[BackoffPolicy] = None, retry_unparsable: bool = False):
        if max_retries < 1:
            raise ValueError("max_retries must be a positive integer")
        self.record = record
        self.probe = probe
        self.gate = gate
        self.token = token
        self.aggregator = aggregator
        self.max_retries = max_retries
        self.probe_timeout = probe_timeout
        self.backoff = backoff or BackoffPolicy()
        self.retry_unparsable = retry_unparsable

        self.state = TaskState.PENDING
        self.attempts = 0
        self.probes_dispatched = 0
        self.outcome: Optional[Outcome] = None

    @property
    def key(self) -> str:
        return self.record.key

    async def run(self) -> Outcome:
        delay_ms = self.backoff.initial_delay_ms

        while True:
            if self.token.is_signalled():
                return self._cancel()

            admitted = await self.gate.acquire()
            try:
                if not admitted or self.token.is_signalled():
                    return self._cancel()
                self.state = TaskState.ADMITTED
                result = await self._probe_once()
            finally:
                if admitted:
                    self.gate.release()

            status = result.status
            if status is ProbeStatus.FATAL and self.retry_unparsable:
                status = ProbeStatus.TRANSIENT

            if status is ProbeStatus.FOUND:
                return self._finish(Outcome.ACTIVE, f"{self.key} - Active")
            if status is ProbeStatus.NOT_FOUND:
                return self._finish(Outcome.AVAILABLE, f"{self.key} - {result.detail or 'Available'}")
            if status is ProbeStatus.FATAL:
                return self._finish(Outcome.ERROR, f"{self.key} - {result.detail or 'Unreadable response'}")

            self.attempts += 1
            delay_ms = self.backoff.next_delay(self.attempts, delay_ms)
            if status is ProbeStatus.RATE_LIMITED:
                self.aggregator.record_info(f"Rate limited for {self.key}, waiting {int(delay_ms)}ms...")
            else:
                self.aggregator.record_info(
                    f"Retry {self.attempts}/{self.max_retries} for {self.key} ({result.detail})"
                )

            if self.attempts >= self.max_retries:
                return self._finish(Outcome.ERROR, f"{self.key} - Max retries exceeded")

            if self.token.is_signalled():
                return self._cancel()
            self.state = TaskState.BACKOFF_WAIT
            await self.token.sleep(delay_ms / 1000.0)

    async def _probe_once(self) -> ProbeOutcome:
        """Dispatch one probe under the timeout; failures become transient outcomes."""
        self.state = TaskState.PROBING
        self.probes_dispatched += 1
        try:
            return await asyncio.wait_for(self.probe(self.key), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            return ProbeOutcome.transient("Timeout")
        except Exception as e:
            logger.debug(f"Probe for {self.key} raised", exc_info=True)
            return ProbeOutcome.transient(truncate_string(str(e) or type(e).__name__, 50))

    def _cancel(self) -> Outcome:
        return self._finish(Outcome.CANCELLED, f"Cancelled: {self.key}")

    def _finish(self, outcome: Outcome, message: str) -> Outcome:
        if self.outcome is not None:
            raise RuntimeError(f"Task for {self.key} already finished as {self.outcome.value}")
        self.outcome = outcome
        self.state = TaskState.TERMINAL
        payload = self.record.payload if outcome is Outcome.ACTIVE else None
        self.aggregator.record_terminal(outcome, message, payload)
        return outcome
