#!/usr/bin/env python3
"""
Batch Runner Module
Fans one CheckTask out per record and joins them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from instacheck.config import RunSettings
from instacheck.core.admission_gate import AdmissionGate
from instacheck.core.backoff import BackoffPolicy
from instacheck.core.cancellation import CancellationToken
from instacheck.core.check_task import CheckTask, Probe
from instacheck.core.errors import BatchRunError, InputError
from instacheck.core.models import InputRecord, RunStats
from instacheck.core.result_aggregator import ResultAggregator

logger = logging.getLogger(__name__)


class BatchRunner:
    """Runs a batch of checks behind one admission gate and one cancellation token."""

    def __init__(self, aggregator: Optional[ResultAggregator] = None, settings: Optional[RunSettings] = None):
        self.settings = settings or RunSettings()
        self.aggregator = aggregator or ResultAggregator(
            results_cap=self.settings.results_log_cap,
            info_cap=self.settings.info_log_cap,
        )
        self.backoff = BackoffPolicy(
            initial_delay_ms=self.settings.initial_delay_ms,
            growth_factor=self.settings.growth_factor,
            max_delay_ms=self.settings.max_delay_ms,
            max_jitter_ms=self.settings.max_jitter_ms,
        )
        self.tasks: List[CheckTask] = []

    async def run(self, records: Sequence[InputRecord], probe: Probe,
                  concurrency: Optional[int] = None,
                  token: Optional[CancellationToken] = None) -> RunStats:
        """Check every record and return the final stats once all tasks are terminal."""
        if not records:
            raise InputError("No valid usernames to process")

        concurrency = concurrency or self.settings.concurrency
        token = token or CancellationToken()
        gate = AdmissionGate(concurrency)
        token.add_callback(gate.drain_all)

        self.aggregator.reset(len(records))
        self.tasks = [
            CheckTask(
                record, probe, gate, token, self.aggregator,
                max_retries=self.settings.max_retries,
                probe_timeout=self.settings.probe_timeout,
                backoff=self.backoff,
                retry_unparsable=self.settings.retry_unparsable,
            )
            for record in records
        ]
        logger.info(f"Starting {len(self.tasks)} checks with concurrency {concurrency}")

        outcomes = await asyncio.gather(*(task.run() for task in self.tasks), return_exceptions=True)

        failures = [o for o in outcomes if isinstance(o, BaseException)]
        stats = self.aggregator.stats
        if failures:
            for failure in failures:
                logger.error("Check task crashed", exc_info=failure)
            raise BatchRunError(f"{len(failures)} check task(s) failed: {failures[0]!r}", stats) from failures[0]

        logger.info(
            f"Run finished: {stats.processed}/{stats.total} processed, "
            f"{stats.active} active, {stats.cancelled} cancelled"
        )
        return stats
