#!/usr/bin/env python3
"""
Check Session Module
Start/cancel/download control surface around the batch engine.
"""

import asyncio
import logging
import threading
import time
from typing import Iterable, Optional

from instacheck.config import RunSettings
from instacheck.core.batch_runner import BatchRunner
from instacheck.core.cancellation import CancellationToken
from instacheck.core.check_task import Probe
from instacheck.core.errors import InputError, RunInProgressError
from instacheck.core.models import InputRecord, RunSnapshot, RunStats
from instacheck.core.result_aggregator import ResultAggregator, SnapshotListener
from instacheck.operations.results_handler import ResultsHandler

logger = logging.getLogger(__name__)


class RunHandle:
    """What the caller holds for one run: completion, result and cancellation."""

    def __init__(self, token: CancellationToken, aggregator: ResultAggregator, total: int):
        self.token = token
        self.total = total
        self.started_at = time.time()
        self.finished_at: Optional[float] = None
        self._aggregator = aggregator
        self._done = threading.Event()
        self._stats: Optional[RunStats] = None
        self._error: Optional[BaseException] = None

    def cancel(self) -> bool:
        """Stop dispatching new lookups. Returns False if already cancelled."""
        return self.token.signal()

    @property
    def cancelled(self) -> bool:
        return self.token.is_signalled()

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def elapsed(self) -> float:
        return (self.finished_at or time.time()) - self.started_at

    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    def result(self, timeout: Optional[float] = None) -> RunStats:
        """Block until the run is over; re-raises a run-level error."""
        if not self._done.wait(timeout):
            raise TimeoutError("Run is still processing")
        if self._error is not None:
            raise self._error
        return self._stats

    def snapshot(self) -> RunSnapshot:
        return self._aggregator.snapshot()

    def _finish(self, stats: RunStats, error: Optional[BaseException] = None) -> None:
        self._stats = stats
        self._error = error
        self.finished_at = time.time()
        self._done.set()


class CheckSession:
    """Owns the aggregator across runs and runs each batch on a background thread."""

    def __init__(self, probe: Probe, settings: Optional[RunSettings] = None,
                 results_handler: Optional[ResultsHandler] = None, source: Optional[str] = None):
        self.probe = probe
        self.settings = settings or RunSettings()
        self.results_handler = results_handler or ResultsHandler()
        self.source = source
        self.aggregator = ResultAggregator(
            results_cap=self.settings.results_log_cap,
            info_cap=self.settings.info_log_cap,
        )
        self._handle: Optional[RunHandle] = None
        self._lock = threading.Lock()

    @property
    def handle(self) -> Optional[RunHandle]:
        return self._handle

    @property
    def is_processing(self) -> bool:
        handle = self._handle
        return handle is not None and not handle.done()

    def add_observer(self, listener: SnapshotListener) -> None:
        self.aggregator.add_listener(listener)

    def snapshot(self) -> RunSnapshot:
        return self.aggregator.snapshot()

    def start(self, records: Iterable[InputRecord]) -> RunHandle:
        """Launch a run and return immediately with its handle."""
        records = list(records)
        if not records:
            raise InputError("No valid usernames to process")

        with self._lock:
            if self.is_processing:
                raise RunInProgressError("Processing is already running")
            handle = RunHandle(CancellationToken(), self.aggregator, len(records))
            self._handle = handle
            self.aggregator.reset(len(records))

        thread = threading.Thread(
            target=self._run_in_thread,
            args=(handle, records),
            name="instacheck-run",
            daemon=True,
        )
        thread.start()
        logger.info(f"Started run with {len(records)} usernames")
        return handle

    def run(self, records: Iterable[InputRecord]) -> RunStats:
        """Blocking convenience wrapper around ``start``."""
        return self.start(records).result()

    def cancel(self) -> bool:
        """Cancel the current run; a no-op when idle or already cancelled."""
        handle = self._handle
        if handle is None or handle.done():
            return False
        cancelled = handle.cancel()
        if cancelled:
            stats = self.aggregator.stats
            logger.info(f"Cancellation requested with {stats.remaining} usernames not yet settled")
        return cancelled

    def download_found(self, output_file: Optional[str] = None, *, output_dir: Optional[str] = None,
                       output_format: Optional[str] = None) -> str:
        """Export the current found-set; raises ExportError when it is empty."""
        return self.results_handler.save_found(
            self.aggregator.found,
            output_file,
            output_dir=output_dir,
            output_format=output_format,
            source=self.source,
        )

    def _run_in_thread(self, handle: RunHandle, records) -> None:
        runner = BatchRunner(self.aggregator, self.settings)
        try:
            stats = asyncio.run(runner.run(records, self.probe, self.settings.concurrency, handle.token))
        except Exception as e:
            logger.exception(f"Processing error: {e}")
            handle._finish(self.aggregator.stats, e)
        else:
            handle._finish(stats)
