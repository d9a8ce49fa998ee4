#!/usr/bin/env python3
"""
Exceptions raised by the check engine and its collaborators.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from instacheck.core.models import RunStats


class InstacheckError(Exception):
    """Base class for all InstaCheck errors."""


class InputError(InstacheckError, ValueError):
    """No usable records could be obtained from the input source."""


class ExportError(InstacheckError):
    """The found-set could not be written."""


class RunInProgressError(InstacheckError):
    """A run was started while another one is still processing."""


class BatchRunError(InstacheckError):
    """An exception escaped task orchestration itself.

    Per-item outcomes recorded before the failure are preserved in ``stats``.
    """

    def __init__(self, message: str, stats: Optional["RunStats"] = None):
        super().__init__(message)
        self.stats = stats
