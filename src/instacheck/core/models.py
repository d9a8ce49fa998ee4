#!/usr/bin/env python3
"""
Core models and result schemas for InstaCheck.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple


class Outcome(str, Enum):
    """Terminal classification of one input record."""
    ACTIVE = "ACTIVE"
    AVAILABLE = "AVAILABLE"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"


INFO = "INFO"


class ProbeStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True)
class ProbeOutcome:
    """What a single remote lookup reported. ``detail`` is free text."""
    status: ProbeStatus
    detail: str = ""

    @classmethod
    def found(cls, detail: str = "Active") -> "ProbeOutcome":
        return cls(ProbeStatus.FOUND, detail)

    @classmethod
    def not_found(cls, detail: str = "Available") -> "ProbeOutcome":
        return cls(ProbeStatus.NOT_FOUND, detail)

    @classmethod
    def rate_limited(cls, detail: str = "Rate limited") -> "ProbeOutcome":
        return cls(ProbeStatus.RATE_LIMITED, detail)

    @classmethod
    def transient(cls, detail: str) -> "ProbeOutcome":
        return cls(ProbeStatus.TRANSIENT, detail)

    @classmethod
    def fatal(cls, detail: str) -> "ProbeOutcome":
        return cls(ProbeStatus.FATAL, detail)


@dataclass(frozen=True)
class InputRecord:
    """One identifier to check plus the full original row it came from."""
    key: str
    payload: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.key, str) or not self.key.strip():
            raise ValueError("InputRecord key must be a non-empty string")
        # Private read-only copy of the row
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))


@dataclass(frozen=True)
class ResultEvent:
    status: str  # an Outcome value or INFO
    message: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class RunStats:
    total: int = 0
    processed: int = 0
    active: int = 0
    available: int = 0
    error: int = 0
    cancelled: int = 0

    @property
    def settled(self) -> int:
        return self.processed + self.cancelled

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.settled)


@dataclass(frozen=True)
class RunSnapshot:
    """Immutable view of an aggregator at one point in time."""
    stats: RunStats
    results: Tuple[ResultEvent, ...] = ()
    info: Tuple[ResultEvent, ...] = ()
    found: Tuple[Mapping[str, str], ...] = ()
