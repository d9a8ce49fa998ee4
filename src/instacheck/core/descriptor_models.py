#!/usr/bin/env python3
"""
Descriptor models for declarative lookup services.

These dataclasses define a small schema for authoring JSON/YAML descriptors
that describe a single-request profile lookup and how its response maps onto
a probe outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Dict, Optional


@dataclass
class Endpoint:
    name: str
    method: str
    url: str  # may contain ${username}
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)


@dataclass
class Classification:
    found_path: str = "data.user"  # dotted path into the JSON body
    success_statuses: List[int] = field(default_factory=lambda: [200])
    not_found_statuses: List[int] = field(default_factory=lambda: [404])
    rate_limit_statuses: List[int] = field(default_factory=lambda: [429])


@dataclass
class LookupDescriptor:
    schema_version: int
    service_key: str
    display_name: str
    endpoint: Endpoint
    description: str = ""
    timeouts: Dict[str, int] = field(default_factory=dict)  # e.g., {"request": 30}
    recommended_concurrency: Optional[int] = None
    classification: Classification = field(default_factory=Classification)


def _coerce_statuses(values, default: List[int]) -> List[int]:
    if values is None:
        return list(default)
    if isinstance(values, (int, str)):
        values = [values]
    return [int(v) for v in values]


def _coerce_classification(obj: Optional[dict]) -> Classification:
    if not obj:
        return Classification()
    base = Classification()
    return Classification(
        found_path=str(obj.get("found_path", base.found_path)).strip(),
        success_statuses=_coerce_statuses(obj.get("success_statuses"), base.success_statuses),
        not_found_statuses=_coerce_statuses(obj.get("not_found_statuses"), base.not_found_statuses),
        rate_limit_statuses=_coerce_statuses(obj.get("rate_limit_statuses"), base.rate_limit_statuses),
    )


def _coerce_endpoint(obj: dict) -> Endpoint:
    return Endpoint(
        name=str(obj.get("name", "lookup")),
        method=str(obj.get("method", "GET")).upper(),
        url=str(obj["url"]),
        headers={str(k): str(v) for k, v in dict(obj.get("headers", {})).items()},
        query={str(k): str(v) for k, v in dict(obj.get("query", {})).items()},
    )


def from_dict(data: dict) -> LookupDescriptor:
    """Create a LookupDescriptor from a dict with minimal validation."""
    endpoint = data.get("endpoint")
    if not isinstance(endpoint, dict) or not endpoint.get("url"):
        raise ValueError("descriptor needs an 'endpoint' mapping with a 'url'")
    service_key = str(data["service_key"]).strip()
    recommended = data.get("recommended_concurrency")

    return LookupDescriptor(
        schema_version=int(data.get("schema_version", 1)),
        service_key=service_key,
        display_name=str(data.get("display_name", service_key)).strip(),
        description=str(data.get("description", "")).strip(),
        timeouts=dict(data.get("timeouts", {})),
        recommended_concurrency=int(recommended) if recommended is not None else None,
        endpoint=_coerce_endpoint(endpoint),
        classification=_coerce_classification(data.get("classification")),
    )
