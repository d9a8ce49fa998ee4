#!/usr/bin/env python3
"""
DeclarativeProbe executes username lookups defined via JSON/YAML descriptors.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from instacheck.config import ENV_DEBUG_REQUESTS, REQUEST_TIMEOUT
from instacheck.core.descriptor_models import LookupDescriptor
from instacheck.core.models import ProbeOutcome
from instacheck.utils import truncate_string

logger = logging.getLogger(__name__)

_MISSING = object()


def resolve_path(data: Any, path: str) -> Any:
    """Follow a dotted path through nested mappings; None when any hop is missing."""
    node = data
    for part in [p for p in path.lstrip("$.").split(".") if p]:
        if not isinstance(node, dict):
            return None
        node = node.get(part, _MISSING)
        if node is _MISSING:
            return None
    return node


class DeclarativeProbe:
    """Runtime for descriptor-defined lookups.

    ``check`` is the async probe handed to the engine; the blocking request
    runs on a worker thread so the event loop keeps scheduling other tasks.
    """

    def __init__(self, descriptor: LookupDescriptor, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.descriptor = descriptor
        self.session = session or requests.Session()
        self._setup_session()
        effective_timeout = timeout or descriptor.timeouts.get("request") or REQUEST_TIMEOUT
        self.timeout = max(float(effective_timeout), 1.0)

    @property
    def service_name(self) -> str:
        return self.descriptor.display_name

    def _setup_session(self):
        self.session.headers.update(
            {
                "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
                "Accept": "*/*",
                "Accept-Language": "en-US,en;q=0.9",
            }
        )
        self.session.headers.update(self.descriptor.endpoint.headers)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "DeclarativeProbe":
        return self

    def __exit__(self, *_args) -> None:
        self.close()

    def render(self, template: str, ctx: Dict[str, Any], url_safe: bool = False) -> str:
        out = template
        for k, v in ctx.items():
            value = quote(str(v), safe="") if url_safe else str(v)
            out = out.replace(f"${{{k}}}", value)
        return out

    async def check(self, username: str) -> ProbeOutcome:
        return await asyncio.to_thread(self.check_username, username)

    __call__ = check

    def check_username(self, username: str) -> ProbeOutcome:
        """Perform one blocking lookup and map the response onto a ProbeOutcome."""
        ctx = {"username": username}
        ep = self.descriptor.endpoint
        url = self.render(ep.url, ctx, url_safe=True)
        params = {k: self.render(v, ctx) for k, v in ep.query.items()}

        try:
            resp = self.session.request(
                ep.method,
                url,
                params=params or None,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            return ProbeOutcome.transient("Timeout")
        except requests.exceptions.ConnectionError:
            return ProbeOutcome.transient("Connection failed")
        except requests.exceptions.RequestException as e:
            return ProbeOutcome.transient(truncate_string(str(e) or type(e).__name__, 50))

        line = f"Descriptor {self.descriptor.service_key}/{ep.name}: {username} status={resp.status_code}"
        logger.debug(line)
        if os.environ.get(ENV_DEBUG_REQUESTS) == "1":
            print(line, flush=True)

        return self.classify(resp)

    def classify(self, resp: requests.Response) -> ProbeOutcome:
        rules = self.descriptor.classification
        code = resp.status_code

        if code in rules.not_found_statuses:
            return ProbeOutcome.not_found("Available")
        if code in rules.success_statuses:
            try:
                data = resp.json()
            except ValueError:
                return ProbeOutcome.fatal("JSON Parse Error")
            if not isinstance(data, dict):
                return ProbeOutcome.fatal("JSON Parse Error")
            if resolve_path(data, rules.found_path) is not None:
                return ProbeOutcome.found()
            return ProbeOutcome.not_found("Available (No User Data)")
        if code in rules.rate_limit_statuses:
            return ProbeOutcome.rate_limited()
        return ProbeOutcome.transient(f"Status: {code}")
