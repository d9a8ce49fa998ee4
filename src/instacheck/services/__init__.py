#!/usr/bin/env python3
"""
Services Package

Dynamic lookup-service registration (descriptor-only).

Descriptor source resolution rules when duplicates exist (same basename):
- Prefer JSON (.json) over YAML (.yaml/.yml).
- When multiple files exist for the same basename, a warning is logged and the
  selected file path is recorded for display in the CLI.

Extra descriptor directories can be injected through the
INSTACHECK_DESCRIPTOR_DIRS environment variable (path-separated).
"""

import json
import logging
import os
import re
from typing import Dict, List, Optional, Tuple

import yaml

from instacheck.config import ENV_DESCRIPTOR_DIRS
from instacheck.core.declarative_probe import DeclarativeProbe
from instacheck.core.descriptor_models import LookupDescriptor, from_dict as descriptor_from_dict

logger = logging.getLogger(__name__)

# Selected descriptors (after resolving duplicates)
DESCRIPTOR_REGISTRY: Dict[str, LookupDescriptor] = {}

# Service metadata for CLI/help surfaces
SERVICE_CONFIGURATIONS: Dict[str, dict] = {}

# Track descriptor source paths and duplicates for transparency in CLI
DESCRIPTOR_SOURCES: Dict[str, dict] = {}
_DUPLICATE_WARNINGS: List[str] = []

_NAME_INDEX: Dict[str, str] = {}


def descriptor_search_dirs() -> List[str]:
    """Package descriptor directory plus any extras from the environment."""
    dirs = []
    builtin = os.path.join(os.path.dirname(__file__), 'descriptors')
    if os.path.isdir(builtin):
        dirs.append(builtin)
    extra = os.environ.get(ENV_DESCRIPTOR_DIRS)
    if extra:
        for d in extra.split(os.path.pathsep):
            d = d.strip()
            if d and os.path.isdir(d):
                dirs.append(d)
    return dirs


def _parse_descriptor(path: str) -> Optional[LookupDescriptor]:
    try:
        with open(path, 'r', encoding='utf-8') as fh:
            if path.endswith('.json'):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
        if not isinstance(data, dict):
            logger.warning(f"Descriptor file is not a mapping: {os.path.basename(path)}")
            return None
        return descriptor_from_dict(data)
    except (OSError, ValueError, KeyError, yaml.YAMLError) as e:
        # Unreadable descriptors are skipped, not fatal
        logger.warning(f"Failed to parse descriptor '{os.path.basename(path)}': {e}")
        return None


def scan_descriptors(search_dirs: List[str]) -> Tuple[Dict[str, LookupDescriptor], Dict[str, dict], List[str]]:
    """Discover descriptors under ``search_dirs``.

    Returns (descriptors by key, source info by key, duplicate warnings).
    """
    groups: Dict[str, List[Tuple[str, str]]] = {}
    for d in search_dirs:
        try:
            files = sorted(f for f in os.listdir(d) if f.lower().endswith(('.json', '.yaml', '.yml')))
        except OSError:
            files = []
        for fname in files:
            base, ext = os.path.splitext(fname)
            groups.setdefault(base, []).append((os.path.join(d, fname), ext.lower()))

    descriptors: Dict[str, LookupDescriptor] = {}
    sources: Dict[str, dict] = {}
    warnings: List[str] = []

    for base, candidates in sorted(groups.items()):
        json_candidates = sorted(p for p, ext in candidates if ext == '.json')
        yaml_candidates = sorted(p for p, ext in candidates if ext in ('.yaml', '.yml'))
        selected_path = (json_candidates or yaml_candidates)[0]

        if len(candidates) > 1:
            warning = (
                f"Multiple descriptor files for service '{base}': "
                f"{', '.join(sorted(os.path.basename(p) for p, _ in candidates))}. "
                f"Selected '{os.path.basename(selected_path)}' (JSON preferred)."
            )
            warnings.append(warning)
            logger.warning(warning)

        desc = _parse_descriptor(selected_path)
        if not desc:
            continue

        descriptors[desc.service_key] = desc
        sources[desc.service_key] = {
            'selected_path': selected_path,
            'selected_file': os.path.basename(selected_path),
            'candidates': [p for p, _ in candidates],
        }

    return descriptors, sources, warnings


def reload_descriptors(search_dirs: Optional[List[str]] = None) -> None:
    """(Re)populate the module registries from ``search_dirs`` (default: package + env)."""
    descriptors, sources, warnings = scan_descriptors(
        search_dirs if search_dirs is not None else descriptor_search_dirs()
    )
    DESCRIPTOR_REGISTRY.clear()
    DESCRIPTOR_REGISTRY.update(descriptors)
    DESCRIPTOR_SOURCES.clear()
    DESCRIPTOR_SOURCES.update(sources)
    _DUPLICATE_WARNINGS[:] = warnings

    SERVICE_CONFIGURATIONS.clear()
    for key, desc in descriptors.items():
        SERVICE_CONFIGURATIONS[key] = {
            'name': desc.display_name,
            'description': desc.description or 'Declarative lookup service',
            'recommended_concurrency': desc.recommended_concurrency,
            'request_timeout': desc.timeouts.get('request'),
            'aliases': [desc.display_name],
            'descriptor_file': sources[key]['selected_file'],
            'descriptor_path': sources[key]['selected_path'],
        }

    _NAME_INDEX.clear()
    _NAME_INDEX.update(_build_name_index())


# --- Flexible name handling -------------------------------------------------

def _normalize_name(name: str) -> str:
    """Normalize user-provided service names for flexible matching."""
    return re.sub(r"[^a-z0-9]", "", name.lower())


def _build_name_index() -> Dict[str, str]:
    """Build a mapping of normalized names to canonical service keys."""
    index = {}
    for key, cfg in SERVICE_CONFIGURATIONS.items():
        index[_normalize_name(key)] = key
        for alias in [cfg.get('name')] + list(cfg.get('aliases') or []):
            if isinstance(alias, str):
                index[_normalize_name(alias)] = key
    return index


def resolve_service_key(name_or_key: str) -> Optional[str]:
    """Resolve a user-provided service identifier to a canonical key."""
    if not name_or_key:
        return None
    if name_or_key in DESCRIPTOR_REGISTRY:
        return name_or_key
    return _NAME_INDEX.get(_normalize_name(name_or_key))


def available_services() -> List[str]:
    return sorted(DESCRIPTOR_REGISTRY)


def create_probe(service_key: str, timeout: Optional[float] = None) -> DeclarativeProbe:
    """Factory: build a DeclarativeProbe for a registered service (accepts aliases)."""
    canonical = resolve_service_key(service_key)
    if canonical is None:
        raise ValueError(
            f"Service '{service_key}' is not registered. "
            f"Available services: {', '.join(available_services()) or 'none'}"
        )
    return DeclarativeProbe(DESCRIPTOR_REGISTRY[canonical], timeout=timeout)


def get_service_info(service_key: str) -> Optional[dict]:
    """Get configuration info for a service (accepts aliases)."""
    canonical = resolve_service_key(service_key) or service_key
    return SERVICE_CONFIGURATIONS.get(canonical)


def get_descriptor_source(service_key: str) -> Optional[dict]:
    """Return descriptor source information for a given service key (accepts aliases)."""
    canonical = resolve_service_key(service_key) or service_key
    return DESCRIPTOR_SOURCES.get(canonical)


def get_duplicate_warnings() -> List[str]:
    """Expose any duplicate/selection warnings captured during descriptor loading."""
    return list(_DUPLICATE_WARNINGS)


reload_descriptors()
