#!/usr/bin/env python3
"""
Input Loader Module
Reads usernames and their full rows from spreadsheet or text files.
"""

import csv
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd

from instacheck.config import DEFAULT_KEY_COLUMN, INPUT_FILE_EXTENSIONS
from instacheck.core.errors import InputError
from instacheck.core.models import InputRecord
from instacheck.utils import cell_to_text, normalize_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedInput:
    records: List[InputRecord]
    headers: List[str]
    key_column: str
    key_column_defaulted: bool
    source: str
    skipped_rows: int = 0


def load_records(path: str, key_column: str = DEFAULT_KEY_COLUMN) -> LoadedInput:
    """Load input records from ``path``.

    The first row is the header. The key column is matched case-insensitively;
    when it is missing the first column is used instead. Rows with an empty
    key are skipped.
    """
    if not path or not os.path.isfile(path):
        raise InputError(f"Input file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext not in INPUT_FILE_EXTENSIONS:
        raise InputError(f"Unsupported input type '{ext}'. Use one of: {', '.join(INPUT_FILE_EXTENSIONS)}")

    try:
        if ext in ('.xlsx', '.xls'):
            rows = _read_excel_rows(path)
        elif ext == '.csv':
            rows = _read_csv_rows(path)
        else:
            rows = _read_text_rows(path, key_column)
    except InputError:
        raise
    except (OSError, ValueError, ImportError) as e:
        raise InputError(f"Could not read {os.path.basename(path)}: {e}") from e

    loaded = records_from_rows(rows, key_column=key_column, source=path)
    logger.info(f"Loaded {len(loaded.records)} rows from {os.path.basename(path)}")
    return loaded


def records_from_rows(rows: Sequence[Sequence], key_column: str = DEFAULT_KEY_COLUMN,
                      source: str = "") -> LoadedInput:
    """Build records from a header row followed by data rows."""
    if not rows:
        raise InputError("No sheets or data found in input")

    headers = [normalize_key(cell) for cell in rows[0]]
    wanted = key_column.strip().lower()
    key_index = next((i for i, h in enumerate(headers) if h.lower() == wanted), None)
    defaulted = key_index is None
    if defaulted:
        key_index = 0
        logger.info(f'No "{key_column}" column header found. Defaulting to the first column.')

    # Blank or repeated headers still need distinct payload keys
    seen = {}
    unique_headers = []
    for i, header in enumerate(headers):
        name = header or f"column_{i + 1}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        unique_headers.append(name)

    records = []
    skipped = 0
    for row in rows[1:]:
        key = normalize_key(row[key_index]) if key_index < len(row) else ""
        if not key:
            skipped += 1
            continue
        payload = {
            header: cell_to_text(row[j]) if j < len(row) else ""
            for j, header in enumerate(unique_headers)
        }
        records.append(InputRecord(key=key, payload=payload))

    if not records:
        raise InputError("No valid usernames found in input")

    return LoadedInput(
        records=records,
        headers=unique_headers,
        key_column=unique_headers[key_index] if unique_headers else key_column,
        key_column_defaulted=defaulted,
        source=source,
        skipped_rows=skipped,
    )


def _read_excel_rows(path: str) -> List[list]:
    frame = pd.read_excel(path, sheet_name=0, header=None, dtype=str, keep_default_na=False)
    return frame.values.tolist()


def _read_csv_rows(path: str) -> List[list]:
    with open(path, 'r', newline='', encoding='utf-8-sig') as f:
        return [row for row in csv.reader(f)]


def _read_text_rows(path: str, key_column: str) -> List[list]:
    """One username per line; a header line is optional."""
    with open(path, 'r', encoding='utf-8-sig') as f:
        lines = [line.strip() for line in f]
    lines = [line for line in lines if line and not line.startswith('#')]
    if lines and lines[0].lower() == key_column.strip().lower():
        lines = lines[1:]
    return [[key_column]] + [[line] for line in lines]


def parse_usernames(text: str, key_column: str = DEFAULT_KEY_COLUMN) -> Optional[LoadedInput]:
    """Records from whitespace/comma separated usernames; None when there are none."""
    names = [normalize_key(n) for n in text.replace(',', ' ').split()]
    names = [n for n in names if n]
    if not names:
        return None
    return records_from_rows([[key_column]] + [[n] for n in names], key_column=key_column, source="<args>")
