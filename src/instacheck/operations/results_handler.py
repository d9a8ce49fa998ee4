#!/usr/bin/env python3
"""
Results Handler Module
Handles saving the found-set (active accounts).
"""

import csv
import json
import logging
import os
import time
from typing import List, Mapping, Optional, Sequence

import pandas as pd

from instacheck.config import (
    DEFAULT_OUTPUT_DIR, DEFAULT_OUTPUT_FORMAT, EXPORT_FILENAME_PATTERN, EXPORT_SHEET_NAME, OUTPUT_FORMATS,
)
from instacheck.core.errors import ExportError
from instacheck.utils import source_name, timestamp_slug

logger = logging.getLogger(__name__)


class ResultsHandler:
    """Writes found records back out exactly as they were read."""

    def save_found(self, found: Sequence[Mapping[str, str]], output_file: Optional[str] = None, *,
                   output_dir: Optional[str] = None, output_format: Optional[str] = None,
                   source: Optional[str] = None) -> str:
        """Save the found-set and return the path written.

        When ``output_file`` is not given a name is generated inside
        ``output_dir``. Existing files are never overwritten; a numeric
        suffix is added instead.
        """
        if not found:
            raise ExportError("No active accounts to download")

        if output_file:
            fmt = (output_format or self._infer_format_from_path(output_file)).lower()
            target = output_file
        else:
            fmt = (output_format or DEFAULT_OUTPUT_FORMAT).lower()
            target = os.path.join(
                output_dir or DEFAULT_OUTPUT_DIR,
                EXPORT_FILENAME_PATTERN.format(source=source_name(source), timestamp=timestamp_slug(), ext=fmt),
            )
        if fmt not in OUTPUT_FORMATS:
            raise ExportError(f"Unsupported output format: {fmt}")

        if os.path.exists(target):
            target = self._generate_new_filename(target)
            logger.info(f"Output exists, saving to new file: {target}")

        headers = self.collect_headers(found)
        try:
            os.makedirs(os.path.dirname(target) or '.', exist_ok=True)
            if fmt == 'xlsx':
                self._write_xlsx(target, headers, found)
            elif fmt == 'csv':
                self._write_csv(target, headers, found)
            else:
                self._write_json(target, headers, found)
        except PermissionError as e:
            raise ExportError(f"Permission denied writing to {target}") from e
        except (OSError, ValueError) as e:
            raise ExportError(f"Error saving results to {target}: {e}") from e

        logger.info(f"Saved {len(found)} active accounts to {target}")
        return target

    @staticmethod
    def collect_headers(found: Sequence[Mapping[str, str]]) -> List[str]:
        """Header row: first record's keys in order, then any keys first seen later."""
        headers: List[str] = []
        seen = set()
        for row in found:
            for key in row.keys():
                if key not in seen:
                    seen.add(key)
                    headers.append(key)
        return headers

    def _infer_format_from_path(self, path: str) -> str:
        ext = os.path.splitext(path)[1].lower()
        if ext == '.xlsx':
            return 'xlsx'
        if ext == '.csv':
            return 'csv'
        if ext == '.json':
            return 'json'
        return DEFAULT_OUTPUT_FORMAT

    def _write_xlsx(self, filepath: str, headers: List[str], found: Sequence[Mapping[str, str]]):
        rows = [[str(row.get(h, '')) for h in headers] for row in found]
        frame = pd.DataFrame(rows, columns=headers, dtype=str)
        frame.to_excel(filepath, sheet_name=EXPORT_SHEET_NAME, index=False, engine='openpyxl')

    def _write_csv(self, filepath: str, headers: List[str], found: Sequence[Mapping[str, str]]):
        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=headers, restval='')
            writer.writeheader()
            for row in found:
                writer.writerow(dict(row))

    def _write_json(self, filepath: str, headers: List[str], found: Sequence[Mapping[str, str]]):
        data = {
            'timestamp': time.time(),
            'total_found': len(found),
            'headers': headers,
            'accounts': [dict(row) for row in found],
        }
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def _generate_new_filename(self, original_filepath: str) -> str:
        """Generate a new filename by adding a number suffix."""
        base_path, ext = os.path.splitext(original_filepath)
        counter = 1

        while True:
            new_path = f"{base_path}_{counter}{ext}"
            if not os.path.exists(new_path):
                return new_path
            counter += 1

            if counter > 1000:
                raise ExportError("Could not generate unique filename after 1000 attempts")
