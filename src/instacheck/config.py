#!/usr/bin/env python3
"""
InstaCheck Configuration Module
"""

import logging
from dataclasses import dataclass

# Application Information
APP_NAME = "InstaCheck"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Batch-check account usernames against a remote profile lookup endpoint"

# Default Settings
DEFAULT_SERVICE = "instagram"
DEFAULT_KEY_COLUMN = "username"
DEFAULT_LOG_LEVEL = logging.WARNING
DEFAULT_RECENT_RESULTS = 15

# Concurrency
DEFAULT_CONCURRENCY = 5
MAX_CONCURRENCY = 64

# Request Settings
REQUEST_TIMEOUT = 30
MAX_RETRIES = 10

# Backoff (milliseconds)
INITIAL_DELAY_MS = 1000
MAX_DELAY_MS = 60000
MAX_JITTER_MS = 1000
BACKOFF_GROWTH_FACTOR = 2.0

# Rolling log caps
RESULTS_LOG_CAP = 100
INFO_LOG_CAP = 1000

# Input / export
INPUT_FILE_EXTENSIONS = ['.xlsx', '.xls', '.csv', '.txt']
OUTPUT_FORMATS = ['xlsx', 'csv', 'json']
DEFAULT_OUTPUT_FORMAT = 'xlsx'
DEFAULT_OUTPUT_DIR = 'insta_saver'
EXPORT_FILENAME_PATTERN = 'active_accounts_{source}_{timestamp}.{ext}'
EXPORT_SHEET_NAME = 'Active Accounts'

# Environment variables
ENV_DESCRIPTOR_DIRS = 'INSTACHECK_DESCRIPTOR_DIRS'
ENV_DEBUG_REQUESTS = 'INSTACHECK_DEBUG_REQUESTS'

# Status glyphs used by the console
STATUS_MESSAGES = {
    'ACTIVE': '✅',
    'AVAILABLE': '🆓',
    'ERROR': '🚨',
    'CANCELLED': '⏹️',
    'INFO': 'ℹ️',
}

STATUS_STYLES = {
    'ACTIVE': 'green',
    'AVAILABLE': 'blue',
    'ERROR': 'red',
    'CANCELLED': 'yellow',
    'INFO': 'dim',
}

# Error messages
ERROR_MESSAGES = {
    'no_input': "❌ Please provide an input file (.xlsx, .xls, .csv or .txt)",
    'no_usernames': "❌ No valid usernames to process.",
    'already_running': "⚠️  Processing is already running.",
    'no_active': "⚠️  No active accounts to download",
    'interrupted': "⚠️  Cancelling... waiting for in-flight lookups to settle.",
    'unknown_service': "❌ Unknown service '{service}'. Available services: {available}",
    'processing_error': "❌ Processing error: {error}",
}

# Success messages
SUCCESS_MESSAGES = {
    'rows_loaded': "✅ Loaded {count} rows from {source}",
    'key_column_defaulted': "ℹ️  No \"{column}\" column header found. Defaulting to the first column.",
    'check_complete': "🎯 Processing completed! Found {active} active accounts.",
    'check_cancelled': "⏹️  Processing cancelled. {cancelled} usernames were not checked.",
    'results_saved': "✅ Results saved to {path} ({count} active accounts)",
}


@dataclass(frozen=True)
class RunSettings:
    """Per-run knobs for the check engine."""
    concurrency: int = DEFAULT_CONCURRENCY
    max_retries: int = MAX_RETRIES
    probe_timeout: float = REQUEST_TIMEOUT
    initial_delay_ms: float = INITIAL_DELAY_MS
    max_delay_ms: float = MAX_DELAY_MS
    max_jitter_ms: float = MAX_JITTER_MS
    growth_factor: float = BACKOFF_GROWTH_FACTOR
    results_log_cap: int = RESULTS_LOG_CAP
    info_log_cap: int = INFO_LOG_CAP
    retry_unparsable: bool = False

    def __post_init__(self):
        if not 1 <= self.concurrency <= MAX_CONCURRENCY:
            raise ValueError(f"concurrency must be between 1 and {MAX_CONCURRENCY}")
        if self.max_retries < 1:
            raise ValueError("max_retries must be a positive integer")
        if self.probe_timeout <= 0:
            raise ValueError("probe_timeout must be positive")
        if self.initial_delay_ms < 0 or self.max_jitter_ms < 0:
            raise ValueError("delays must be non-negative")
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms must not be lower than initial_delay_ms")
        if self.growth_factor < 1:
            raise ValueError("growth_factor must be at least 1")
        if self.results_log_cap < 1 or self.info_log_cap < 1:
            raise ValueError("log caps must be positive")
