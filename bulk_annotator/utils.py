"""
Shared utilities for the bulk annotator.

Contains:
- Google API authentication (service account)
- Sheets service construction and A1 helpers
- Time formatting and number parsing helpers
"""

import os
import re
import logging
from datetime import datetime
from typing import Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build

from bulk_annotator.annotator_config import DEFAULT_CREDENTIALS_FILE, SCOPES

logger = logging.getLogger(__name__)

# Leading integer the way JavaScript's parseInt reads it
_INT_PREFIX_RE = re.compile(r'^\s*([+-]?\d+)', re.ASCII)

# ============================================================================
# AUTHENTICATION
# ============================================================================

def get_credentials_service_account(service_account_file: str = DEFAULT_CREDENTIALS_FILE):
    """
    Get credentials from a service account key file.

    The file is the JSON key downloaded from Google Cloud Console; only its
    client_email and private_key are used for signing.
    """
    if not os.path.exists(service_account_file):
        raise FileNotFoundError(
            f"Service account file '{service_account_file}' not found. "
            "Please download a key for the service account from Google Cloud Console."
        )
    return service_account.Credentials.from_service_account_file(
        service_account_file, scopes=SCOPES
    )


def get_sheets_service(creds=None, service_account_file: str = DEFAULT_CREDENTIALS_FILE):
    """Get authenticated Sheets service."""
    if creds is None:
        creds = get_credentials_service_account(service_account_file)
    return build('sheets', 'v4', credentials=creds, cache_discovery=False)


# ============================================================================
# SHEETS HELPERS
# ============================================================================

def column_index_to_letter(col_index: int) -> str:
    """Convert 0-based column index to Google Sheets column letter."""
    result = ''
    col_index += 1
    while col_index > 0:
        col_index -= 1
        result = chr(65 + (col_index % 26)) + result
        col_index //= 26
    return result


def quote_sheet_title(title: str) -> str:
    """Quote a tab title for use in an A1 range."""
    return "'" + title.replace("'", "''") + "'"


# ============================================================================
# PARSING / FORMATTING
# ============================================================================

def parse_int_prefix(value) -> Optional[int]:
    """
    Parse the leading integer of a cell value.

    "7" -> 7, " 12 " -> 12, "7abc" -> 7, "3.5" -> 3, "" / "abc" / None -> None
    """
    if value is None:
        return None
    match = _INT_PREFIX_RE.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def into_seconds(elapsed: float) -> int:
    """Whole seconds in an elapsed duration given in seconds."""
    return int(elapsed)


def readable_time(elapsed: float) -> str:
    """Format an elapsed duration (seconds) as '0d 0h 1m 5s'."""
    seconds = int(elapsed)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    return f"{days}d {hours % 24}h {minutes % 60}m {seconds % 60}s"


def readable_date(timestamp: float) -> str:
    """Format a Unix timestamp as local 'YYYY-MM-DD HH:MM:SS'."""
    return datetime.fromtimestamp(timestamp).strftime('%Y-%m-%d %H:%M:%S')
