"""
Configuration for Bulk Annotator.
"""

import os
from dataclasses import dataclass
from typing import Optional

# =============================================================================
# GOOGLE SHEETS SETTINGS
# =============================================================================

# Tab holding the concept/argument pairs
DEFAULT_SHEET_NAME = 'Conceptos'

# Rows fetched per run (header row excluded)
DEFAULT_ROW_LIMIT = 1000

# Service account key generated in Google Cloud Console
DEFAULT_CREDENTIALS_FILE = os.path.join('config', 'credentials.json')

SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
]

# =============================================================================
# COLUMN NAMES
# =============================================================================

COL_NUMBER = 'Número'
COL_CONCEPT = 'Concepto'
COL_ARGUMENT = 'Argumentos'
COL_OBSERVATIONS = 'Observaciones'

# =============================================================================
# GEMINI API SETTINGS
# =============================================================================

DEFAULT_GEMINI_MODEL = 'gemini-pro'

GEMINI_ENDPOINT = 'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent'

# Seconds before a single generateContent call is abandoned
DEFAULT_GEMINI_TIMEOUT = 60.0

# Delay after each Gemini call (seconds) to stay under the free-tier quota
DEFAULT_RATE_LIMIT_DELAY = 1.1

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
LOG_FILE = 'bulk_annotate.log'

REQUIRED_ENV_VARS = ['GOOGLE_SHEET_ID', 'GEMINI_API_KEY']


@dataclass
class AnnotatorConfig:
    """Settings for one annotation run."""

    sheet_id: str
    gemini_api_key: str
    credentials_file: str = DEFAULT_CREDENTIALS_FILE
    sheet_name: str = DEFAULT_SHEET_NAME
    row_limit: int = DEFAULT_ROW_LIMIT
    rate_limit_delay: float = DEFAULT_RATE_LIMIT_DELAY
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_timeout: Optional[float] = DEFAULT_GEMINI_TIMEOUT
    dry_run: bool = False
    pace_every_row: bool = False


def validate_config(environ=None):
    """Validate required configuration. Raises RuntimeError if any variable is missing."""
    environ = os.environ if environ is None else environ
    missing = [key for key in REQUIRED_ENV_VARS if not environ.get(key)]
    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}\n"
            "Set them in your shell or in a .env file next to where you run the script."
        )


def load_config(environ=None, **overrides) -> AnnotatorConfig:
    """
    Build an AnnotatorConfig from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)
        **overrides: Field values that win over the environment (CLI flags).
            None values are ignored.

    Returns:
        AnnotatorConfig
    """
    environ = os.environ if environ is None else environ
    validate_config(environ)

    timeout = environ.get('GEMINI_TIMEOUT', str(DEFAULT_GEMINI_TIMEOUT))

    config = AnnotatorConfig(
        sheet_id=environ['GOOGLE_SHEET_ID'],
        gemini_api_key=environ['GEMINI_API_KEY'],
        credentials_file=environ.get('GOOGLE_CREDENTIALS_FILE', DEFAULT_CREDENTIALS_FILE),
        sheet_name=environ.get('SHEET_NAME', DEFAULT_SHEET_NAME),
        row_limit=int(environ.get('ROW_LIMIT', str(DEFAULT_ROW_LIMIT))),
        rate_limit_delay=float(environ.get('RATE_LIMIT_DELAY', str(DEFAULT_RATE_LIMIT_DELAY))),
        gemini_model=environ.get('GEMINI_MODEL', DEFAULT_GEMINI_MODEL),
        gemini_timeout=float(timeout) if timeout else None,
    )

    for key, value in overrides.items():
        if value is None:
            continue
        if not hasattr(config, key):
            raise TypeError(f"Unknown config field: {key}")
        setattr(config, key, value)

    return config
