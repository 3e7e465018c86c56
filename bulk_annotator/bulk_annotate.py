#!/usr/bin/env python3
"""
Bulk Concept Annotator using Gemini API.

Walks the concept sheet once, clears observations on malformed rows and asks
Gemini for an opinion on every concept/argument pair that has none yet.

Usage:
    python -m bulk_annotator.bulk_annotate                 # Run with defaults
    python -m bulk_annotator.bulk_annotate --dry-run       # Log actions without writing
    python -m bulk_annotator.bulk_annotate --limit 200     # Only the first 200 rows
    python -m bulk_annotator.bulk_annotate --pace-every-row
"""

import argparse
import json
import logging
import os
import sys
import time
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from dotenv import load_dotenv

from bulk_annotator.annotator_config import (
    AnnotatorConfig,
    COL_ARGUMENT,
    COL_CONCEPT,
    COL_NUMBER,
    COL_OBSERVATIONS,
    DEFAULT_CREDENTIALS_FILE,
    DEFAULT_GEMINI_TIMEOUT,
    LOG_FILE,
    LOG_LEVEL,
    load_config,
)
from bulk_annotator.api_client import GeminiAnnotator
from bulk_annotator.classifier import RowAction, classify_row
from bulk_annotator.prompts import ANNOTATION_PROMPT
from bulk_annotator.sheets_client import SheetRow, SheetsClient
from bulk_annotator.utils import into_seconds, parse_int_prefix, readable_date, readable_time

logger = logging.getLogger(__name__)

SKIP_REASONS = {
    RowAction.SKIP_CLEANUP: 'because of cleanup matchers',
    RowAction.SKIP_EMPTY: 'because concept or argument is empty',
    RowAction.SKIP_ANNOTATED: 'because observations are present',
}

STAT_KEYS = {
    RowAction.SKIP_CLEANUP: 'skipped_cleanup',
    RowAction.SKIP_EMPTY: 'skipped_empty',
    RowAction.SKIP_ANNOTATED: 'skipped_annotated',
    RowAction.CLEAN: 'cleaned',
    RowAction.ANNOTATE: 'annotated',
}

# dry runs count what would have been written under their own keys
DRY_RUN_STAT_KEYS = {
    RowAction.CLEAN: 'would_clean',
    RowAction.ANNOTATE: 'would_annotate',
}


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = LOG_FILE):
    """Console + file logging. LOG_LEVEL is read here so a .env value applies."""
    level = (level or os.environ.get('LOG_LEVEL', LOG_LEVEL)).upper()
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


class HighestRow(NamedTuple):
    number: int
    row: Optional[SheetRow]


def find_highest_row(rows: List[SheetRow]) -> HighestRow:
    """
    Find the row with the largest parsed Número.

    Blank and unparseable numbers are ignored. Starts from 0 and only replaces
    on a strictly larger number, so the first row reaching the maximum wins.
    """
    highest = HighestRow(0, None)
    for row in rows:
        num = parse_int_prefix(row.get(COL_NUMBER))
        if num is None:
            continue
        if num > highest.number:
            highest = HighestRow(num, row)
    return highest


class BulkAnnotator:
    """Orchestrates one annotation pass over the concept sheet."""

    def __init__(
        self,
        config: AnnotatorConfig,
        sheets: Optional[SheetsClient] = None,
        annotator: Optional[GeminiAnnotator] = None
    ):
        self.config = config
        self.sheets = sheets or SheetsClient(config.sheet_id, config.credentials_file)
        self.annotator = annotator or GeminiAnnotator.from_config(config)
        self._start_time = 0.0

        self.stats: Dict[str, Any] = {
            'started_at': None,
            'finished_at': None,
            'total_rows': 0,
            'annotated': 0,
            'empty_annotations': 0,
            'cleaned': 0,
            'skipped_cleanup': 0,
            'skipped_empty': 0,
            'skipped_annotated': 0,
            'would_annotate': 0,
            'would_clean': 0,
            'highest_number': 0,
        }

    def _elapsed(self) -> str:
        return f"Elapsed time: {into_seconds(time.time() - self._start_time)}"

    def _pace(self):
        if self.config.rate_limit_delay > 0:
            time.sleep(self.config.rate_limit_delay)

    def load_rows(self) -> List[SheetRow]:
        """Load document info and the rows of the configured tab."""
        title = self.sheets.load_info()
        logger.info(f"Loaded doc: {title}")
        sheet = self.sheets.get_sheet_by_title(self.config.sheet_name)
        return sheet.get_rows(limit=self.config.row_limit)

    def process_row(self, row: SheetRow) -> RowAction:
        """Classify one row and carry out the resulting action."""
        num = row.get(COL_NUMBER)
        concept = row.get(COL_CONCEPT)
        argument = row.get(COL_ARGUMENT)
        observations = row.get(COL_OBSERVATIONS)

        action = classify_row(concept, argument, observations)

        if action.is_skip:
            logger.info(f"[{num}] Skipping row {row.row_number} {SKIP_REASONS[action]}, {self._elapsed()}")
            return action

        if action is RowAction.CLEAN:
            logger.info(f"[{num}] Cleaning row {row.row_number} because of cleanup matchers, {self._elapsed()}")
            if self.config.dry_run:
                return action
            row.set(COL_OBSERVATIONS, '')
            row.save()
            return action

        logger.info(f"[{num}] Processing row ({concept}, {argument}, {observations}), {self._elapsed()}")
        if self.config.dry_run:
            return action

        conclusion = self.annotator.draw_conclusion(ANNOTATION_PROMPT, concept, argument)
        if not conclusion:
            self.stats['empty_annotations'] += 1
        row.set(COL_OBSERVATIONS, conclusion)
        row.save()
        logger.info(f"[{num}] Saved conclusion ({conclusion}), {self._elapsed()}")
        return action

    def run(self) -> Dict[str, Any]:
        """
        Run the annotation pass.

        Returns:
            Statistics dict
        """
        logger.info("=" * 60)
        logger.info("BULK ANNOTATION STARTED")
        logger.info(f"Sheet: {self.config.sheet_name}, Row limit: {self.config.row_limit}")
        logger.info(f"Dry run: {self.config.dry_run}, Delay: {self.config.rate_limit_delay}s"
                    f"{' (every row)' if self.config.pace_every_row else ''}")
        logger.info("=" * 60)

        rows = self.load_rows()
        self.stats['total_rows'] = len(rows)

        highest = find_highest_row(rows)
        self.stats['highest_number'] = highest.number
        if highest.row is not None:
            logger.info(f"Last populated row:[{highest.number}] {highest.row.get(COL_NUMBER)}, "
                        f"{highest.row.get(COL_CONCEPT)}")
        else:
            logger.info(f"Last populated row:[{highest.number}] none")

        self._start_time = time.time()
        self.stats['started_at'] = datetime.now().isoformat()
        logger.info(f"Starting to process rows {readable_date(self._start_time)}")

        for row in rows:
            action = self.process_row(row)
            if self.config.dry_run and action in DRY_RUN_STAT_KEYS:
                self.stats[DRY_RUN_STAT_KEYS[action]] += 1
            else:
                self.stats[STAT_KEYS[action]] += 1

            called_api = action is RowAction.ANNOTATE and not self.config.dry_run
            if called_api or (self.config.pace_every_row and not self.config.dry_run):
                self._pace()

        finished = time.time()
        self.stats['finished_at'] = datetime.now().isoformat()
        self.stats['api_usage'] = self.annotator.get_usage_stats()

        logger.info(f"Finished processing rows, {self._elapsed()} ({readable_time(finished - self._start_time)}) "
                    f"{readable_date(finished)}")
        logger.info("=" * 60)
        logger.info("BULK ANNOTATION COMPLETE")
        logger.info("=" * 60)
        logger.info(f"Total rows: {self.stats['total_rows']}")
        logger.info(f"Annotated: {self.stats['annotated']} ({self.stats['empty_annotations']} empty)")
        logger.info(f"Cleaned: {self.stats['cleaned']}")
        if self.config.dry_run:
            logger.info(f"Dry run, would annotate: {self.stats['would_annotate']}, "
                        f"would clean: {self.stats['would_clean']}")
        logger.info(f"Skipped: {self.stats['skipped_cleanup']} cleanup, "
                    f"{self.stats['skipped_empty']} empty, {self.stats['skipped_annotated']} already annotated")

        return self.stats


ENV_HELP = f"""\
environment (also read from .env):
  GOOGLE_SHEET_ID          spreadsheet id (required)
  GEMINI_API_KEY           Gemini API key (required)
  GOOGLE_CREDENTIALS_FILE  service account key (default: {DEFAULT_CREDENTIALS_FILE})
  SHEET_NAME, ROW_LIMIT, RATE_LIMIT_DELAY, GEMINI_MODEL, LOG_LEVEL
  GEMINI_TIMEOUT           seconds before a Gemini call is abandoned
                           (default: {DEFAULT_GEMINI_TIMEOUT:g}, empty = wait forever).
                           A timed-out row is saved with empty Observaciones
                           and is annotated again on the next run.
"""


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Annotate concept/argument pairs in a Google Sheet using Gemini',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=ENV_HELP
    )
    parser.add_argument(
        '--sheet', '-s',
        type=str,
        help='Tab to process (default: SHEET_NAME or Conceptos)'
    )
    parser.add_argument(
        '--limit', '-l',
        type=int,
        help='Maximum rows to load (default: ROW_LIMIT or 1000)'
    )
    parser.add_argument(
        '--delay', '-d',
        type=float,
        help='Seconds to wait after each Gemini call (default: RATE_LIMIT_DELAY or 1.1)'
    )
    parser.add_argument(
        '--dry-run', '-n',
        action='store_true',
        help='Log what would happen without calling Gemini or writing to the sheet'
    )
    parser.add_argument(
        '--pace-every-row',
        action='store_true',
        help='Wait after every row, not only after Gemini calls'
    )
    parser.add_argument(
        '--stats-file',
        type=str,
        help='Write run statistics as JSON to this path'
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    load_dotenv()
    setup_logging()

    try:
        config = load_config(
            sheet_name=args.sheet,
            row_limit=args.limit,
            rate_limit_delay=args.delay,
            dry_run=args.dry_run or None,
            pace_every_row=args.pace_every_row or None,
        )
        stats = BulkAnnotator(config).run()

        if args.stats_file:
            with open(args.stats_file, 'w') as f:
                json.dump(stats, f, indent=2)
            logger.info(f"Stats saved to: {args.stats_file}")

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
