#!/usr/bin/env python3
"""
Google Sheets client for the bulk annotator.

Rows are read once per run and written back one row at a time. A SheetRow is a
local view of a sheet row: set() only changes the local copy, save() sends the
changed cells to the sheet.
"""

import logging
from typing import Any, Dict, List, Optional

from bulk_annotator.annotator_config import DEFAULT_CREDENTIALS_FILE, DEFAULT_ROW_LIMIT
from bulk_annotator.utils import (
    column_index_to_letter,
    get_sheets_service,
    quote_sheet_title,
)

logger = logging.getLogger(__name__)


class SheetRow:
    """One data row of a worksheet, addressed by header name."""

    def __init__(self, worksheet: 'Worksheet', row_number: int, values: List[str]):
        self.worksheet = worksheet
        self.row_number = row_number
        self._values = list(values)
        self._dirty = set()

    def get(self, header: str) -> Optional[str]:
        """Cell value under `header`, or None if the cell (or column) is absent."""
        idx = self.worksheet.get_column_index(header)
        if idx is None or idx >= len(self._values):
            return None
        return self._values[idx]

    def set(self, header: str, value: str):
        """Change a cell locally. Nothing reaches the sheet until save()."""
        idx = self.worksheet.get_column_index(header)
        if idx is None:
            raise KeyError(f"Column '{header}' not found in sheet '{self.worksheet.title}'")
        if idx >= len(self._values):
            self._values.extend([''] * (idx + 1 - len(self._values)))
        self._values[idx] = value
        self._dirty.add(idx)

    def save(self):
        """Write changed cells back to the sheet. Errors propagate to the caller."""
        if not self._dirty:
            return
        self.worksheet.update_cells(
            self.row_number,
            {idx: self._values[idx] for idx in sorted(self._dirty)}
        )
        self._dirty.clear()

    def __repr__(self):
        return f"SheetRow({self.worksheet.title!r}, {self.row_number})"


class Worksheet:
    """A single tab of the spreadsheet."""

    def __init__(self, client: 'SheetsClient', title: str):
        self.client = client
        self.title = title
        self.headers: List[str] = []
        self._col_indices: Dict[str, int] = {}

    def _set_headers(self, headers: List[str]):
        self.headers = [h.strip() for h in headers]
        self._col_indices = {}
        for i, h in enumerate(self.headers):
            # first column wins on duplicate headers
            self._col_indices.setdefault(h, i)

    def load_header_row(self) -> List[str]:
        """Read just the header row."""
        result = self.client.service.spreadsheets().values().get(
            spreadsheetId=self.client.spreadsheet_id,
            range=f"{quote_sheet_title(self.title)}!1:1"
        ).execute()
        values = result.get('values', [])
        self._set_headers(values[0] if values else [])
        return self.headers

    def get_column_index(self, header: str) -> Optional[int]:
        """0-based column index of `header`, or None if the sheet has no such column."""
        return self._col_indices.get(header)

    def get_rows(self, limit: int = DEFAULT_ROW_LIMIT) -> List[SheetRow]:
        """
        Read the header row and up to `limit` data rows, in sheet order.

        Returns:
            List of SheetRow (row_number 2 is the first data row)
        """
        result = self.client.service.spreadsheets().values().get(
            spreadsheetId=self.client.spreadsheet_id,
            range=f"{quote_sheet_title(self.title)}!1:{limit + 1}"
        ).execute()

        values = result.get('values', [])
        if not values:
            logger.warning(f"Sheet '{self.title}' is empty")
            self._set_headers([])
            return []

        self._set_headers(values[0])
        rows = [
            SheetRow(self, i + 2, row)
            for i, row in enumerate(values[1:limit + 1])
        ]
        logger.info(f"Loaded {len(rows)} rows from '{self.title}'")
        return rows

    def update_cells(self, row_number: int, cells: Dict[int, str]) -> Dict[str, Any]:
        """Write {column index: value} into one row."""
        data = [
            {
                'range': f"{quote_sheet_title(self.title)}!{column_index_to_letter(idx)}{row_number}",
                'values': [[value]]
            }
            for idx, value in cells.items()
        ]
        return self.client.service.spreadsheets().values().batchUpdate(
            spreadsheetId=self.client.spreadsheet_id,
            body={
                'valueInputOption': 'RAW',
                'data': data
            }
        ).execute()


class SheetsClient:
    """Client for the spreadsheet being annotated."""

    def __init__(self, spreadsheet_id: str, credentials_file: str = DEFAULT_CREDENTIALS_FILE, service=None):
        self.spreadsheet_id = spreadsheet_id
        self.credentials_file = credentials_file
        self._service = service
        self.title: Optional[str] = None
        self.sheets_by_title: Dict[str, Worksheet] = {}

    @property
    def service(self):
        """Authenticated Sheets service (lazy initialization)."""
        if self._service is None:
            self._service = get_sheets_service(service_account_file=self.credentials_file)
        return self._service

    def load_info(self) -> str:
        """Load the document title and its tabs. Returns the title."""
        result = self.service.spreadsheets().get(
            spreadsheetId=self.spreadsheet_id,
            fields='properties.title,sheets.properties.title'
        ).execute()

        self.title = result.get('properties', {}).get('title', '')
        self.sheets_by_title = {}
        for sheet in result.get('sheets', []):
            props = sheet.get('properties', {})
            title = props.get('title')
            if title is not None:
                self.sheets_by_title[title] = Worksheet(self, title)
        return self.title

    def get_sheet_by_title(self, title: str) -> Worksheet:
        """Look up a tab by title. Raises ValueError if it doesn't exist."""
        if not self.sheets_by_title:
            self.load_info()
        sheet = self.sheets_by_title.get(title)
        if sheet is None:
            raise ValueError(f"Sheet {title} not found")
        return sheet
