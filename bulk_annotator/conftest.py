"""Shared pytest fixtures: an in-memory stand-in for the Sheets v4 service."""

import re
from typing import Dict, List
from unittest.mock import MagicMock

import pytest

from bulk_annotator.annotator_config import AnnotatorConfig
from bulk_annotator.api_client import GeminiAnnotator
from bulk_annotator.sheets_client import SheetsClient

HEADERS = ['Número', 'Concepto', 'Argumentos', 'Observaciones']

_CELL_RE = re.compile(r'^([A-Z]+)(\d+)$')
_ROWS_RE = re.compile(r'^(\d+):(\d+)$')


def _split_range(a1: str):
    tab, _, ref = a1.rpartition('!')
    if tab.startswith("'") and tab.endswith("'"):
        tab = tab[1:-1].replace("''", "'")
    return tab, ref


def _letter_to_index(letters: str) -> int:
    idx = 0
    for ch in letters:
        idx = idx * 26 + (ord(ch) - 64)
    return idx - 1


class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class _Values:
    def __init__(self, service: 'FakeSheetsService'):
        self.service = service

    def get(self, spreadsheetId, range):
        def run():
            tab, ref = _split_range(range)
            data = self.service.tabs[tab]
            match = _ROWS_RE.match(ref)
            start, end = int(match.group(1)), int(match.group(2))
            values = [list(r) for r in data[start - 1:end]]
            return {'range': range, 'values': values} if values else {'range': range}
        return _Request(run)

    def batchUpdate(self, spreadsheetId, body):
        def run():
            if self.service.fail_updates:
                raise RuntimeError('Quota exceeded for quota metric Write requests')
            self.service.batch_updates.append(body)
            for item in body['data']:
                tab, ref = _split_range(item['range'])
                match = _CELL_RE.match(ref)
                col, row = _letter_to_index(match.group(1)), int(match.group(2))
                sheet_rows = self.service.tabs[tab]
                while len(sheet_rows) < row:
                    sheet_rows.append([])
                cells = sheet_rows[row - 1]
                if len(cells) <= col:
                    cells.extend([''] * (col + 1 - len(cells)))
                cells[col] = item['values'][0][0]
            return {'totalUpdatedCells': len(body['data'])}
        return _Request(run)


class _Spreadsheets:
    def __init__(self, service: 'FakeSheetsService'):
        self.service = service
        self._values = _Values(service)

    def get(self, spreadsheetId, fields=None):
        def run():
            return {
                'properties': {'title': self.service.title},
                'sheets': [
                    {'properties': {'sheetId': i, 'title': name}}
                    for i, name in enumerate(self.service.tabs)
                ],
            }
        return _Request(run)

    def values(self):
        return self._values


class FakeSheetsService:
    """Just enough of googleapiclient's sheets v4 resource for SheetsClient."""

    def __init__(self, tabs: Dict[str, List[List[str]]], title: str = 'Concept Review'):
        self.title = title
        self.tabs = tabs
        self.batch_updates: List[dict] = []
        self.fail_updates = False
        self._spreadsheets = _Spreadsheets(self)

    def spreadsheets(self):
        return self._spreadsheets

    def cell(self, tab: str, row_number: int, header: str):
        row = self.tabs[tab][row_number - 1]
        idx = self.tabs[tab][0].index(header)
        return row[idx] if idx < len(row) else None


@pytest.fixture()
def make_service():
    def _make(rows: List[List[str]], tab: str = 'Conceptos') -> FakeSheetsService:
        return FakeSheetsService({tab: [list(HEADERS)] + [list(r) for r in rows]})
    return _make


@pytest.fixture()
def make_client(make_service):
    def _make(rows: List[List[str]], tab: str = 'Conceptos'):
        service = make_service(rows, tab)
        return SheetsClient('sheet-123', service=service), service
    return _make


@pytest.fixture()
def config() -> AnnotatorConfig:
    return AnnotatorConfig(sheet_id='sheet-123', gemini_api_key='test-key')


@pytest.fixture()
def annotator():
    mock = MagicMock(spec=GeminiAnnotator)
    mock.draw_conclusion.return_value = 'Coincide bien.'
    mock.get_usage_stats.return_value = {'requests': 0}
    return mock
