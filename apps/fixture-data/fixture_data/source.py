"""Tabular fixture loading (Excel, CSV and YAML)."""

from __future__ import annotations

import csv
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterator

import structlog
import yaml
from openpyxl import load_workbook

from suite_config.settings import Credentials

LOGGER = structlog.get_logger("fixture_data")

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
CSV_SUFFIXES = {".csv"}
YAML_SUFFIXES = {".yaml", ".yml"}

FixtureRow = dict[str, Any]


class FixtureSourceError(RuntimeError):
    """Backing data resource is missing or unreadable; aborts the whole suite."""


class FixtureRowError(ValueError):
    """A single fixture row cannot be coerced into the target shape."""


class TabularFixtureSource:
    """Reads an ordered sequence of fixture rows once and exposes typed getters."""

    def __init__(self, path: Path | str, sheet: str | None = None) -> None:
        self.path = Path(path)
        self.sheet = sheet
        self._rows: list[FixtureRow] | None = None

    def rows(self) -> list[FixtureRow]:
        if self._rows is None:
            self._rows = self._load()
            LOGGER.debug("fixture_rows_loaded", path=str(self.path), rows=len(self._rows))
        return [dict(row) for row in self._rows]

    def row(self, index: int) -> FixtureRow:
        rows = self.rows()
        if index < 0 or index >= len(rows):
            raise FixtureRowError(f"Row {index} not found in {self.path} ({len(rows)} rows)")
        return rows[index]

    def __iter__(self) -> Iterator[FixtureRow]:
        return iter(self.rows())

    def __len__(self) -> int:
        return len(self.rows())

    def credentials(self, index: int = 0) -> Credentials:
        data = self.row(index)
        return Credentials(
            username=_text(_first(data, "username", "Username")),
            password=_text(_first(data, "password", "Password")),
        )

    def base_url(self, index: int = 0) -> str:
        data = self.row(index)
        return _text(_first(data, "baseUrl", "BaseUrl", "base_url"))

    def _load(self) -> list[FixtureRow]:
        if not self.path.exists():
            raise FixtureSourceError(
                f"Fixture data file not found: {self.path}. "
                "Run `booking-suite generate-data` to create a sample workbook."
            )
        suffix = self.path.suffix.lower()
        try:
            if suffix in EXCEL_SUFFIXES:
                return _read_excel(self.path, self.sheet)
            if suffix in CSV_SUFFIXES:
                return _read_csv(self.path)
            if suffix in YAML_SUFFIXES:
                return _read_yaml(self.path)
        except FixtureSourceError:
            raise
        except Exception as exc:
            raise FixtureSourceError(f"Fixture data file {self.path} could not be read: {exc}") from exc
        raise FixtureSourceError(f"Unsupported fixture data format: {self.path.suffix or '<none>'}")


def load_rows(path: Path | str, sheet: str | None = None) -> list[FixtureRow]:
    """Convenience wrapper returning all rows of a fixture file."""

    return TabularFixtureSource(path, sheet=sheet).rows()


def _read_excel(path: Path, sheet: str | None) -> list[FixtureRow]:
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        if sheet is not None:
            if sheet not in workbook.sheetnames:
                raise FixtureSourceError(f"Sheet {sheet!r} not found in {path}")
            worksheet = workbook[sheet]
        else:
            worksheet = workbook.worksheets[0]
        values = list(worksheet.iter_rows(values_only=True))
    finally:
        workbook.close()
    if not values:
        return []
    headers = [str(cell).strip() if cell is not None else "" for cell in values[0]]
    return _build_rows(headers, values[1:])


def _read_csv(path: Path) -> list[FixtureRow]:
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.reader(handle)
        records = list(reader)
    if not records:
        return []
    headers = [cell.strip() for cell in records[0]]
    return _build_rows(headers, records[1:])


def _read_yaml(path: Path) -> list[FixtureRow]:
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    if payload is None:
        return []
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise FixtureSourceError(f"Fixture file {path} must contain a list of mappings")
    return [{str(key): _cell(value) for key, value in item.items()} for item in payload]


def _build_rows(headers: list[str], records: list[Any]) -> list[FixtureRow]:
    rows: list[FixtureRow] = []
    for record in records:
        cells = list(record)
        if all(cell is None or (isinstance(cell, str) and cell.strip() == "") for cell in cells):
            continue
        row: FixtureRow = {}
        for position, header in enumerate(headers):
            if not header:
                continue
            value = cells[position] if position < len(cells) else None
            row[header] = _cell(value)
        rows.append(row)
    return rows


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _first(data: FixtureRow, *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return ""


def _text(value: Any) -> str:
    return "" if value is None else str(value)
