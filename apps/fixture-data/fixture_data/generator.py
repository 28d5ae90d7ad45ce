"""Sample fixture workbook generation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from openpyxl import Workbook

BOOKING_COLUMNS = [
    "firstname",
    "lastname",
    "totalprice",
    "depositpaid",
    "checkin",
    "checkout",
    "additionalneeds",
]

SAMPLE_BOOKINGS: list[dict[str, Any]] = [
    {
        "firstname": "John",
        "lastname": "Doe",
        "totalprice": 123,
        "depositpaid": True,
        "checkin": "2025-01-01",
        "checkout": "2025-01-10",
        "additionalneeds": "Breakfast",
    },
    {
        "firstname": "Alice",
        "lastname": "Smith",
        "totalprice": 200,
        "depositpaid": False,
        "checkin": "2025-02-01",
        "checkout": "2025-02-05",
        "additionalneeds": "Late checkout",
    },
]


def write_workbook(
    path: Path,
    rows: list[dict[str, Any]],
    *,
    columns: list[str] | None = None,
    sheet_name: str = "Sheet1",
) -> Path:
    """Write ``rows`` to an .xlsx file with a header row, creating parent directories."""

    headers = columns or _collect_columns(rows)
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_name
    worksheet.append(headers)
    for row in rows:
        worksheet.append([row.get(column, "") for column in headers])
    path.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(path)
    return path


def write_sample_workbook(path: Path) -> Path:
    return write_workbook(path, SAMPLE_BOOKINGS, columns=BOOKING_COLUMNS)


def _collect_columns(rows: list[dict[str, Any]]) -> list[str]:
    columns: list[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    return columns
