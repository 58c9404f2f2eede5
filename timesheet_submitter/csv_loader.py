"""
CSV loader for timesheet rows.

This module loads the CSV files the CLI submits from, validates the
format and converts each line into an AutomationRow.
"""

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .form_config import parse_iso_date
from .models import AutomationRow


class CSVLoadError(Exception):
    """Raised when CSV loading fails."""
    pass


@dataclass(frozen=True)
class CSVRecord:
    """A loaded row together with its status cell and source line."""
    row: AutomationRow
    status: str
    line_num: int


def normalize_header(header: str) -> str:
    """
    Normalize a CSV header to its canonical field name.

    Example:
        >>> normalize_header(" Task ")
        'task_description'
    """
    key = header.strip().lower().replace(' ', '_')
    return CSVLoader.HEADER_ALIASES.get(key, key)


class CSVLoader:
    """
    Loads timesheet rows from CSV files.

    Expected CSV format:
        id,date,hours,project,tool,charge_code,task_description,status
        1,2025-10-06,8,FL-Carver Techs,DECA Meter,EPR1,Meter calibration,
        2,2025-10-07,7.5,OSC-BBB,,,Site visit,Complete

    id, tool, charge_code and status are optional. Rows without an id
    are identified by their line number.
    """

    REQUIRED_HEADERS = [
        'date',
        'hours',
        'project',
        'task_description',
    ]

    HEADER_ALIASES = {
        'task': 'task_description',
        'description': 'task_description',
        'project_code': 'project',
        'detail_code': 'charge_code',
        'chargecode': 'charge_code',
        'detail_charge_code': 'charge_code',
    }

    def __init__(self, file_path: str):
        """
        Initialize the CSV loader.

        Args:
            file_path: Path to the CSV file

        Raises:
            CSVLoadError: If file doesn't exist
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise CSVLoadError(f"CSV file not found: {file_path}")

    def load(self) -> List[AutomationRow]:
        """
        Load timesheet rows from the CSV file.

        Returns:
            List of AutomationRow objects

        Raises:
            CSVLoadError: If CSV format is invalid or data is malformed
        """
        return [record.row for record in self.load_records()]

    def load_records(self) -> List[CSVRecord]:
        """
        Load rows together with their status column.

        Returns:
            List of CSVRecord objects, in file order

        Raises:
            CSVLoadError: If CSV format is invalid or data is malformed
        """
        try:
            with open(self.file_path, 'r', encoding='utf-8', newline='') as f:
                reader = csv.DictReader(f)
                self._validate_headers(reader.fieldnames)
                return self._parse_rows(reader)
        except CSVLoadError:
            raise
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            raise CSVLoadError(f"Failed to load CSV: {e}") from e

    def _validate_headers(self, headers: Optional[List[str]]):
        """
        Validate that CSV has all required headers.

        Raises:
            CSVLoadError: If headers are missing or incorrect
        """
        if not headers:
            raise CSVLoadError("CSV file is empty or has no headers")

        normalized = [normalize_header(h) for h in headers if h is not None]

        missing = [h for h in self.REQUIRED_HEADERS if h not in normalized]
        if missing:
            raise CSVLoadError(
                f"CSV missing required headers: {', '.join(missing)}"
            )

    def _parse_rows(self, reader: csv.DictReader) -> List[CSVRecord]:
        records = []
        for line_num, row_dict in enumerate(reader, start=2):  # Header is line 1
            try:
                record = self._parse_row(row_dict, line_num)
            except ValueError as e:
                raise CSVLoadError(f"Error on line {line_num}: {e}") from e
            if record:
                records.append(record)
        return records

    def _parse_row(self, row_dict: Dict[str, str], line_num: int) -> Optional[CSVRecord]:
        """
        Parse a single CSV line.

        Returns:
            CSVRecord, or None for blank lines and lines without a project

        Raises:
            ValueError: If data is invalid
        """
        values = {
            normalize_header(k): (v or '').strip()
            for k, v in row_dict.items()
            if k is not None
        }

        project = values.get('project', '')
        if not project:
            # Blank lines and rows without a project are skipped
            return None

        date_str = values.get('date', '')
        if parse_iso_date(date_str) is None:
            raise ValueError(f"Invalid date '{date_str}' (expected YYYY-MM-DD)")

        row_id = values.get('id') or line_num

        row = AutomationRow(
            date=date_str,
            hours=self._parse_hours_value(values.get('hours', '')),
            project=project,
            task_description=values.get('task_description', ''),
            id=row_id,
            tool=values.get('tool') or None,
            charge_code=values.get('charge_code') or None,
        )
        return CSVRecord(row=row, status=values.get('status', ''), line_num=line_num)

    def _parse_hours_value(self, value: str) -> float:
        """
        Parse an hours value.

        Raises:
            ValueError: If value is empty, not a number or out of range
        """
        if not value:
            raise ValueError("Hours value is required")

        try:
            hours = float(value)
        except ValueError:
            raise ValueError(f"Invalid hours value: '{value}' (must be a number)")

        if hours <= 0 or hours > 24:
            raise ValueError(f"Hours value must be between 0 and 24: {value}")
        return hours


def load_csv(file_path: str) -> List[AutomationRow]:
    """
    Convenience function to load a CSV file.

    Args:
        file_path: Path to the CSV file

    Returns:
        List of AutomationRow objects

    Raises:
        CSVLoadError: If loading fails
    """
    loader = CSVLoader(file_path)
    return loader.load()
