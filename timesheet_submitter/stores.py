"""
Collaborators used around a batch.

The engine never talks to these directly. The caller fetches
credentials and pending rows, runs the batch, and writes the outcome
back to the row store.
"""

import csv
import os
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Protocol, Set

from .csv_loader import CSVLoadError, CSVLoader, normalize_header
from .logging_utils import get_logger
from .models import AutomationRow, Credentials, RowKey


STATUS_COMPLETE = 'Complete'
STATUS_IN_PROGRESS = 'In Progress'
STATUS_FAILED = 'Failed'


class CredentialStore(Protocol):
    """Source of login credentials."""

    def get_credentials(self, service_name: str) -> Optional[Credentials]:
        ...


class RowStore(Protocol):
    """Source of pending rows and sink of their submission status."""

    def get_pending_rows(self) -> List[AutomationRow]:
        ...

    def mark_in_progress(self, ids: Iterable[RowKey]):
        ...

    def mark_submitted(self, ids: Iterable[RowKey]):
        ...

    def mark_failed(self, ids: Iterable[RowKey]):
        ...


class EnvCredentialStore:
    """
    Reads credentials from <SERVICE>_EMAIL and <SERVICE>_PASSWORD.

    Example:
        TIMESHEET_EMAIL=me@example.com TIMESHEET_PASSWORD=... for service "timesheet"
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = environ if environ is not None else os.environ

    def get_credentials(self, service_name: str) -> Optional[Credentials]:
        """
        Look up credentials for a service.

        Returns:
            Credentials, or None if either variable is missing or empty
        """
        prefix = service_name.strip().upper().replace('-', '_')
        email = (self.environ.get(f"{prefix}_EMAIL") or '').strip()
        password = self.environ.get(f"{prefix}_PASSWORD") or ''
        if not email or not password:
            return None
        return Credentials(email=email, password=password)


class CsvRowStore:
    """
    Row store backed by a CSV file with a status column.

    Rows whose status is 'Complete' are not pending. Status updates
    rewrite the file in place, adding a status column if it is missing.
    """

    def __init__(self, file_path: str):
        self.file_path = Path(file_path)
        self.logger = get_logger()

    def get_pending_rows(self) -> List[AutomationRow]:
        """
        Get rows that still need submitting.

        Raises:
            CSVLoadError: If the file cannot be loaded
        """
        records = CSVLoader(str(self.file_path)).load_records()
        return [
            r.row for r in records
            if r.status.strip().lower() != STATUS_COMPLETE.lower()
        ]

    def mark_in_progress(self, ids: Iterable[RowKey]):
        self._set_status(ids, STATUS_IN_PROGRESS)

    def mark_submitted(self, ids: Iterable[RowKey]):
        self._set_status(ids, STATUS_COMPLETE)

    def mark_failed(self, ids: Iterable[RowKey]):
        self._set_status(ids, STATUS_FAILED)

    def _set_status(self, ids: Iterable[RowKey], status: str):
        # Rows with an id cell are keyed by that string; rows without one by int line number
        ids = list(ids)
        wanted_ids: Set[str] = {i for i in ids if isinstance(i, str)}
        wanted_lines: Set[int] = {i for i in ids if isinstance(i, int)}
        if not ids:
            return

        try:
            with open(self.file_path, 'r', encoding='utf-8', newline='') as f:
                reader = csv.DictReader(f)
                fieldnames = list(reader.fieldnames or [])
                lines = list(reader)
        except OSError as e:
            raise CSVLoadError(f"Failed to read CSV: {e}") from e

        by_name = {normalize_header(h): h for h in fieldnames}
        status_col = by_name.get('status')
        if status_col is None:
            status_col = 'status'
            fieldnames.append(status_col)
        id_col = by_name.get('id')

        updated = 0
        for line_num, line in enumerate(lines, start=2):
            cell = (line.get(id_col) or '').strip() if id_col else ''
            matched = cell in wanted_ids if cell else line_num in wanted_lines
            if matched:
                line[status_col] = status
                updated += 1

        with open(self.file_path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(lines)

        self.logger.debug(f"Marked {updated} row(s) as {status} in {self.file_path}")
