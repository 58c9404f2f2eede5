"""
Data models for timesheet submission.

This module defines the data structures passed between the caller and
the submission engine: input rows, credentials, form configuration,
per-attempt records, progress events and the batch result.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union


RowKey = Union[int, str]


@dataclass(frozen=True)
class AutomationRow:
    """
    One timesheet row to submit.

    Attributes:
        date: Entry date in ISO format (YYYY-MM-DD)
        hours: Hours worked
        project: Project code (e.g., "OSC-BBB")
        task_description: Free-text description of the work
        id: Caller-side identifier (row index is used when absent)
        tool: Tool name (optional)
        charge_code: Detail charge code (optional)
    """
    date: str
    hours: float
    project: str
    task_description: str
    id: Optional[RowKey] = None
    tool: Optional[str] = None
    charge_code: Optional[str] = None

    def form_date(self) -> str:
        """
        Format the row date the way the web form expects it.

        Returns:
            Date as mm/dd/yyyy, or the raw value if it is not ISO formatted
        """
        parts = str(self.date).strip().split('-')
        if len(parts) == 3 and len(parts[0]) == 4:
            year, month, day = parts
            return f"{month}/{day}/{year}"
        return str(self.date).strip()


@dataclass(frozen=True)
class Credentials:
    """Login credentials, held in memory for one batch only."""
    email: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class FormConfig:
    """
    Resolved destination for one target period.

    Attributes:
        base_url: Address of the web form
        form_id: Form identifier
        submission_endpoint: Endpoint the form posts to
        success_url_patterns: Glob patterns, most specific first
    """
    base_url: str
    form_id: str
    submission_endpoint: str
    success_url_patterns: Tuple[str, ...] = ()


class RetryLevel(Enum):
    """Escalation level of one submit attempt."""
    INITIAL = 'initial'
    LEVEL_1 = 'level-1'
    LEVEL_2 = 'level-2'


class AttemptOutcome(Enum):
    """Outcome of one submit attempt."""
    SUCCESS = 'success'
    FAILURE = 'failure'


@dataclass(frozen=True)
class SubmissionAttempt:
    """Record of a single submit click for a row."""
    row_id: RowKey
    level: RetryLevel
    refilled: bool
    outcome: AttemptOutcome
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCESS


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification pushed to the caller's sink."""
    percent: int
    current: int
    total: int
    message: str


ProgressSink = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class RowError:
    """A failed row and the reason it failed."""
    row_id: RowKey
    message: str


@dataclass(frozen=True)
class AggregateResult:
    """
    Summary of one batch.

    Attributes:
        ok: Whether the run completed (authentication succeeded and the
            session stayed available); partial row failure keeps ok=True
        submitted_ids: Rows submitted successfully
        removed_ids: Rows that failed
        total_processed: Number of rows handled by the run
        success_count: len(submitted_ids)
        removed_count: len(removed_ids)
        errors: Per-row failure messages
        attempts: Every submit attempt made during the batch
        error: Batch-level error message when the run did not complete
    """
    ok: bool
    submitted_ids: Tuple[RowKey, ...] = ()
    removed_ids: Tuple[RowKey, ...] = ()
    total_processed: int = 0
    success_count: int = 0
    removed_count: int = 0
    errors: Tuple[RowError, ...] = ()
    attempts: Tuple[SubmissionAttempt, ...] = ()
    error: Optional[str] = None

    def messages(self) -> List[str]:
        """All error messages, batch-level first."""
        lines = []
        if self.error:
            lines.append(self.error)
        lines.extend(f"Row {e.row_id}: {e.message}" for e in self.errors)
        return lines

    def format_summary(self) -> str:
        """
        Format the result as a human-readable string.

        Returns:
            Formatted summary text
        """
        lines = [
            "\n" + "=" * 60,
            "SUBMISSION SUMMARY",
            "=" * 60,
            f"\nStatus: {'completed' if self.ok else 'failed'}",
            f"\nRows:",
            f"  Processed: {self.total_processed}",
            f"  Submitted: {self.success_count}",
            f"  Failed: {self.removed_count}",
        ]

        if self.error:
            lines.append(f"\nError: {self.error}")

        if self.errors:
            lines.append(f"\nFailed Rows:")
            for err in self.errors:
                lines.append(f"  - {err.row_id}: {err.message}")

        lines.append("=" * 60 + "\n")
        return "\n".join(lines)
