"""
Progress reporting and batch result aggregation.

Progress follows fixed checkpoints: 10% when login starts, 20% when it
completes, 20%-80% interpolated over the rows, and 100% when the batch
finishes. Values are clamped to [0, 100] and never go backwards within a
batch.
"""

import logging
from typing import List, Optional

from .logging_utils import get_logger, log_warning
from .models import (
    AggregateResult,
    ProgressEvent,
    ProgressSink,
    RowError,
    RowKey,
    SubmissionAttempt,
)


LOGIN_STARTED_PERCENT = 10
LOGIN_COMPLETE_PERCENT = 20
ROWS_CEILING_PERCENT = 80
COMPLETE_PERCENT = 100


def row_progress_percent(index: int, total: int) -> int:
    """
    Progress after finishing the row at index (0-based).

    Args:
        index: Row index
        total: Number of rows in the batch

    Returns:
        Percentage between LOGIN_COMPLETE_PERCENT and ROWS_CEILING_PERCENT

    Example:
        >>> row_progress_percent(0, 3)
        40
    """
    if total <= 0:
        return ROWS_CEILING_PERCENT
    span = ROWS_CEILING_PERCENT - LOGIN_COMPLETE_PERCENT
    return LOGIN_COMPLETE_PERCENT + (span * (index + 1)) // total


class ProgressReporter:
    """
    Pushes ProgressEvents for one batch to a caller-supplied sink.

    A failing sink is logged and ignored so a broken progress channel
    never aborts the batch.
    """

    def __init__(self, total: int, sink: Optional[ProgressSink] = None,
                 logger: Optional[logging.Logger] = None):
        self.total = total
        self.sink = sink
        self.logger = logger or get_logger()
        self.last_percent = 0
        self.current = 0

    def emit(self, percent: int, message: str, current: Optional[int] = None) -> ProgressEvent:
        """
        Emit one progress event.

        Args:
            percent: Requested percentage (clamped and kept monotonic)
            message: Short human-readable message
            current: Rows processed so far (unchanged if None)

        Returns:
            The event that was emitted
        """
        percent = max(0, min(COMPLETE_PERCENT, int(percent)))
        percent = max(percent, self.last_percent)
        self.last_percent = percent
        if current is not None:
            self.current = current

        event = ProgressEvent(percent=percent, current=self.current, total=self.total, message=message)
        self.logger.debug(f"Progress {percent}% ({self.current}/{self.total}): {message}")

        if self.sink is not None:
            try:
                self.sink(event)
            except Exception as e:
                log_warning(f"Progress callback failed: {e}", self.logger)

        return event

    def login_started(self) -> ProgressEvent:
        return self.emit(LOGIN_STARTED_PERCENT, "Logging in")

    def login_complete(self) -> ProgressEvent:
        return self.emit(LOGIN_COMPLETE_PERCENT, "Login complete")

    def row_processed(self, index: int, message: str) -> ProgressEvent:
        return self.emit(row_progress_percent(index, self.total), message, current=index + 1)

    def finished(self, message: str = "Automation complete") -> ProgressEvent:
        return self.emit(COMPLETE_PERCENT, message)


class BatchAggregator:
    """
    Collects row outcomes and submit attempts into an AggregateResult.
    """

    def __init__(self):
        self.submitted_ids: List[RowKey] = []
        self.removed_ids: List[RowKey] = []
        self.errors: List[RowError] = []
        self.attempts: List[SubmissionAttempt] = []

    def add_attempt(self, attempt: SubmissionAttempt):
        self.attempts.append(attempt)

    def mark_submitted(self, row_id: RowKey):
        self.submitted_ids.append(row_id)

    def mark_failed(self, row_id: RowKey, message: str):
        self.removed_ids.append(row_id)
        self.errors.append(RowError(row_id=row_id, message=message))

    def absorb(self, result: AggregateResult):
        """Add the rows, errors and attempts of another batch result."""
        self.submitted_ids.extend(result.submitted_ids)
        self.removed_ids.extend(result.removed_ids)
        self.errors.extend(result.errors)
        self.attempts.extend(result.attempts)

    def attempts_for(self, row_id: RowKey) -> List[SubmissionAttempt]:
        """Get the submit attempts recorded for one row."""
        return [a for a in self.attempts if a.row_id == row_id]

    def build(self, ok: bool, error: Optional[str] = None) -> AggregateResult:
        """
        Build the immutable batch result.

        Args:
            ok: Whether the run completed
            error: Batch-level error message

        Returns:
            AggregateResult instance
        """
        return AggregateResult(
            ok=ok,
            submitted_ids=tuple(self.submitted_ids),
            removed_ids=tuple(self.removed_ids),
            total_processed=len(self.submitted_ids) + len(self.removed_ids),
            success_count=len(self.submitted_ids),
            removed_count=len(self.removed_ids),
            errors=tuple(self.errors),
            attempts=tuple(self.attempts),
            error=error,
        )
