"""
Tests for progress reporting and result aggregation.
"""

from unittest.mock import MagicMock

from timesheet_submitter.models import RetryLevel, AttemptOutcome, SubmissionAttempt
from timesheet_submitter.progress import (
    BatchAggregator,
    ProgressReporter,
    row_progress_percent,
)


class TestRowProgressPercent:
    """Tests for the 20-80% row interpolation."""

    def test_three_rows(self):
        """Test the checkpoints of a three-row batch."""
        assert [row_progress_percent(i, 3) for i in range(3)] == [40, 60, 80]

    def test_uneven_division_floors(self):
        """Test that percentages are floored."""
        assert row_progress_percent(0, 7) == 28

    def test_last_row_reaches_ceiling(self):
        """Test that the last row always reaches 80."""
        for total in (1, 2, 5, 13, 100):
            assert row_progress_percent(total - 1, total) == 80

    def test_empty_batch(self):
        """Test that an empty batch does not divide by zero."""
        assert row_progress_percent(0, 0) == 80


class TestProgressReporter:
    """Tests for ProgressReporter."""

    def test_checkpoint_sequence(self):
        """Test the login, row and completion checkpoints."""
        events = []
        reporter = ProgressReporter(2, events.append)

        reporter.login_started()
        reporter.login_complete()
        reporter.row_processed(0, "Completed row 1/2")
        reporter.row_processed(1, "Completed row 2/2")
        reporter.finished()

        assert [e.percent for e in events] == [10, 20, 50, 80, 100]
        assert [e.current for e in events] == [0, 0, 1, 2, 2]
        assert all(e.total == 2 for e in events)

    def test_values_never_decrease(self):
        """Test that a lower requested value is raised to the last one."""
        events = []
        reporter = ProgressReporter(1, events.append)

        reporter.emit(50, "half")
        reporter.emit(30, "lower")

        assert events[-1].percent == 50

    def test_values_clamped(self):
        """Test that values outside [0, 100] are clamped."""
        events = []
        reporter = ProgressReporter(1, events.append)

        reporter.emit(-5, "negative")
        reporter.emit(150, "too high")

        assert [e.percent for e in events] == [0, 100]

    def test_no_sink(self):
        """Test that reporting without a sink still returns events."""
        reporter = ProgressReporter(1)

        assert reporter.finished().percent == 100

    def test_sink_error_is_logged(self):
        """Test that a failing sink does not raise."""
        sink = MagicMock(side_effect=ValueError("closed window"))
        reporter = ProgressReporter(1, sink)

        event = reporter.login_started()

        assert event.percent == 10
        sink.assert_called_once()


class TestBatchAggregator:
    """Tests for BatchAggregator."""

    def test_build_counts(self):
        """Test that counts match the recorded ids."""
        aggregator = BatchAggregator()
        aggregator.mark_submitted(1)
        aggregator.mark_submitted(2)
        aggregator.mark_failed(3, "Form submission failed")

        result = aggregator.build(ok=True)

        assert result.submitted_ids == (1, 2)
        assert result.removed_ids == (3,)
        assert result.total_processed == 3
        assert result.success_count == 2
        assert result.removed_count == 1
        assert result.messages() == ["Row 3: Form submission failed"]

    def test_attempts_for_row(self):
        """Test filtering attempts by row."""
        aggregator = BatchAggregator()
        aggregator.add_attempt(SubmissionAttempt(1, RetryLevel.INITIAL, False, AttemptOutcome.FAILURE, "x"))
        aggregator.add_attempt(SubmissionAttempt(2, RetryLevel.INITIAL, False, AttemptOutcome.SUCCESS))
        aggregator.add_attempt(SubmissionAttempt(1, RetryLevel.LEVEL_1, False, AttemptOutcome.SUCCESS))

        attempts = aggregator.attempts_for(1)

        assert [a.level for a in attempts] == [RetryLevel.INITIAL, RetryLevel.LEVEL_1]
        assert attempts[-1].succeeded

    def test_absorb_merges_results(self):
        """Test merging another batch's result."""
        first = BatchAggregator()
        first.mark_submitted('a')
        other = BatchAggregator()
        other.mark_failed('b', "bad date")

        first.absorb(other.build(ok=False, error="auth"))
        result = first.build(ok=False, error="auth")

        assert result.submitted_ids == ('a',)
        assert result.removed_ids == ('b',)
        assert result.messages() == ["auth", "Row b: bad date"]
