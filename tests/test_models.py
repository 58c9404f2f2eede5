"""
Tests for data models.
"""

import dataclasses

import pytest

from timesheet_submitter.models import (
    AggregateResult,
    AttemptOutcome,
    AutomationRow,
    Credentials,
    RetryLevel,
    RowError,
    SubmissionAttempt,
)


class TestAutomationRow:
    """Tests for AutomationRow."""

    def test_form_date(self):
        """Test ISO dates are converted to mm/dd/yyyy."""
        row = AutomationRow(date='2025-10-06', hours=8, project='P', task_description='x')
        assert row.form_date() == '10/06/2025'

    def test_form_date_passthrough(self):
        """Test non-ISO dates are returned unchanged."""
        row = AutomationRow(date='10/06/2025', hours=8, project='P', task_description='x')
        assert row.form_date() == '10/06/2025'

    def test_rows_are_immutable(self):
        """Test that rows cannot be modified by the engine."""
        row = AutomationRow(date='2025-10-06', hours=8, project='P', task_description='x')
        with pytest.raises(dataclasses.FrozenInstanceError):
            row.hours = 4


class TestCredentials:
    """Tests for Credentials."""

    def test_password_not_in_repr(self):
        """Test that the password never appears in repr()."""
        creds = Credentials(email='me@example.com', password='hunter2')
        assert 'hunter2' not in repr(creds)
        assert 'me@example.com' in repr(creds)


class TestSubmissionAttempt:
    """Tests for SubmissionAttempt."""

    def test_succeeded(self):
        """Test the succeeded property."""
        ok = SubmissionAttempt(1, RetryLevel.LEVEL_2, True, AttemptOutcome.SUCCESS)
        failed = SubmissionAttempt(1, RetryLevel.INITIAL, False, AttemptOutcome.FAILURE, "timeout")
        assert ok.succeeded
        assert not failed.succeeded
        assert failed.error_message == "timeout"


class TestAggregateResult:
    """Tests for AggregateResult."""

    def test_format_summary(self):
        """Test the human-readable summary."""
        result = AggregateResult(
            ok=True,
            submitted_ids=(1,),
            removed_ids=(2,),
            total_processed=2,
            success_count=1,
            removed_count=1,
            errors=(RowError(2, "Form submission failed"),),
        )

        summary = result.format_summary()

        assert "SUBMISSION SUMMARY" in summary
        assert "Submitted: 1" in summary
        assert "Failed: 1" in summary
        assert "2: Form submission failed" in summary

    def test_failed_batch_summary(self):
        """Test the summary of a batch that did not complete."""
        result = AggregateResult(ok=False, error="Authentication failed: bad password")

        summary = result.format_summary()

        assert "Status: failed" in summary
        assert "Authentication failed" in summary
        assert result.messages() == ["Authentication failed: bad password"]
