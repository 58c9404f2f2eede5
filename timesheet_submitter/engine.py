"""
Retry-escalation submission engine.

SubmissionEngine logs in once per batch and then drives every row
through a bounded retry ladder:

    Initial  fill the form, click submit
    Level 1  wait submit_click_retry_delay_seconds, click submit again
    Level 2  wait submit_retry_delay_seconds, re-fill every field, click submit

A row gets at most three submit clicks and at most one refill. A row
that exhausts the ladder is recorded as failed and the batch moves on.
Authentication failure is batch-fatal: no row is attempted.
"""

import asyncio
from typing import List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from .authentication import LoginManager
from .browser_session import BrowserSessionManager
from .config import AutomationConfig
from .errors import (
    AuthenticationFailure,
    PageNotAvailable,
    RowValidationFailure,
    StabilityTimeout,
    SubmissionError,
    SubmissionRejected,
    UnexpectedError,
)
from .form_config import QUARTER_DEFINITIONS, get_quarter_for_date, parse_iso_date
from .form_interactor import FormInteractor, fields_for_row
from .logging_utils import (
    get_logger,
    log_error,
    log_section,
    log_step,
    log_success,
    log_timer,
    log_warning,
)
from .models import (
    AggregateResult,
    AttemptOutcome,
    AutomationRow,
    Credentials,
    FormConfig,
    ProgressSink,
    RetryLevel,
    RowKey,
    SubmissionAttempt,
)
from .progress import BatchAggregator, ProgressReporter
from .submission_monitor import SubmissionMonitor


REQUIRED_FIELDS = ('hours', 'project_code', 'date')

LADDER_EXHAUSTED_MESSAGE = (
    "Form submission failed after 3 attempts "
    "(initial + Level 1 retry + Level 2 retry)"
)


def row_key(row: AutomationRow, index: int) -> RowKey:
    """Identify a row by its id, falling back to its position in the batch."""
    return row.id if row.id is not None else index


class SubmissionEngine:
    """
    Submits timesheet rows to one form through one browser session.

    The session must be started by the caller. Batches that share a
    session run one at a time.
    """

    def __init__(self, session: BrowserSessionManager, form_config: FormConfig,
                 config: Optional[AutomationConfig] = None, *,
                 login_manager: Optional[LoginManager] = None,
                 form_interactor: Optional[FormInteractor] = None,
                 submission_monitor: Optional[SubmissionMonitor] = None):
        """
        Initialize the engine.

        Args:
            session: Browser session (started by the caller)
            form_config: Destination form
            config: Automation configuration (defaults to the session's)
            login_manager: Login collaborator (built from the session if None)
            form_interactor: Field-filling collaborator (built if None)
            submission_monitor: Submit/verify collaborator (built if None)
        """
        self.session = session
        self.form_config = form_config
        self.config = config or session.config
        self.config.validate()
        self.logger = get_logger()

        self.login_manager = login_manager or LoginManager(session, form_config, self.config)
        self.form_interactor = form_interactor or FormInteractor(session, form_config, self.config)
        self.submission_monitor = submission_monitor or SubmissionMonitor(
            session, form_config, self.config
        )

    async def run_batch(self, rows: Sequence[AutomationRow], credentials: Credentials,
                        on_progress: Optional[ProgressSink] = None) -> AggregateResult:
        """
        Log in and submit every row.

        Never raises for row-level or batch-level failures; they are
        reported through the returned result.

        Args:
            rows: Rows to submit, in order
            credentials: Login credentials for this batch only
            on_progress: Optional sink for ProgressEvents

        Returns:
            AggregateResult for the batch
        """
        rows = list(rows)
        async with self.session.exclusive():
            return await self._run(rows, credentials, on_progress)

    async def _run(self, rows: List[AutomationRow], credentials: Credentials,
                   on_progress: Optional[ProgressSink]) -> AggregateResult:
        aggregator = BatchAggregator()
        reporter = ProgressReporter(len(rows), on_progress, self.logger)

        try:
            self.session.require_page()
        except PageNotAvailable as e:
            log_error(f"Cannot start batch: {e}", self.logger)
            return aggregator.build(ok=False, error=str(e))

        log_section(f"Submitting {len(rows)} row(s) to {self.form_config.base_url}", self.logger)

        reporter.login_started()
        auth_error = await self._authenticate(credentials)
        if auth_error is not None:
            log_error(auth_error, self.logger)
            reporter.finished(f"Automation failed: {auth_error}")
            return aggregator.build(ok=False, error=auth_error)
        reporter.login_complete()

        for index, row in enumerate(rows):
            row_id = row_key(row, index)
            try:
                submitted = await self._process_row_safely(row, row_id, index, len(rows), aggregator)
            except PageNotAvailable as e:
                message = str(e)
                log_error(f"Browser closed during batch: {message}", self.logger)
                # The current row may already be recorded if only the reset failed
                recorded = len(aggregator.submitted_ids) + len(aggregator.removed_ids)
                for remaining_index in range(recorded, len(rows)):
                    aggregator.mark_failed(row_key(rows[remaining_index], remaining_index), message)
                reporter.finished(f"Automation stopped: {message}")
                return aggregator.build(ok=False, error=message)

            status = "Completed" if submitted else "Failed"
            reporter.row_processed(index, f"{status} row {index + 1}/{len(rows)}")

        result = aggregator.build(ok=True)
        log_success(
            f"Batch complete: {result.success_count} submitted, {result.removed_count} failed",
            self.logger,
        )
        reporter.finished("Automation complete")
        return result

    async def _authenticate(self, credentials: Credentials) -> Optional[str]:
        """
        Run the login recipe under the authentication timeout.

        Returns:
            None on success, otherwise the batch-level error message
        """
        timeout = self.config.authentication_timeout
        try:
            await asyncio.wait_for(self.login_manager.run_login_steps(credentials), timeout=timeout)
        except asyncio.TimeoutError:
            return f"Authentication did not complete within {timeout:.0f}s"
        except (AuthenticationFailure, PageNotAvailable) as e:
            return f"Authentication failed: {e}"
        except (SubmissionError, PlaywrightError) as e:
            return f"Authentication failed ({type(e).__name__}): {e}"
        return None

    async def _process_row_safely(self, row: AutomationRow, row_id: RowKey, index: int,
                                  total: int, aggregator: BatchAggregator) -> bool:
        """
        Process one row, containing every failure except a closed session.

        Returns:
            True if the row was submitted

        Raises:
            PageNotAvailable: If the session was closed
        """
        log_step(f"Row {index + 1}/{total} ({row.date}, {row.project})", self.logger)
        submitted = False
        try:
            await self._process_row(row, row_id, aggregator)
        except PageNotAvailable:
            raise
        except (RowValidationFailure, SubmissionRejected, StabilityTimeout) as e:
            log_error(f"Row {row_id} failed: {e}", self.logger)
            aggregator.mark_failed(row_id, str(e))
        except Exception as e:
            if self.session.is_closed:
                raise PageNotAvailable() from e
            failure = UnexpectedError(e)
            log_error(f"Row {row_id} failed unexpectedly: {failure}", self.logger)
            aggregator.mark_failed(row_id, str(failure))
            await self._recover(row_id)
            return False
        else:
            submitted = True
            aggregator.mark_submitted(row_id)
            log_success(f"Row {row_id} submitted", self.logger)

        if index < total - 1:
            await self._recover(row_id)
        return submitted

    async def _process_row(self, row: AutomationRow, row_id: RowKey, aggregator: BatchAggregator):
        fields = self._validate_row(row)

        with log_timer("row-process", self.logger) as timing:
            await self.form_interactor.wait_for_form_ready()
            await self.form_interactor.fill_fields(fields, row.project)

            if not self.config.submit_form_after_filling:
                self.logger.info("Fill-only mode: not submitting")
                timing['outcome'] = 'filled'
                return

            if not await self._submit_with_retry(row_id, fields, row.project, aggregator):
                raise SubmissionRejected(LADDER_EXHAUSTED_MESSAGE)
            timing['outcome'] = 'success'

    def _validate_row(self, row: AutomationRow):
        """
        Check required fields and that the date belongs to this form.

        Returns:
            Field values for the row

        Raises:
            RowValidationFailure: If the row cannot be submitted to this form
        """
        fields = fields_for_row(row)
        missing = [key for key in REQUIRED_FIELDS if key not in fields]
        if missing:
            raise RowValidationFailure(f"Missing required fields: {', '.join(missing)}")

        if parse_iso_date(str(row.date).strip()) is None:
            raise RowValidationFailure(f"Invalid date '{row.date}', expected YYYY-MM-DD")

        # Forms outside the quarter table (e.g. a local mock) accept any date
        if any(q.form_id == self.form_config.form_id for q in QUARTER_DEFINITIONS):
            quarter = get_quarter_for_date(str(row.date).strip())
            if quarter is None:
                raise RowValidationFailure(f"Date {row.date} is not in any available quarter")
            if quarter.form_id != self.form_config.form_id:
                raise RowValidationFailure(
                    f"Date {row.date} belongs to {quarter.name} but form configured for different quarter"
                )

        return fields

    async def _submit_with_retry(self, row_id: RowKey, fields, project: str,
                                 aggregator: BatchAggregator) -> bool:
        """
        Run the three-level ladder for one filled row.

        Returns:
            True if any of the three clicks was confirmed
        """
        if await self._attempt(row_id, RetryLevel.INITIAL, aggregator):
            return True

        self.logger.info(
            f"Level 1 retry for row {row_id} in {self.config.submit_click_retry_delay_seconds}s "
            "(re-click, no re-fill)"
        )
        await self._pause(self.config.submit_click_retry_delay_seconds)
        if await self._attempt(row_id, RetryLevel.LEVEL_1, aggregator):
            return True

        self.logger.info(
            f"Level 2 retry for row {row_id} in {self.config.submit_retry_delay_seconds}s "
            "(re-fill and submit)"
        )
        await self._pause(self.config.submit_retry_delay_seconds)
        try:
            await self.form_interactor.fill_fields(fields, project)
        except StabilityTimeout as e:
            log_warning(f"Re-fill for row {row_id} failed: {e}", self.logger)
            aggregator.add_attempt(SubmissionAttempt(
                row_id, RetryLevel.LEVEL_2, True, AttemptOutcome.FAILURE, str(e)
            ))
            return False

        return await self._attempt(row_id, RetryLevel.LEVEL_2, aggregator, refilled=True)

    async def _attempt(self, row_id: RowKey, level: RetryLevel, aggregator: BatchAggregator,
                       refilled: bool = False) -> bool:
        """
        Click submit once and record the attempt.

        Returns:
            True if the submission was confirmed
        """
        error_message = None
        try:
            succeeded = await self.submission_monitor.submit_form()
            if not succeeded:
                error_message = "Submission was not confirmed"
        except (SubmissionRejected, StabilityTimeout) as e:
            succeeded = False
            error_message = str(e)

        outcome = AttemptOutcome.SUCCESS if succeeded else AttemptOutcome.FAILURE
        aggregator.add_attempt(SubmissionAttempt(row_id, level, refilled, outcome, error_message))

        if succeeded:
            self.logger.debug(f"Row {row_id}: {level.value} submission succeeded")
        else:
            log_warning(f"Row {row_id}: {level.value} submission failed ({error_message})", self.logger)
        return succeeded

    async def _pause(self, seconds: float):
        await asyncio.sleep(seconds)

    async def _recover(self, row_id: RowKey):
        """Return to the form base URL so the next row starts on a clean form."""
        try:
            await self.form_interactor.reset_form()
        except PageNotAvailable:
            raise
        except Exception as e:
            if self.session.is_closed:
                raise PageNotAvailable() from e
            log_warning(f"Could not reset form after row {row_id}: {e}", self.logger)
