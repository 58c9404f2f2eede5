"""
Quarter-routed submission.

Rows are grouped by the fiscal quarter of their date and each group is
submitted to its quarter's form in its own browser session. Rows outside
every quarter fail without any browser work. The per-quarter results are
merged into one AggregateResult.
"""

import dataclasses
from typing import Callable, Dict, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from .browser_session import BrowserSessionManager
from .config import AutomationConfig
from .engine import SubmissionEngine
from .form_config import (
    FormConfigResolver,
    build_mock_form_config,
    group_rows_by_quarter,
    validate_quarter_availability,
)
from .logging_utils import get_logger, log_error, log_section
from .models import AggregateResult, AutomationRow, Credentials, FormConfig, ProgressSink
from .progress import BatchAggregator


MOCK_GROUP = 'mock'

logger = get_logger()


def assign_row_ids(rows: Sequence[AutomationRow]) -> List[AutomationRow]:
    """
    Give rows without an id their position in the input as id.

    Keeps ids unambiguous once rows are split into quarter groups.
    """
    return [
        row if row.id is not None else dataclasses.replace(row, id=index)
        for index, row in enumerate(rows)
    ]


def plan_quarters(rows: Sequence[AutomationRow], mock_url: Optional[str] = None,
                  resolver: Optional[FormConfigResolver] = None):
    """
    Decide which form each row goes to.

    Args:
        rows: Rows with ids assigned
        mock_url: Send every row to a local mock form at this address
        resolver: Form configuration resolver

    Returns:
        Tuple of (list of (group id, FormConfig, rows), rows outside every quarter)
    """
    if mock_url:
        return [(MOCK_GROUP, build_mock_form_config(mock_url), list(rows))], []

    resolver = resolver or FormConfigResolver()
    grouped, unrouted = group_rows_by_quarter(rows)
    plan = [
        (quarter_id, resolver.resolve(quarter_id), quarter_rows)
        for quarter_id, quarter_rows in grouped.items()
    ]
    return plan, unrouted


async def process_rows_by_quarter(
    rows: Sequence[AutomationRow],
    credentials: Credentials,
    config: Optional[AutomationConfig] = None,
    on_progress: Optional[ProgressSink] = None,
    mock_url: Optional[str] = None,
    resolver: Optional[FormConfigResolver] = None,
    session_factory: Callable[[AutomationConfig], BrowserSessionManager] = BrowserSessionManager,
    engine_factory: Callable[..., SubmissionEngine] = SubmissionEngine,
) -> AggregateResult:
    """
    Submit rows, one browser session and batch per quarter.

    Args:
        rows: Rows to submit
        credentials: Login credentials
        config: Automation configuration
        on_progress: Progress sink, receives each quarter's batch progress
        mock_url: Submit everything to a local mock form instead
        resolver: Form configuration resolver
        session_factory: Builds the browser session for a group
        engine_factory: Builds the engine for a group

    Returns:
        Merged AggregateResult; ok is False if any group did not complete
    """
    config = config or AutomationConfig()
    rows = assign_row_ids(rows)
    plan, unrouted = plan_quarters(rows, mock_url, resolver)

    merged = BatchAggregator()
    batch_errors: List[str] = []

    for row in unrouted:
        message = validate_quarter_availability(row.date) or f"No form for date {row.date}"
        log_error(f"Row {row.id}: {message}", logger)
        merged.mark_failed(row.id, message)

    for group_id, form_config, group_rows in plan:
        log_section(f"Quarter {group_id}: {len(group_rows)} row(s)", logger)
        result = await _run_group(group_rows, credentials, config, form_config,
                                  on_progress, session_factory, engine_factory)
        merged.absorb(result)
        if not result.ok:
            batch_errors.append(f"{group_id}: {result.error or 'batch did not complete'}")

    ok = not unrouted and not batch_errors
    return merged.build(ok=ok, error='; '.join(batch_errors) or None)


async def _run_group(rows: List[AutomationRow], credentials: Credentials,
                     config: AutomationConfig, form_config: FormConfig,
                     on_progress: Optional[ProgressSink],
                     session_factory, engine_factory) -> AggregateResult:
    try:
        async with session_factory(config) as session:
            engine = engine_factory(session, form_config, config)
            return await engine.run_batch(rows, credentials, on_progress)
    except PlaywrightError as e:
        message = f"Browser could not be started: {e}"
        log_error(message, logger)
        failed = BatchAggregator()
        for row in rows:
            failed.mark_failed(row.id, message)
        return failed.build(ok=False, error=message)


def summarize_plan(rows: Sequence[AutomationRow], mock_url: Optional[str] = None) -> Dict[str, int]:
    """
    Count rows per destination, for dry runs.

    Returns:
        Mapping of quarter id (or 'mock' / 'unrouted') to row count
    """
    plan, unrouted = plan_quarters(assign_row_ids(rows), mock_url)
    summary = {group_id: len(group_rows) for group_id, _, group_rows in plan}
    if unrouted:
        summary['unrouted'] = len(unrouted)
    return summary
