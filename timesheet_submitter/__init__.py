"""
Timesheet Submitter - browser-driven timesheet submission.

This package submits timesheet rows to web forms that have no public API
by driving a real browser: one login per batch, then one form submission
per row with a bounded retry ladder and progress reporting.
"""

__version__ = '1.0.0'

from .models import AutomationRow, Credentials, FormConfig, AggregateResult, ProgressEvent
from .config import AutomationConfig
from .errors import (
    SubmissionError,
    AuthenticationFailure,
    PageNotAvailable,
    RowValidationFailure,
    SubmissionRejected,
    StabilityTimeout,
    UnexpectedError,
)
from .browser_session import BrowserSessionManager
from .engine import SubmissionEngine
from .form_config import FormConfigResolver, create_form_config
from .quarter_processing import process_rows_by_quarter

__all__ = [
    'AutomationRow',
    'Credentials',
    'FormConfig',
    'AggregateResult',
    'ProgressEvent',
    'AutomationConfig',
    'SubmissionError',
    'AuthenticationFailure',
    'PageNotAvailable',
    'RowValidationFailure',
    'SubmissionRejected',
    'StabilityTimeout',
    'UnexpectedError',
    'BrowserSessionManager',
    'SubmissionEngine',
    'FormConfigResolver',
    'create_form_config',
    'process_rows_by_quarter',
]
