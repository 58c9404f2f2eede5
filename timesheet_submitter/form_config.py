"""
Form configuration and quarter routing.

Each fiscal quarter has its own Smartsheet form. This module maps entry
dates to quarters and builds the FormConfig (address, submission
endpoint, success URL patterns) for a quarter.

To add a quarter, append a QuarterDefinition to QUARTER_DEFINITIONS with
ISO (YYYY-MM-DD) start and end dates and the form URL/ID.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .models import AutomationRow, FormConfig
from .logging_utils import get_logger


SUBMISSION_API_BASE = "https://forms.smartsheet.com/api/submit"
FORMS_HOST = "forms.smartsheet.com"
APP_HOST = "app.smartsheet.com"

ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


@dataclass(frozen=True)
class QuarterDefinition:
    """
    A fiscal quarter and its destination form.

    Attributes:
        id: Quarter identifier (e.g., "Q4-2025")
        name: Human-readable name
        start_date: First day, YYYY-MM-DD
        end_date: Last day, YYYY-MM-DD
        form_url: Smartsheet form URL
        form_id: Smartsheet form ID
    """
    id: str
    name: str
    start_date: str
    end_date: str
    form_url: str
    form_id: str


QUARTER_DEFINITIONS: List[QuarterDefinition] = [
    QuarterDefinition(
        id='Q4-2025',
        name='Q4 2025',
        start_date='2025-10-01',
        end_date='2025-12-31',
        form_url='https://app.smartsheet.com/b/form/0199fabee6497e60abb6030c48d84585',
        form_id='0199fabee6497e60abb6030c48d84585',
    ),
    QuarterDefinition(
        id='Q1-2026',
        name='Q1 2026',
        start_date='2026-01-01',
        end_date='2026-03-31',
        form_url='https://app.smartsheet.com/b/form/019b5b17a03a79ac9437e45996f49f4f',
        form_id='019b5b17a03a79ac9437e45996f49f4f',
    ),
]


def create_form_config(form_url: str, form_id: str) -> FormConfig:
    """
    Build the form configuration for a form URL and ID.

    Success patterns run from most to least specific: the exact
    submission endpoint, the forms host, then the app host.

    Args:
        form_url: Form address
        form_id: Form identifier

    Returns:
        FormConfig instance

    Raises:
        ValueError: If form_url or form_id is empty
    """
    if not form_url or not form_url.strip():
        raise ValueError("Form URL cannot be empty")
    if not form_id or not form_id.strip():
        raise ValueError("Form ID cannot be empty")

    endpoint = f"{SUBMISSION_API_BASE}/{form_id}"
    return FormConfig(
        base_url=form_url,
        form_id=form_id,
        submission_endpoint=endpoint,
        success_url_patterns=(
            f"**{FORMS_HOST}/api/submit/{form_id}",
            f"**{FORMS_HOST}/**",
            f"**{APP_HOST}/**",
        ),
    )


def build_mock_form_config(base_url: str = 'http://localhost:3000',
                           form_id: str = '0197cbae7daf72bdb96b3395b500d414') -> FormConfig:
    """
    Build a form configuration pointing at a local mock form.

    Args:
        base_url: Mock server address
        form_id: Form identifier served by the mock

    Returns:
        FormConfig instance
    """
    base_url = base_url.rstrip('/')
    host = urlparse(base_url).netloc or base_url
    return FormConfig(
        base_url=base_url,
        form_id=form_id,
        submission_endpoint=f"{base_url}/api/submit/{form_id}",
        success_url_patterns=(
            f"**{host}/api/submit/**",
            f"**{host}/**",
        ),
    )


def parse_iso_date(value: str) -> Optional[date]:
    """
    Parse a YYYY-MM-DD string into a date.

    Returns:
        date, or None if the string is not a valid calendar date
    """
    if not isinstance(value, str) or not ISO_DATE_RE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def get_quarter_for_date(date_str: str) -> Optional[QuarterDefinition]:
    """
    Find the quarter a date falls into.

    Args:
        date_str: Date in YYYY-MM-DD format

    Returns:
        QuarterDefinition, or None for invalid dates or dates outside all quarters
    """
    if parse_iso_date(date_str) is None:
        return None

    # ISO dates compare correctly as strings
    for quarter in QUARTER_DEFINITIONS:
        if quarter.start_date <= date_str <= quarter.end_date:
            return quarter
    return None


def validate_quarter_availability(date_str: str) -> Optional[str]:
    """
    Check that a date falls inside an available quarter.

    Args:
        date_str: Date in YYYY-MM-DD format

    Returns:
        User-facing error message, or None if the date is valid
    """
    if not date_str:
        return "Please enter a date"

    if get_quarter_for_date(date_str) is None:
        available = ' or '.join(
            f"{q.name} ({q.start_date[5:7]}/{q.start_date[8:10]}-{q.end_date[5:7]}/{q.end_date[8:10]})"
            for q in QUARTER_DEFINITIONS
        )
        return f"Date must be in {available}"

    return None


def get_quarter_by_id(quarter_id: str) -> Optional[QuarterDefinition]:
    """Get a quarter definition by ID."""
    for quarter in QUARTER_DEFINITIONS:
        if quarter.id == quarter_id:
            return quarter
    return None


def get_available_quarter_ids() -> List[str]:
    """Get all configured quarter IDs."""
    return [q.id for q in QUARTER_DEFINITIONS]


def get_current_quarter(today: Optional[date] = None) -> Optional[QuarterDefinition]:
    """
    Get the quarter containing today's date.

    Args:
        today: Date to use instead of date.today()
    """
    if today is None:
        today = date.today()
    return get_quarter_for_date(today.isoformat())


def group_rows_by_quarter(rows: Iterable[AutomationRow]) -> Tuple[Dict[str, List[AutomationRow]], List[AutomationRow]]:
    """
    Group rows by the quarter of their date, preserving order.

    Args:
        rows: Rows to group

    Returns:
        Tuple of (quarter_id -> rows, rows outside every quarter)
    """
    grouped: Dict[str, List[AutomationRow]] = {}
    unrouted: List[AutomationRow] = []

    for row in rows:
        quarter = get_quarter_for_date(row.date)
        if quarter is None:
            unrouted.append(row)
            continue
        grouped.setdefault(quarter.id, []).append(row)

    return grouped, unrouted


class FormConfigResolver:
    """
    Resolves and caches one FormConfig per quarter.

    Building is deterministic, so a cached config is returned for repeat
    lookups of the same quarter. Cached configs are frozen.
    """

    def __init__(self, quarters: Optional[Sequence[QuarterDefinition]] = None):
        self.quarters = list(quarters) if quarters is not None else list(QUARTER_DEFINITIONS)
        self._cache: Dict[str, FormConfig] = {}
        self.logger = get_logger()

    def resolve(self, quarter_id: str) -> FormConfig:
        """
        Get the form configuration for a quarter.

        Args:
            quarter_id: Quarter identifier (e.g., "Q1-2026")

        Returns:
            FormConfig instance

        Raises:
            KeyError: If the quarter is unknown
        """
        cached = self._cache.get(quarter_id)
        if cached is not None:
            return cached

        quarter = next((q for q in self.quarters if q.id == quarter_id), None)
        if quarter is None:
            raise KeyError(f"Unknown quarter: {quarter_id}")

        form_config = create_form_config(quarter.form_url, quarter.form_id)
        self._cache[quarter_id] = form_config
        self.logger.debug(f"Resolved form for {quarter_id}: {form_config.base_url}")
        return form_config

    def resolve_for_date(self, date_str: str) -> Optional[FormConfig]:
        """
        Get the form configuration for the quarter containing a date.

        Returns:
            FormConfig, or None if the date is outside every quarter
        """
        quarter = get_quarter_for_date(date_str)
        if quarter is None or quarter.id not in {q.id for q in self.quarters}:
            return None
        return self.resolve(quarter.id)
