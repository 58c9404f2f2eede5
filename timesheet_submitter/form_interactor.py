"""
Form field filling.

FormInteractor turns an AutomationRow into form values and types them
into the page, handling dropdown-backed fields and letting client-side
validation settle on the key fields.
"""

import dataclasses
from typing import Dict, Optional

from playwright.async_api import Error as PlaywrightError, Locator

from .browser_session import BrowserSessionManager
from .config import AutomationConfig
from .errors import StabilityTimeout
from .logging_utils import get_logger, log_timer, log_warning
from .models import AutomationRow, FormConfig
from .selectors import FieldSpec, FormSelectors
from . import stability


EMPTY_MARKERS = ('', 'nan', 'none')


def should_process_value(value) -> bool:
    """
    Check whether a field value should be typed into the form.

    Args:
        value: Raw value

    Returns:
        False for None, NaN and empty/'nan'/'none' strings
    """
    if value is None:
        return False
    if isinstance(value, float) and value != value:
        return False
    return str(value).strip().lower() not in EMPTY_MARKERS


def format_hours(hours: float) -> str:
    """Format hours without a trailing '.0' (8.0 -> '8', 7.5 -> '7.5')."""
    return f"{float(hours):g}"


def fields_for_row(row: AutomationRow) -> Dict[str, str]:
    """
    Build the ordered field values for a row.

    Empty optional values are left out.

    Args:
        row: Row to submit

    Returns:
        Mapping of field key to the string typed into the form, in FIELD_ORDER
    """
    raw = {
        'project_code': row.project,
        'date': row.form_date() if should_process_value(row.date) else None,
        'hours': format_hours(row.hours) if should_process_value(row.hours) else None,
        'tool': row.tool,
        'task_description': row.task_description,
        'detail_code': row.charge_code,
    }
    return {
        key: str(raw[key]).strip()
        for key in FormSelectors.FIELD_ORDER
        if should_process_value(raw.get(key))
    }


class FormInteractor:
    """
    Fills the timesheet form on the session page.
    """

    def __init__(self, session: BrowserSessionManager, form_config: FormConfig,
                 config: Optional[AutomationConfig] = None):
        """
        Initialize the form interactor.

        Args:
            session: Browser session owning the page
            form_config: Destination form
            config: Automation configuration
        """
        self.session = session
        self.form_config = form_config
        self.config = config or session.config
        self.logger = get_logger()

    async def wait_for_form_ready(self):
        """
        Wait until the form is loaded, settled and has interactive inputs.

        Raises:
            StabilityTimeout: If no enabled input appears in time
            PageNotAvailable: If the session is closed
        """
        page = self.session.require_page()
        cfg = self.config

        try:
            await page.wait_for_load_state('domcontentloaded', timeout=cfg.global_timeout_ms)
        except PlaywrightError as e:
            stability.ensure_page_open(page)
            self.logger.debug(f"DOM content load wait failed: {e}")

        await stability.wait_for_dom_stability(
            page, FormSelectors.FORM, 'visible',
            cfg.dynamic_wait_base_timeout, cfg.dynamic_wait_max_timeout, "form readiness",
        )
        await stability.wait_for_network_idle(
            page, cfg.dynamic_wait_base_timeout, cfg.dynamic_wait_max_timeout,
        )

        async def inputs_ready() -> bool:
            stability.ensure_page_open(page)
            try:
                inputs = page.locator(FormSelectors.FORM_INPUTS)
                count = await inputs.count()
                for i in range(min(count, 3)):
                    field = inputs.nth(i)
                    if await field.is_visible() and await field.is_enabled():
                        return True
            except PlaywrightError:
                return False
            return False

        ready = await stability.dynamic_wait(
            inputs_ready,
            cfg.dynamic_wait_base_timeout,
            cfg.dynamic_wait_max_timeout,
            cfg.dynamic_wait_multiplier,
            "form inputs ready",
        )
        if not ready:
            raise StabilityTimeout("Form inputs did not become interactive")

    async def reset_form(self):
        """
        Navigate back to the form base URL for a fresh, empty form.
        """
        page = self.session.require_page()
        self.logger.debug(f"Returning to {self.form_config.base_url}")
        await page.goto(
            self.form_config.base_url,
            timeout=self.config.global_timeout_ms,
            wait_until='domcontentloaded',
        )

    async def fill_fields(self, fields: Dict[str, str], project: Optional[str] = None):
        """
        Fill every field in order.

        Args:
            fields: Field key -> value, as built by fields_for_row()
            project: Project code, used to pick the project's tool field

        Raises:
            StabilityTimeout: If a field never becomes visible
            PageNotAvailable: If the session is closed
        """
        with log_timer("row-fill", self.logger):
            for key, value in fields.items():
                spec = FormSelectors.FIELD_DEFINITIONS.get(key)
                if spec is None:
                    self.logger.debug(f"No field definition for '{key}', skipping")
                    continue

                if key == 'tool' and project:
                    tool_locator = FormSelectors.get_tool_locator(project)
                    if tool_locator:
                        spec = dataclasses.replace(spec, locator=tool_locator)

                await self.fill_field(spec, value)

        self.logger.debug(f"Filled {len(fields)} field(s)")

    async def fill_field(self, spec: FieldSpec, value: str):
        """
        Type one value into a field.

        Args:
            spec: Field definition
            value: Value to type

        Raises:
            StabilityTimeout: If the field never becomes visible
        """
        page = self.session.require_page()
        cfg = self.config

        visible = await stability.wait_for_element(
            page, spec.locator, 'visible',
            cfg.dynamic_wait_base_timeout, cfg.global_timeout,
        )
        if not visible:
            raise StabilityTimeout(f"Field '{spec.label}' did not become visible within timeout")

        field = page.locator(spec.locator).first
        await field.fill('')
        await field.fill(value)
        self.logger.debug(f"    {spec.key}: filled")

        if await self._is_dropdown(spec, field):
            await self._accept_dropdown(field, spec)

        if spec.check_validation:
            await self._check_validation(field, spec)

    async def _is_dropdown(self, spec: FieldSpec, field: Locator) -> bool:
        if (spec.field_type or '').lower() in ('dropdown', 'select'):
            return True

        # Smartsheet dropdowns advertise listbox semantics
        try:
            haspopup = (await field.get_attribute('aria-haspopup')) or ''
            role = (await field.get_attribute('role')) or ''
        except PlaywrightError:
            return False
        return 'listbox' in haspopup.lower() or 'combobox' in role.lower()

    async def _accept_dropdown(self, field: Locator, spec: FieldSpec):
        page = self.session.require_page()
        await stability.wait_for_dropdown_options(
            page, FormSelectors.LISTBOX,
            self.config.dynamic_wait_base_timeout, self.config.dynamic_wait_max_timeout,
        )
        try:
            await field.press('Enter')
        except PlaywrightError as e:
            log_warning(f"Could not confirm dropdown '{spec.label}': {e}", self.logger)

    async def _check_validation(self, field: Locator, spec: FieldSpec):
        page = self.session.require_page()
        await stability.wait_for_validation_stability(page, FormSelectors.FORM)

        try:
            invalid = await field.get_attribute('aria-invalid')
        except PlaywrightError:
            invalid = None
        if invalid and invalid != 'false':
            log_warning(f"Field '{spec.label}' shows invalid state", self.logger)
