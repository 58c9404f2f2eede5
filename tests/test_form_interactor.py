"""
Tests for building field values and filling the form.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, call

import pytest

from timesheet_submitter.browser_session import BrowserSessionManager
from timesheet_submitter.config import AutomationConfig
from timesheet_submitter.errors import StabilityTimeout
from timesheet_submitter.form_config import build_mock_form_config
from timesheet_submitter.form_interactor import (
    FormInteractor,
    fields_for_row,
    format_hours,
    should_process_value,
)
from timesheet_submitter.models import AutomationRow


def make_interactor(count=1):
    """Interactor over a mocked page whose locators all resolve to one field."""
    config = AutomationConfig(global_timeout=0.05, dynamic_wait_base_timeout=0.01,
                              dynamic_wait_max_timeout=0.1)
    field = MagicMock()
    field.fill = AsyncMock()
    field.press = AsyncMock()
    field.get_attribute = AsyncMock(return_value=None)
    field.is_visible = AsyncMock(return_value=True)

    locator = MagicMock()
    locator.count = AsyncMock(return_value=count)
    locator.first = field

    page = MagicMock()
    page.is_closed = MagicMock(return_value=False)
    page.locator = MagicMock(return_value=locator)
    page.goto = AsyncMock()

    session = BrowserSessionManager(config)
    session.page = page
    form = build_mock_form_config('http://localhost:3000')
    return FormInteractor(session, form, config), page, field


class TestFieldsForRow:
    """Tests for converting rows to field values."""

    def test_field_order_and_formatting(self):
        """Test that fields follow FIELD_ORDER with a mm/dd/yyyy date."""
        row = AutomationRow(date='2025-10-06', hours=8.0, project='OSC-BBB',
                            task_description='Site visit', tool='Meter', charge_code='EPR1')

        fields = fields_for_row(row)

        assert list(fields) == ['project_code', 'date', 'hours', 'tool', 'task_description', 'detail_code']
        assert fields['date'] == '10/06/2025'
        assert fields['hours'] == '8'
        assert fields['detail_code'] == 'EPR1'

    def test_empty_optional_fields_skipped(self):
        """Test that missing tool and charge code are left out."""
        row = AutomationRow(date='2025-10-06', hours=7.5, project='P', task_description='x')

        fields = fields_for_row(row)

        assert 'tool' not in fields
        assert 'detail_code' not in fields
        assert fields['hours'] == '7.5'

    def test_nan_and_none_strings_skipped(self):
        """Test that 'nan' and 'None' placeholders are not typed."""
        row = AutomationRow(date='2025-10-06', hours=1, project='P', task_description='nan', tool='None')

        fields = fields_for_row(row)

        assert 'task_description' not in fields
        assert 'tool' not in fields

    def test_should_process_value(self):
        """Test the empty-value rules."""
        assert should_process_value('x')
        assert should_process_value(0)
        assert not should_process_value(None)
        assert not should_process_value(float('nan'))
        assert not should_process_value('  ')
        assert not should_process_value('NaN')

    def test_format_hours(self):
        """Test hours formatting."""
        assert format_hours(8) == '8'
        assert format_hours(7.25) == '7.25'


class TestFillFields:
    """Tests for FormInteractor.fill_fields()."""

    def test_fills_each_field(self):
        """Test that every field is cleared then filled with its value."""
        interactor, page, field = make_interactor()

        asyncio.run(interactor.fill_fields({'project_code': 'P', 'hours': '8'}))

        assert field.fill.await_args_list == [call(''), call('P'), call(''), call('8')]

    def test_project_specific_tool_locator(self):
        """Test that projects with their own tool field use its locator."""
        interactor, page, field = make_interactor()

        asyncio.run(interactor.fill_fields({'tool': 'DECA Meter'}, project='OSC-BBB'))

        page.locator.assert_any_call("input[aria-label='BBB Tool']")

    def test_dropdown_field_confirmed_with_enter(self):
        """Test that the detail charge code dropdown is confirmed."""
        interactor, page, field = make_interactor()

        asyncio.run(interactor.fill_fields({'detail_code': 'EPR1'}))

        field.press.assert_awaited_once_with('Enter')

    def test_missing_field_times_out(self):
        """Test that a field that never appears raises StabilityTimeout."""
        interactor, _, _ = make_interactor(count=0)

        with pytest.raises(StabilityTimeout, match="Hours"):
            asyncio.run(interactor.fill_fields({'hours': '8'}))

    def test_reset_form_navigates_to_base(self):
        """Test that reset_form returns to the form base URL."""
        interactor, page, _ = make_interactor()

        asyncio.run(interactor.reset_form())

        page.goto.assert_awaited_once()
        assert page.goto.await_args.args[0] == 'http://localhost:3000'
