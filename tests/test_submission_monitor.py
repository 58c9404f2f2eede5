"""
Tests for submit clicking and success detection.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from timesheet_submitter.browser_session import BrowserSessionManager
from timesheet_submitter.config import AutomationConfig
from timesheet_submitter.errors import PageNotAvailable, StabilityTimeout, SubmissionRejected
from timesheet_submitter.form_config import build_mock_form_config, create_form_config
from timesheet_submitter.submission_monitor import SubmissionMonitor, SuccessDetector


FORM_ID = '0199fabee6497e60abb6030c48d84585'
FORM = create_form_config(f'https://app.smartsheet.com/b/form/{FORM_ID}', FORM_ID)


class FakeDetector:
    """Detector with scripted DOM answers; responses use the real URL matching."""

    def __init__(self, success=False, errors=False):
        self.real = SuccessDetector(FORM.success_url_patterns)
        self.page_shows_success = AsyncMock(return_value=success)
        self.page_shows_errors = AsyncMock(return_value=errors)

    def matches_response(self, url, status):
        return self.real.matches_response(url, status)


def fake_response(url, status, method='GET', navigation=False):
    request = MagicMock(method=method)
    request.is_navigation_request = MagicMock(return_value=navigation)
    return MagicMock(url=url, status=status, request=request)


def make_monitor(response=None, button_count=1, aria_disabled=None, detector=None, config=None,
                 click_error=None, early_response=None):
    """
    Build a monitor over a mocked page.

    `response` and `early_response` are (url, status[, method[, navigation]])
    tuples. Clicking submit fires `response` at the registered listener;
    `early_response` fires while the button is still being looked up.
    """
    config = config or AutomationConfig(submit_verify_timeout=0.1, dynamic_wait_base_timeout=0.02)
    handlers = {}

    page = MagicMock()
    page.is_closed = MagicMock(return_value=False)
    page.close = AsyncMock()
    page.on = MagicMock(side_effect=lambda event, handler: handlers.__setitem__(event, handler))
    page.remove_listener = MagicMock()

    async def is_visible():
        if early_response:
            handlers['response'](fake_response(*early_response))
        return True

    button = MagicMock()
    button.is_visible = AsyncMock(side_effect=is_visible)
    button.is_enabled = AsyncMock(return_value=True)
    button.get_attribute = AsyncMock(return_value=aria_disabled)

    async def click():
        if click_error:
            raise click_error
        if response:
            handlers['response'](fake_response(*response))

    button.click = AsyncMock(side_effect=click)

    matches = MagicMock()
    matches.count = AsyncMock(return_value=button_count)
    matches.first = button
    page.locator = MagicMock(return_value=matches)

    session = BrowserSessionManager(config)
    session.page = page
    monitor = SubmissionMonitor(session, FORM, config, detector=detector or FakeDetector())
    return monitor, page, button


class TestSuccessDetector:
    """Tests for URL/status matching."""

    def test_exact_endpoint_matches(self):
        """Test the submission endpoint matches the most specific pattern."""
        detector = SuccessDetector.for_form(FORM, AutomationConfig())

        assert detector.matches_url(f"https://forms.smartsheet.com/api/submit/{FORM_ID}")

    def test_app_domain_matches(self):
        """Test that a redirect through the app domain still matches."""
        detector = SuccessDetector.for_form(FORM, AutomationConfig())

        assert detector.matches_url("https://app.smartsheet.com/b/form/confirmation?x=1")

    def test_other_domain_does_not_match(self):
        """Test that unrelated hosts do not match."""
        detector = SuccessDetector.for_form(FORM, AutomationConfig())

        assert not detector.matches_url("https://login.microsoftonline.com/common/oauth2")

    def test_status_outside_range_rejected(self):
        """Test that error statuses never count as success."""
        detector = SuccessDetector.for_form(FORM, AutomationConfig())
        url = f"https://forms.smartsheet.com/api/submit/{FORM_ID}"

        assert detector.matches_response(url, 200)
        assert detector.matches_response(url, 204)
        assert not detector.matches_response(url, 400)
        assert not detector.matches_response(url, 500)

    def test_mock_form_patterns(self):
        """Test patterns built for a local mock form."""
        mock = build_mock_form_config('http://localhost:3000')
        detector = SuccessDetector(mock.success_url_patterns)

        assert detector.matches_url("http://localhost:3000/api/submit/abc")
        assert not detector.matches_url("http://localhost:4000/api/submit/abc")


class TestSubmitForm:
    """Tests for SubmissionMonitor.submit_form()."""

    def test_success_response(self):
        """Test that a matching 2xx response confirms the submission."""
        monitor, page, button = make_monitor(
            response=(f"https://forms.smartsheet.com/api/submit/{FORM_ID}", 200, 'POST')
        )

        assert asyncio.run(monitor.submit_form()) is True
        button.click.assert_awaited_once()
        page.remove_listener.assert_called_once()

    def test_asset_from_app_host_is_not_success(self):
        """Test that a 200 GET for a static asset on the form host confirms nothing."""
        monitor, _, _ = make_monitor(
            response=('https://app.smartsheet.com/b/form/static/app.js', 200),
            detector=FakeDetector(success=False, errors=False),
        )

        with pytest.raises(StabilityTimeout):
            asyncio.run(monitor.submit_form())

    def test_response_before_click_ignored(self):
        """Test that a POST seen before the click does not count."""
        monitor, _, _ = make_monitor(
            early_response=(f"https://forms.smartsheet.com/api/submit/{FORM_ID}", 200, 'POST'),
        )

        with pytest.raises(StabilityTimeout):
            asyncio.run(monitor.submit_form())

    def test_redirect_navigation_confirms(self):
        """Test that a navigation through the app host after submit confirms it."""
        monitor, _, _ = make_monitor(
            response=('https://app.smartsheet.com/b/form/confirmation', 200, 'GET', True),
        )

        assert asyncio.run(monitor.submit_form()) is True

    def test_dom_success_fallback(self):
        """Test that a confirmation banner confirms the submission."""
        monitor, _, _ = make_monitor(detector=FakeDetector(success=True))

        assert asyncio.run(monitor.submit_form()) is True

    def test_error_response_times_out(self):
        """Test that a 500 response with no banner is a StabilityTimeout."""
        monitor, page, _ = make_monitor(
            response=(f"https://forms.smartsheet.com/api/submit/{FORM_ID}", 500, 'POST')
        )

        with pytest.raises(StabilityTimeout):
            asyncio.run(monitor.submit_form())
        page.remove_listener.assert_called_once()

    def test_validation_errors_reject(self):
        """Test that visible validation errors reject the submission."""
        monitor, _, _ = make_monitor(detector=FakeDetector(errors=True))

        with pytest.raises(SubmissionRejected, match="validation errors"):
            asyncio.run(monitor.submit_form())

    def test_no_submit_button(self):
        """Test that a missing submit button is a rejection."""
        monitor, page, _ = make_monitor(button_count=0)

        with pytest.raises(SubmissionRejected, match="No submit button"):
            asyncio.run(monitor.submit_form())
        page.remove_listener.assert_called_once()

    def test_aria_disabled_button_skipped(self):
        """Test that aria-disabled buttons are never clicked."""
        monitor, _, button = make_monitor(aria_disabled='true')

        with pytest.raises(SubmissionRejected):
            asyncio.run(monitor.submit_form())
        button.click.assert_not_awaited()

    def test_click_error_becomes_rejection(self):
        """Test that a Playwright click error is a rejection on a live session."""
        monitor, _, _ = make_monitor(click_error=PlaywrightError("Element is not attached"))

        with pytest.raises(SubmissionRejected, match="Submit click failed"):
            asyncio.run(monitor.submit_form())

    def test_closed_session(self):
        """Test that submitting after close fails fast."""
        monitor, _, _ = make_monitor()
        asyncio.run(monitor.session.close())

        with pytest.raises(PageNotAvailable):
            asyncio.run(monitor.submit_form())
