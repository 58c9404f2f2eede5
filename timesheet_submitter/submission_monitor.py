"""
Submit click and success detection.

SubmissionMonitor clicks the form's submit button once and decides
whether the destination accepted the submission. Success detection is
delegated to a SuccessDetector so the remote target can change without
touching the retry ladder.
"""

from fnmatch import fnmatchcase
from typing import List, Optional

from playwright.async_api import Error as PlaywrightError, Locator, Page, Response

from .browser_session import BrowserSessionManager
from .config import AutomationConfig
from .errors import PageNotAvailable, StabilityTimeout, SubmissionRejected
from .logging_utils import get_logger, log_timer
from .models import FormConfig
from .selectors import FormSelectors
from . import stability


SUBMISSION_METHODS = ('POST', 'PUT')


def is_submission_traffic(response: Response) -> bool:
    """
    Check whether a response belongs to a form submission.

    Asset, telemetry and background GET requests never count, even when
    they come from the form's own host.
    """
    request = response.request
    try:
        if request.method.upper() in SUBMISSION_METHODS:
            return True
        return bool(request.is_navigation_request())
    except PlaywrightError:
        return False


class SuccessDetector:
    """
    Decides whether a submission round trip succeeded.

    A response whose URL matches one of the success patterns with a
    status inside the configured range counts as success. A visible
    confirmation banner is accepted as a DOM fallback. Visible
    validation errors count as rejection.
    """

    def __init__(self, patterns, min_status: int = 200, max_status: int = 299,
                 success_selectors: Optional[List[str]] = None,
                 success_texts: Optional[List[str]] = None):
        self.patterns = tuple(patterns)
        self.min_status = min_status
        self.max_status = max_status
        self.success_selectors = list(success_selectors or stability.SUBMISSION_SUCCESS_SELECTORS)
        self.success_texts = list(success_texts or FormSelectors.SUCCESS_TEXT_INDICATORS)

    @classmethod
    def for_form(cls, form_config: FormConfig, config: AutomationConfig) -> 'SuccessDetector':
        """Build the default detector for a form."""
        return cls(
            form_config.success_url_patterns,
            config.submit_success_min_status,
            config.submit_success_max_status,
        )

    def matches_url(self, url: str) -> bool:
        """Check a URL against the success patterns (glob syntax, '**' spans '/')."""
        return any(fnmatchcase(url, pattern) for pattern in self.patterns)

    def matches_response(self, url: str, status: int) -> bool:
        """Check whether a response signals an accepted submission."""
        return self.min_status <= status <= self.max_status and self.matches_url(url)

    async def page_shows_success(self, page: Page) -> bool:
        """Check the DOM for a confirmation banner or confirmation text."""
        if await stability.any_visible(page, self.success_selectors):
            return True
        for text in self.success_texts:
            try:
                # get_by_text matches case-insensitive substrings
                match = page.get_by_text(text)
                if await match.count() > 0 and await match.first.is_visible():
                    return True
            except PlaywrightError:
                continue
        return False

    async def page_shows_errors(self, page: Page) -> bool:
        """Check the form for visible validation errors."""
        return await stability.count_validation_errors(page, FormSelectors.FORM) > 0


class SubmissionMonitor:
    """
    Performs one submit click and waits for the outcome.
    """

    def __init__(self, session: BrowserSessionManager, form_config: FormConfig,
                 config: Optional[AutomationConfig] = None,
                 detector: Optional[SuccessDetector] = None):
        """
        Initialize the submission monitor.

        Args:
            session: Browser session owning the page
            form_config: Destination form (provides the success patterns)
            config: Automation configuration
            detector: Success detector (defaults to URL patterns + DOM fallback)
        """
        self.session = session
        self.form_config = form_config
        self.config = config or session.config
        self.detector = detector or SuccessDetector.for_form(form_config, self.config)
        self.logger = get_logger()

    async def submit_form(self) -> bool:
        """
        Click submit once and wait for a success signal.

        Returns:
            True when the destination confirmed the submission

        Raises:
            SubmissionRejected: No usable submit button, the click failed,
                or the form reported validation errors
            StabilityTimeout: No success signal before the verify timeout
            PageNotAvailable: If the session is closed
        """
        page = self.session.require_page()
        accepted: List[str] = []
        clicked = {'done': False}

        def on_response(response: Response):
            # Only the submit round trip counts: its POST or a navigation it causes
            if not clicked['done'] or not is_submission_traffic(response):
                return
            if self.detector.matches_response(response.url, response.status):
                self.logger.debug(f"Success response {response.status} from {response.url}")
                accepted.append(response.url)

        page.on("response", on_response)
        try:
            with log_timer("submit-form", self.logger) as timing:
                button = await self._find_submit_button(page)
                if button is None:
                    raise SubmissionRejected("No submit button found")

                try:
                    clicked['done'] = True
                    await button.click()
                except PlaywrightError as e:
                    if self.session.is_closed:
                        raise PageNotAvailable() from e
                    raise SubmissionRejected(f"Submit click failed: {e}") from e
                self.logger.debug("Submit button clicked")

                state = {'rejected': False}

                async def settled() -> bool:
                    if accepted:
                        return True
                    if await self.detector.page_shows_success(page):
                        return True
                    if await self.detector.page_shows_errors(page):
                        state['rejected'] = True
                        return True
                    return False

                verify_timeout = min(self.config.submit_verify_timeout, self.config.global_timeout)
                signalled = await stability.wait_or_proceed(
                    settled,
                    max_wait_time=verify_timeout,
                    check_interval=self.config.dynamic_wait_base_timeout * stability.HALF_TIMEOUT_MULTIPLIER,
                    operation_name="form submission verification",
                )

                if accepted:
                    timing['outcome'] = 'http'
                    return True
                if state['rejected']:
                    raise SubmissionRejected("Form reported validation errors after submit")
                if not signalled:
                    raise StabilityTimeout(
                        f"No submission confirmation within {verify_timeout:.1f}s"
                    )

                timing['outcome'] = 'dom'
                return True
        finally:
            page.remove_listener("response", on_response)

    async def _find_submit_button(self, page: Page) -> Optional[Locator]:
        """
        Find the first visible, enabled submit button.

        Returns:
            Locator, or None if no selector matched a usable button
        """
        for selector in FormSelectors.get_submit_button_selectors():
            try:
                matches = page.locator(selector)
                if await matches.count() == 0:
                    continue
                button = matches.first
                if not await button.is_visible() or not await button.is_enabled():
                    continue
                if (await button.get_attribute('aria-disabled')) == 'true':
                    continue
                self.logger.debug(f"Submit button: {selector}")
                return button
            except PlaywrightError:
                stability.ensure_page_open(page)
                continue
        return None
