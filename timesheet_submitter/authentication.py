"""
Login flow for the timesheet form.

LoginManager navigates to the form and executes the login recipe from
FormSelectors.LOGIN_STEPS. The last recipe step waits for the form
itself, which confirms the session is authenticated.
"""

from typing import Optional

from playwright.async_api import Error as PlaywrightError, Page

from .browser_session import BrowserSessionManager
from .config import AutomationConfig
from .errors import AuthenticationFailure, PageNotAvailable
from .logging_utils import get_logger, log_step, log_success, log_timer, log_warning
from .models import Credentials, FormConfig
from .selectors import FormSelectors, LoginStep
from . import stability


# Share of the global timeout spent looking for optional login elements
OPTIONAL_ELEMENT_MULTIPLIER = 0.3


class LoginManager:
    """
    Executes the configured login recipe against the session page.
    """

    def __init__(self, session: BrowserSessionManager, form_config: FormConfig,
                 config: Optional[AutomationConfig] = None):
        """
        Initialize the login manager.

        Args:
            session: Browser session to log in with
            form_config: Destination form (its base URL starts the login)
            config: Automation configuration
        """
        self.session = session
        self.form_config = form_config
        self.config = config or session.config
        self.logger = get_logger()
        self.steps = list(FormSelectors.LOGIN_STEPS)

    async def run_login_steps(self, credentials: Credentials):
        """
        Log in with the given credentials.

        Args:
            credentials: Email and password

        Raises:
            AuthenticationFailure: If navigation or a required step fails
            PageNotAvailable: If the session is closed during login
        """
        log_step(f"Logging in as {credentials.email}...", self.logger)

        with log_timer("login", self.logger) as timing:
            await self._navigate_to_base_with_retries()

            page = self.session.require_page()
            for index, step in enumerate(self.steps):
                self.logger.debug(f"Login step {index + 1}/{len(self.steps)}: {step.name}")
                try:
                    if step.action == 'wait':
                        await self._handle_wait(page, step)
                    elif step.action == 'input':
                        await self._handle_input(page, step, credentials)
                    elif step.action == 'click':
                        await self._handle_click(page, step)
                    else:
                        log_warning(f"Unknown login action '{step.action}' in step {step.name}", self.logger)
                except PlaywrightError as e:
                    if self.session.is_closed:
                        raise PageNotAvailable() from e
                    raise AuthenticationFailure(f"Login step '{step.name}' failed: {e}") from e

            timing['outcome'] = 'success'

        log_success("Login complete", self.logger)

    async def _navigate_to_base_with_retries(self):
        """
        Open the form base URL, retrying on navigation errors.

        Raises:
            AuthenticationFailure: If every attempt fails
        """
        attempts = self.config.navigation_retries
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            page = self.session.require_page()
            try:
                self.logger.debug(
                    f"Navigating to {self.form_config.base_url} (attempt {attempt}/{attempts})"
                )
                await page.goto(
                    self.form_config.base_url,
                    timeout=self.config.global_timeout_ms,
                    wait_until='domcontentloaded',
                )
                return
            except PlaywrightError as e:
                if self.session.is_closed:
                    raise PageNotAvailable() from e
                last_error = e
                log_warning(f"Navigation attempt {attempt} failed: {e}", self.logger)
                if attempt < attempts:
                    await stability.wait_for_dom_stability(
                        page,
                        FormSelectors.BODY,
                        'visible',
                        self.config.dynamic_wait_base_timeout,
                        self.config.dynamic_wait_base_timeout * 2,
                        "page stabilization before navigation retry",
                    )

        raise AuthenticationFailure(
            f"Could not navigate to {self.form_config.base_url} after {attempts} attempts: {last_error}"
        )

    def _element_timeout(self, step: LoginStep) -> float:
        if step.optional:
            return self.config.global_timeout * OPTIONAL_ELEMENT_MULTIPLIER
        return self.config.global_timeout

    async def _handle_wait(self, page: Page, step: LoginStep):
        found = await stability.wait_for_element(
            page,
            step.selector,
            step.wait_state,
            self.config.dynamic_wait_base_timeout,
            self._element_timeout(step),
        )
        if found:
            return
        if step.optional:
            self.logger.debug(f"Optional element {step.selector} not found, continuing")
            return
        raise AuthenticationFailure(
            f"Required element '{step.selector}' not found during '{step.name}'"
        )

    async def _present(self, page: Page, step: LoginStep) -> bool:
        """Check for an optional step's element; required steps always proceed."""
        if not step.optional:
            return True
        return await stability.wait_for_element(
            page,
            step.selector,
            'visible',
            self.config.dynamic_wait_base_timeout,
            self._element_timeout(step),
        )

    async def _handle_input(self, page: Page, step: LoginStep, credentials: Credentials):
        if not await self._present(page, step):
            self.logger.debug(f"Skipping optional input '{step.name}'")
            return

        if step.value_key == 'email':
            value = credentials.email
        elif step.value_key == 'password':
            value = credentials.password
        else:
            value = step.value_key or ''

        if step.sensitive:
            self.logger.debug(f"Filling '{step.name}' (value hidden)")
        else:
            self.logger.debug(f"Filling '{step.name}' with '{value}'")

        await page.locator(step.selector).fill(value)

    async def _handle_click(self, page: Page, step: LoginStep):
        if not await self._present(page, step):
            self.logger.debug(f"Skipping optional click '{step.name}'")
            return

        await page.locator(step.selector).click()

        if step.expects_navigation:
            await stability.wait_for_page_load(
                page,
                self.config.dynamic_wait_base_timeout,
                self.config.global_timeout,
            )
