"""
Condition-based waits for the remote web form.

Every wait polls a condition until it holds or a ceiling elapses and
returns a bool instead of raising on timeout. Callers decide what a
missed deadline means; during submission it counts as a failed attempt.

A closed page is the one case that raises: PageNotAvailable is
propagated immediately so a closed session never makes a wait run to
its ceiling.
"""

import asyncio
import inspect
import time
from typing import Awaitable, Callable, List, Optional, Union

from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeoutError

from .errors import PageNotAvailable
from .logging_utils import get_logger


DEFAULT_BASE_TIMEOUT = 0.2
DEFAULT_MAX_TIMEOUT = 10.0
DEFAULT_MULTIPLIER = 1.2

BRIEF_POLL_INTERVAL = 0.05
SHORT_DELAY = 0.1
SHORT_WAIT_TIMEOUT = 0.3
HALF_TIMEOUT_MULTIPLIER = 0.5

Condition = Callable[[], Union[bool, Awaitable[bool]]]

DROPDOWN_OPTION_SELECTORS = [
    '{dropdown} [role="option"]',
    '{dropdown} .dropdown-option',
    '{dropdown} .option',
    '{dropdown} li',
    '{dropdown} [data-value]',
    '[role="listbox"] [role="option"]',
    '.dropdown-menu .dropdown-item',
    '.select-options .option',
]

VALIDATION_ERROR_SELECTORS = [
    '{scope} [aria-invalid="true"]',
    '{scope} .error',
    '{scope} .validation-error',
    '{scope} .error-message',
    '{scope} .field-error',
    '{scope} [role="alert"]',
]

SUBMISSION_SUCCESS_SELECTORS = [
    '.submission-success',
    '.form-success',
    '[data-submission-status="success"]',
    '.confirmation-message',
    '.success-message',
]

logger = get_logger()


def ensure_page_open(page: Optional[Page]):
    """
    Raise PageNotAvailable if the page is missing or closed.

    Args:
        page: Playwright page (may be None)

    Raises:
        PageNotAvailable: If the page cannot be used
    """
    if page is None or page.is_closed():
        raise PageNotAvailable()


async def _evaluate_condition(condition: Condition) -> bool:
    result = condition()
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


async def dynamic_wait(
    condition: Condition,
    base_timeout: float = DEFAULT_BASE_TIMEOUT,
    max_timeout: float = DEFAULT_MAX_TIMEOUT,
    multiplier: float = DEFAULT_MULTIPLIER,
    operation_name: str = "operation"
) -> bool:
    """
    Poll a condition with a growing interval until it holds.

    The interval starts at base_timeout and is multiplied by multiplier
    after every miss, capped at the time left before max_timeout.

    Args:
        condition: Callable (sync or async) returning True when met
        base_timeout: First polling interval in seconds
        max_timeout: Ceiling in seconds
        multiplier: Interval growth factor
        operation_name: Name used in debug logs

    Returns:
        True if the condition held before the ceiling, False otherwise
    """
    start = time.monotonic()
    interval = max(base_timeout, 0.0)

    while True:
        if await _evaluate_condition(condition):
            return True

        elapsed = time.monotonic() - start
        remaining = max_timeout - elapsed
        if remaining <= 0:
            logger.debug(f"Wait for {operation_name} gave up after {elapsed:.2f}s")
            return False

        await asyncio.sleep(min(interval, remaining))
        interval = interval * multiplier


async def wait_or_proceed(
    condition: Condition,
    max_wait_time: float = 1.0,
    check_interval: float = SHORT_DELAY,
    operation_name: str = "wait or proceed"
) -> bool:
    """
    Return as soon as a condition holds or the ceiling elapses.

    Never raises on timeout by itself.

    Args:
        condition: Callable (sync or async) returning True when met
        max_wait_time: Ceiling in seconds
        check_interval: Fixed polling interval in seconds
        operation_name: Name used in debug logs

    Returns:
        True if the condition held, False if the ceiling elapsed first
    """
    return await dynamic_wait(
        condition,
        base_timeout=check_interval,
        max_timeout=max_wait_time,
        multiplier=1.0,
        operation_name=operation_name,
    )


async def wait_for_element(
    page: Page,
    selector: str,
    state: str = 'visible',
    base_timeout: float = DEFAULT_BASE_TIMEOUT,
    max_timeout: float = DEFAULT_MAX_TIMEOUT
) -> bool:
    """
    Wait for the first element matching selector to reach a state.

    Args:
        page: Playwright page
        selector: Element selector
        state: 'visible', 'hidden' or 'attached'
        base_timeout: First polling interval in seconds
        max_timeout: Ceiling in seconds

    Returns:
        True if the element reached the state, False otherwise
    """
    async def in_state() -> bool:
        ensure_page_open(page)
        try:
            locator = page.locator(selector)
            if await locator.count() == 0:
                return state == 'hidden'
            first = locator.first
            if state == 'visible':
                return await first.is_visible()
            if state == 'hidden':
                return not await first.is_visible()
            if state == 'attached':
                return True
            return False
        except PlaywrightError:
            return False

    return await dynamic_wait(
        in_state, base_timeout, max_timeout, DEFAULT_MULTIPLIER, f"element ({selector})"
    )


async def wait_for_page_load(
    page: Page,
    base_timeout: float = DEFAULT_BASE_TIMEOUT,
    max_timeout: float = DEFAULT_MAX_TIMEOUT
) -> bool:
    """
    Wait until document.readyState is 'complete'.

    Returns:
        True if the page finished loading, False otherwise
    """
    async def loaded() -> bool:
        ensure_page_open(page)
        try:
            return await page.evaluate("() => document.readyState") == 'complete'
        except PlaywrightError:
            # Evaluation fails while a navigation is replacing the document
            return False

    return await dynamic_wait(loaded, base_timeout, max_timeout, DEFAULT_MULTIPLIER, "page load")


async def wait_for_network_idle(
    page: Page,
    base_timeout: float = DEFAULT_BASE_TIMEOUT,
    max_timeout: float = DEFAULT_MAX_TIMEOUT
) -> bool:
    """
    Wait for Playwright's 'networkidle' load state.

    Returns:
        True if the network went idle before the ceiling, False otherwise
    """
    ensure_page_open(page)
    try:
        await page.wait_for_load_state('networkidle', timeout=max_timeout * 1000)
        return True
    except PlaywrightTimeoutError:
        logger.debug(f"Network did not go idle within {max_timeout}s")
        return False
    except PlaywrightError as e:
        ensure_page_open(page)
        logger.debug(f"Network idle wait failed: {e}")
        return False


async def wait_for_dom_stability(
    page: Page,
    selector: str = 'body',
    state: str = 'visible',
    base_timeout: float = DEFAULT_BASE_TIMEOUT,
    max_timeout: float = DEFAULT_MAX_TIMEOUT,
    operation_name: str = "DOM stability"
) -> bool:
    """
    Wait until an element is in the requested state and stops changing.

    The element counts as stable when its bounding box and content
    signature (child count and text length) are unchanged across a
    brief poll.

    Args:
        page: Playwright page
        selector: Element selector
        state: 'visible', 'hidden', 'attached' or 'detached'
        base_timeout: First polling interval in seconds
        max_timeout: Ceiling in seconds
        operation_name: Name used in debug logs

    Returns:
        True if the element settled, False otherwise
    """
    async def snapshot(locator):
        box = await locator.bounding_box()
        signature = await locator.evaluate(
            "el => [el.childElementCount, (el.textContent || '').length]"
        )
        return box, signature

    async def settled() -> bool:
        ensure_page_open(page)
        try:
            locator = page.locator(selector)
            count = await locator.count()

            if state == 'detached':
                return count == 0
            if count == 0:
                return state == 'hidden'

            first = locator.first
            visible = await first.is_visible()
            if state == 'hidden':
                return not visible
            if state == 'visible' and not visible:
                return False

            before = await snapshot(first)
            await asyncio.sleep(BRIEF_POLL_INTERVAL)
            after = await snapshot(first)
            return before == after
        except PlaywrightError:
            return False

    return await dynamic_wait(
        settled, base_timeout, max_timeout, DEFAULT_MULTIPLIER, operation_name
    )


async def wait_for_dropdown_options(
    page: Page,
    dropdown_selector: str = '[role="listbox"]',
    base_timeout: float = DEFAULT_BASE_TIMEOUT,
    max_timeout: float = 1.0
) -> bool:
    """
    Wait until a dependent dropdown shows at least one visible option.

    Returns:
        True if options appeared, False otherwise
    """
    selectors = [s.format(dropdown=dropdown_selector) for s in DROPDOWN_OPTION_SELECTORS]

    async def populated() -> bool:
        ensure_page_open(page)
        for option_selector in selectors:
            try:
                options = page.locator(option_selector)
                if await options.count() > 0 and await options.first.is_visible():
                    return True
            except PlaywrightError:
                continue
        return False

    return await dynamic_wait(
        populated,
        min(base_timeout, HALF_TIMEOUT_MULTIPLIER),
        max_timeout,
        DEFAULT_MULTIPLIER,
        "dropdown options population",
    )


async def count_validation_errors(page: Page, scope_selector: str = 'form') -> int:
    """
    Count visible validation error indicators inside scope_selector.

    Returns:
        Number of selectors with a visible match
    """
    ensure_page_open(page)
    visible = 0
    for template in VALIDATION_ERROR_SELECTORS:
        try:
            locator = page.locator(template.format(scope=scope_selector))
            if await locator.count() > 0 and await locator.first.is_visible():
                visible += 1
        except PlaywrightError:
            continue
    return visible


async def wait_for_validation_stability(
    page: Page,
    scope_selector: str = 'form',
    base_timeout: float = SHORT_WAIT_TIMEOUT,
    max_timeout: float = SHORT_WAIT_TIMEOUT * 2
) -> bool:
    """
    Wait until client-side validation messages stop changing.

    Returns:
        True if two consecutive readings matched, False otherwise
    """
    async def stable() -> bool:
        before = await count_validation_errors(page, scope_selector)
        await asyncio.sleep(SHORT_DELAY)
        after = await count_validation_errors(page, scope_selector)
        return before == after

    return await dynamic_wait(
        stable,
        min(base_timeout, SHORT_WAIT_TIMEOUT),
        max_timeout,
        DEFAULT_MULTIPLIER,
        "validation stability",
    )


async def any_visible(page: Page, selectors: List[str]) -> bool:
    """
    Check whether any selector matches a visible element.
    """
    ensure_page_open(page)
    for selector in selectors:
        try:
            locator = page.locator(selector)
            if await locator.count() > 0 and await locator.first.is_visible():
                return True
        except PlaywrightError:
            continue
    return False
