"""
Tests for the browser session lifecycle manager.

Playwright is replaced with mocks so start/close semantics can be tested
without a browser.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from timesheet_submitter.browser_session import BrowserSessionManager
from timesheet_submitter.config import AutomationConfig
from timesheet_submitter.errors import PageNotAvailable


def make_playwright():
    """Build a mocked async_playwright() factory and the objects it hands out."""
    page = MagicMock()
    page.is_closed = MagicMock(return_value=False)
    page.close = AsyncMock()

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.add_init_script = AsyncMock()
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    starter = MagicMock()
    starter.start = AsyncMock(return_value=playwright)
    factory = MagicMock(return_value=starter)

    return factory, playwright, browser, context, page


@pytest.fixture
def mocked():
    factory, playwright, browser, context, page = make_playwright()
    with patch('timesheet_submitter.browser_session.async_playwright', factory):
        yield {
            'factory': factory,
            'playwright': playwright,
            'browser': browser,
            'context': context,
            'page': page,
        }


class TestStart:
    """Tests for start()."""

    def test_start_acquires_page(self, mocked):
        """Test that start() launches a browser and exposes the page."""
        session = BrowserSessionManager(AutomationConfig(headless=True))

        asyncio.run(session.start())

        assert session.require_page() is mocked['page']
        assert session.is_active
        mocked['playwright'].chromium.launch.assert_awaited_once_with(headless=True)
        mocked['context'].set_default_timeout.assert_called_once_with(10000.0)

    def test_browser_channel_passed_to_launch(self, mocked):
        """Test that a configured channel is used for launch."""
        session = BrowserSessionManager(AutomationConfig(browser_channel='chrome'))

        asyncio.run(session.start())

        mocked['playwright'].chromium.launch.assert_awaited_once_with(headless=False, channel='chrome')

    def test_start_twice_does_not_leak(self, mocked):
        """Test that a second start() on a live session is a no-op."""
        session = BrowserSessionManager()

        async def start_twice():
            await session.start()
            await session.start()

        asyncio.run(start_twice())

        assert mocked['factory'].call_count == 1
        assert mocked['playwright'].chromium.launch.await_count == 1

    def test_restart_after_page_crash_releases_old_browser(self, mocked):
        """Test that restarting over a dead page closes the previous browser first."""
        session = BrowserSessionManager()

        async def crash_and_restart():
            await session.start()
            mocked['page'].is_closed.return_value = True
            await session.start()

        asyncio.run(crash_and_restart())

        assert mocked['playwright'].chromium.launch.await_count == 2
        mocked['browser'].close.assert_awaited_once()
        mocked['context'].close.assert_awaited_once()
        mocked['playwright'].stop.assert_awaited_once()

    def test_failed_start_releases_partial_resources(self, mocked):
        """Test that a launch failure stops Playwright and leaves no page."""
        mocked['playwright'].chromium.launch.side_effect = RuntimeError("no chromium")
        session = BrowserSessionManager()

        with pytest.raises(RuntimeError):
            asyncio.run(session.start())

        mocked['playwright'].stop.assert_awaited_once()
        assert session.playwright is None
        assert not session.is_active

    def test_restart_after_close(self, mocked):
        """Test that start() after close() opens a fresh session."""
        session = BrowserSessionManager()

        async def cycle():
            await session.start()
            await session.close()
            await session.start()

        asyncio.run(cycle())

        assert session.is_active
        assert not session.is_closed
        assert mocked['playwright'].chromium.launch.await_count == 2


class TestClose:
    """Tests for close()."""

    def test_close_twice(self, mocked):
        """Test that close() can be called twice without error."""
        session = BrowserSessionManager()

        async def close_twice():
            await session.start()
            await session.close()
            await session.close()

        asyncio.run(close_twice())

        mocked['browser'].close.assert_awaited_once()
        mocked['playwright'].stop.assert_awaited_once()

    def test_close_before_start(self):
        """Test that close() on a never-started session succeeds."""
        session = BrowserSessionManager()

        asyncio.run(session.close())

        assert session.is_closed

    def test_close_swallows_release_errors(self, mocked):
        """Test that a failing browser.close() is logged and the rest still closes."""
        mocked['browser'].close.side_effect = RuntimeError("already gone")
        session = BrowserSessionManager()

        async def start_close():
            await session.start()
            await session.close()

        asyncio.run(start_close())

        mocked['playwright'].stop.assert_awaited_once()
        assert session.browser is None

    def test_close_is_bounded(self, mocked):
        """Test that a hanging close is abandoned after close_timeout."""
        async def hang():
            await asyncio.sleep(30)

        mocked['browser'].close.side_effect = hang
        session = BrowserSessionManager(AutomationConfig(close_timeout=0.05))

        async def start_close():
            await session.start()
            await asyncio.wait_for(session.close(), timeout=2)

        asyncio.run(start_close())

        mocked['playwright'].stop.assert_awaited_once()

    def test_page_unavailable_after_close(self, mocked):
        """Test that the page cannot be used after close()."""
        session = BrowserSessionManager()

        async def start_close():
            await session.start()
            await session.close()

        asyncio.run(start_close())

        with pytest.raises(PageNotAvailable):
            session.require_page()
        assert not session.is_active

    def test_page_unavailable_before_start(self):
        """Test that require_page() fails fast before start()."""
        session = BrowserSessionManager()

        with pytest.raises(PageNotAvailable, match="Call start\\(\\) first"):
            session.require_page()

    def test_context_manager(self, mocked):
        """Test async with starts and closes the session."""
        async def use():
            async with BrowserSessionManager() as session:
                assert session.is_active
            return session

        session = asyncio.run(use())

        assert session.is_closed
        mocked['playwright'].stop.assert_awaited_once()
