"""
Configuration for the timesheet submission engine.

This module centralizes timeouts, retry delays and browser settings.
Every component receives an AutomationConfig explicitly; nothing here
reads the environment unless from_env() is called by the CLI.
"""

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional


@dataclass
class AutomationConfig:
    """
    Automation configuration.

    All durations are in seconds.

    Attributes:
        headless: Whether to run browser in headless mode
        browser_channel: Browser channel (e.g. "chrome"), None for bundled Chromium
        viewport_width: Browser viewport width in pixels
        viewport_height: Browser viewport height in pixels
        global_timeout: Timeout for element and navigation operations
        authentication_timeout: Ceiling for the complete login recipe
        dynamic_wait_base_timeout: First polling interval of condition waits
        dynamic_wait_max_timeout: Default ceiling of condition waits
        dynamic_wait_multiplier: Growth factor of the polling interval
        submit_verify_timeout: How long to look for a success signal after a click
        submit_success_min_status: Lowest HTTP status treated as a successful response
        submit_success_max_status: Highest HTTP status treated as a successful response
        submit_click_retry_delay_seconds: Delay before the Level-1 retry (re-click)
        submit_retry_delay_seconds: Delay before the Level-2 retry (re-fill)
        submit_form_after_filling: False runs in fill-only mode
        close_timeout: Ceiling for closing each browser resource
        navigation_retries: Attempts to reach the form base URL before login
    """
    headless: bool = False
    browser_channel: Optional[str] = None
    viewport_width: int = 1400
    viewport_height: int = 1000

    global_timeout: float = 10.0
    authentication_timeout: float = 120.0

    dynamic_wait_base_timeout: float = 0.2
    dynamic_wait_max_timeout: float = 10.0
    dynamic_wait_multiplier: float = 1.2

    submit_verify_timeout: float = 3.0
    submit_success_min_status: int = 200
    submit_success_max_status: int = 299

    # Retry ladder
    submit_click_retry_delay_seconds: float = 1.0
    submit_retry_delay_seconds: float = 2.0

    submit_form_after_filling: bool = True
    close_timeout: float = 5.0
    navigation_retries: int = 3

    @property
    def global_timeout_ms(self) -> float:
        """Global timeout in milliseconds, as Playwright expects."""
        return self.global_timeout * 1000

    def validate(self):
        """
        Validate configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        for name in (
            'global_timeout',
            'authentication_timeout',
            'dynamic_wait_base_timeout',
            'dynamic_wait_max_timeout',
            'submit_verify_timeout',
            'submit_click_retry_delay_seconds',
            'submit_retry_delay_seconds',
            'close_timeout',
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative, got: {getattr(self, name)}")

        if self.submit_retry_delay_seconds < self.submit_click_retry_delay_seconds:
            raise ValueError(
                "submit_retry_delay_seconds must not be shorter than "
                "submit_click_retry_delay_seconds"
            )

        if self.dynamic_wait_multiplier < 1:
            raise ValueError(
                f"dynamic_wait_multiplier must be >= 1, got: {self.dynamic_wait_multiplier}"
            )

        if self.navigation_retries < 1:
            raise ValueError(f"navigation_retries must be >= 1, got: {self.navigation_retries}")

        if not (0 < self.submit_success_min_status <= self.submit_success_max_status):
            raise ValueError("Invalid submit success status range")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'AutomationConfig':
        """
        Build a configuration from TS_* environment variables.

        Each field maps to TS_<FIELD_NAME_UPPER>, e.g.
        TS_SUBMIT_CLICK_RETRY_DELAY_SECONDS=0.5. Unset variables keep
        their defaults.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            AutomationConfig instance

        Raises:
            ValueError: If a variable cannot be converted
        """
        if environ is None:
            environ = os.environ

        values = {}
        for f in fields(cls):
            raw = environ.get(f"TS_{f.name.upper()}")
            if raw is None or raw.strip() == '':
                continue
            raw = raw.strip()

            default = f.default
            if isinstance(default, bool):
                values[f.name] = raw.lower() in ('1', 'true', 'yes', 'on')
            elif isinstance(default, int):
                values[f.name] = int(raw)
            elif isinstance(default, float):
                values[f.name] = float(raw)
            else:
                values[f.name] = raw

        return cls(**values)


# Default configuration instance
DEFAULT_CONFIG = AutomationConfig()
