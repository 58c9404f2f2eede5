"""
DOM selectors for the Smartsheet timesheet form and its SSO login.

This module defines the login recipe, the form field definitions and the
submit/success selectors. Selectors use Playwright locator syntax.

IMPORTANT: These selectors target the live Smartsheet form and the
Microsoft SSO pages. If either changes its DOM, update this module only.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class LoginStep:
    """
    One step of the login recipe.

    Attributes:
        name: Step name, used in logs
        action: 'wait', 'input' or 'click'
        selector: Element selector
        value_key: For 'input': 'email', 'password', or a literal value
        wait_state: For 'wait': 'visible', 'hidden', 'attached' or 'detached'
        expects_navigation: For 'click': wait for page load afterwards
        optional: Missing elements are skipped instead of failing the login
        sensitive: Value must never be logged
    """
    name: str
    action: str
    selector: str
    value_key: Optional[str] = None
    wait_state: str = 'visible'
    expects_navigation: bool = False
    optional: bool = False
    sensitive: bool = False


@dataclass(frozen=True)
class FieldSpec:
    """
    One fillable form field.

    Attributes:
        key: Internal field key (e.g., "project_code")
        label: Human-readable label
        locator: Element selector
        field_type: 'dropdown' for fields backed by a listbox
        optional: Whether the row may leave it empty
        check_validation: Wait for validation to settle after filling
    """
    key: str
    label: str
    locator: str
    field_type: Optional[str] = None
    optional: bool = False
    check_validation: bool = False


class FormSelectors:
    """
    Centralized selectors for the timesheet form.
    """

    FORM = 'form'
    BODY = 'body'

    # Dropdown suggestions
    LISTBOX = '[role="listbox"]'

    # Form inputs used to decide whether the form is interactive
    FORM_INPUTS = 'form input, form select, form textarea'

    # Primary submit button first, then fallbacks
    SUBMIT_BUTTON = "button[data-client-id='form_submit_btn']"
    SUBMIT_BUTTON_FALLBACKS = [
        "button:has-text('Submit')",
        "button:has-text('Save')",
        "button:has-text('Send')",
        "input[type='submit']",
        "button[type='submit']",
        "button.submit",
        "button[aria-label*='submit']",
        "button[aria-label*='save']",
        "button[title*='submit']",
        "button[title*='save']",
    ]

    # Confirmation shown after a successful submission
    SUCCESS_TEXT_INDICATORS = [
        "success! we've captured your submission",
        "form submitted successfully",
        "thank you for your submission",
        "your response has been recorded",
    ]

    LOGIN_STEPS: List[LoginStep] = [
        LoginStep("Wait for Login Form", 'wait', '#loginEmail', optional=True),
        LoginStep("Email Input", 'input', '#loginEmail', value_key='email',
                  optional=True, sensitive=True),
        LoginStep("Continue", 'click', '#formControl', expects_navigation=True, optional=True),
        LoginStep("Wait for SSO Choice", 'wait', 'a.clsJspButtonWide', optional=True),
        LoginStep("Login with company account", 'click', 'a.clsJspButtonWide',
                  expects_navigation=True, optional=True),
        LoginStep("Wait for AAD Email", 'wait', '#i0116'),
        LoginStep("AAD Email", 'input', '#i0116', value_key='email', sensitive=True),
        LoginStep("AAD Next", 'click', '#idSIButton9', expects_navigation=True, optional=True),
        LoginStep("Wait for Password", 'wait', '#passwordInput'),
        LoginStep("Password Input", 'input', '#passwordInput', value_key='password',
                  sensitive=True),
        LoginStep("Password Submit", 'click', '#submitButton', expects_navigation=True,
                  optional=True),
        LoginStep("Stay Signed In Prompt", 'wait', '#idBtn_Back', optional=True),
        LoginStep("Stay Signed In - No", 'click', '#idBtn_Back', expects_navigation=True,
                  optional=True),
        # The form itself is the proof that the session is authenticated
        LoginStep("Wait for Form Page Ready", 'wait', "input[aria-label='Project Task']"),
    ]

    FIELD_DEFINITIONS: Dict[str, FieldSpec] = {
        'project_code': FieldSpec(
            'project_code', 'Project', "input[aria-label='Project Task']",
            check_validation=True,
        ),
        'date': FieldSpec(
            'date', 'Date', "input[placeholder='mm/dd/yyyy']",
            check_validation=True,
        ),
        'hours': FieldSpec(
            'hours', 'Hours', "input[aria-label='Hours']",
            check_validation=True,
        ),
        'tool': FieldSpec(
            'tool', 'Tool', "input[aria-label*='Tool']",
            optional=True,
        ),
        'task_description': FieldSpec(
            'task_description', 'Task Description', "role=textbox[name='Task Description']",
            check_validation=True,
        ),
        'detail_code': FieldSpec(
            'detail_code', 'Detail Charge Code', "input[aria-label='Detail Charge Code']",
            field_type='dropdown', optional=True,
        ),
    }

    FIELD_ORDER = [
        'project_code',
        'date',
        'hours',
        'tool',
        'task_description',
        'detail_code',
    ]

    # Projects whose tool field carries its own label
    PROJECT_TO_TOOL_LABEL: Dict[str, str] = {
        'OSC-BBB': 'BBB Tool',
        'FL-Carver Techs': 'Carver Tool',
        'FL-Carver Tools': 'Carver Tool',
        'SWFL-EQUIP': 'SWFL Tool',
    }

    @staticmethod
    def get_submit_button_selectors() -> List[str]:
        """
        Get submit button selectors in the order they should be tried.

        Returns:
            Primary selector followed by fallbacks
        """
        return [FormSelectors.SUBMIT_BUTTON] + FormSelectors.SUBMIT_BUTTON_FALLBACKS

    @staticmethod
    def get_tool_locator(project: str) -> Optional[str]:
        """
        Get the project-specific tool field selector.

        Args:
            project: Project code

        Returns:
            Selector string, or None if the project uses the generic tool field

        Example:
            >>> FormSelectors.get_tool_locator("OSC-BBB")
            "input[aria-label='BBB Tool']"
        """
        label = FormSelectors.PROJECT_TO_TOOL_LABEL.get(project)
        if label:
            return f"input[aria-label='{label}']"
        return None
