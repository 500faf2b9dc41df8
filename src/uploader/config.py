"""
Selenium-oriented configuration for the uploader module.

Selector fallbacks for every semantic role are kept here as data so the
stages only name the role they need. Values that change between
deployments come from the environment via ``UploaderSettings``.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices
from selenium.webdriver.common.by import By

from .models import SelectorCandidate, SelectorRole

# --- Core URLs ---
# Placeholder shipped in .env.example; a run must not start while it is still set.
PLACEHOLDER_BASE_URL = "https://your-domain.com"

# Fragment of the listing page URL, used as one of the post-save signals.
LISTING_URL_FRAGMENT = "ta-summary"

# Recognized document extension for input files
DOCUMENT_EXTENSION = ".pdf"
DONE_FOLDER_NAME = "done"
FAIL_FOLDER_NAME = "fail"
IDENTIFIER_DELIMITER = ","

# --- Result grid phrases ---
NO_DATA_PHRASES = ("No data", "ไม่พบข้อมูล", "No records found")
ZERO_RESULT_PHRASES = ("0 to 0 of 0", "0 of 0", "Currently showing 0 to 0 of")
# Rows with this much text or less are treated as spacer/header rows
MIN_ROW_TEXT_LENGTH = 11


def _ci_contains(text: str) -> str:
    """XPath predicate for a case-insensitive substring match on normalized text."""
    lowered = text.lower()
    return (
        "contains(translate(normalize-space(.), 'ABCDEFGHIJKLMNOPQRSTUVWXYZ', "
        f"'abcdefghijklmnopqrstuvwxyz'), '{lowered}')"
    )


def _xp(value: str, **kwargs) -> SelectorCandidate:
    return SelectorCandidate(By.XPATH, value, **kwargs)


def _css(value: str, **kwargs) -> SelectorCandidate:
    return SelectorCandidate(By.CSS_SELECTOR, value, **kwargs)


# Elements under <body> whose text is never rendered as page content.
_NON_RENDERED = "self::script or self::style or self::noscript or self::template"


def _text_anywhere(text: str, **kwargs) -> SelectorCandidate:
    # Rendered element whose own text carries the phrase, similar to a text= engine lookup.
    # <head> (title, inline scripts) is out of scope.
    return _xp(f"//body//*[not({_NON_RENDERED})][text()[{_ci_contains(text)}]]", **kwargs)


# --- Authentication ---
LOGGED_IN_INDICATORS = SelectorRole("logged-in indicator", (
    _text_anywhere("Trading Agreement", visible=False),
    _text_anywhere("TA Summary", visible=False),
    _text_anywhere("Logout", visible=False),
    _text_anywhere("ออกจากระบบ", visible=False),
    _css(".main-menu", visible=False),
    _css(".dashboard", visible=False),
))

DASHBOARD_INDICATORS = SelectorRole("dashboard indicator", (
    _text_anywhere("Trading Agreement", visible=False),
    _text_anywhere("TA", visible=False),
    _css(".main-menu", visible=False),
    _css(".dashboard", visible=False),
))

LOGIN_BUTTON = SelectorRole("SSO login button", (
    _xp(f"//div[@role='button'][{_ci_contains('SSO Login')}]"),
    _xp(f"//*[contains(@class, 'mx-name-container24')][{_ci_contains('SSO Login')}]"),
    _xp(f"//div[@tabindex='0'][{_ci_contains('SSO Login')}]"),
    _xp(f"//*[@role='button'][{_ci_contains('SSO Login')}]"),
    _text_anywhere("SSO Login"),
))

LOGIN_FORM = SelectorRole("login form", (
    _xp("//form[.//input[@type='password']]", visible=False),
    _css("input[type='password']", visible=False),
))

USERNAME_INPUT = SelectorRole("username input", (
    _css("input[type='text']"),
    _css("input[name*='username']"),
    _css("input[name*='user']"),
    _css("input[type='email']"),
))

PASSWORD_INPUT = SelectorRole("password input", (
    _css("input[type='password']"),
))

LOGIN_SUBMIT = SelectorRole("login submit", (
    _css("button[type='submit']"),
    _css("input[type='submit']"),
    _xp(f"//button[{_ci_contains('Login')}]"),
    _xp("//button[contains(normalize-space(.), 'เข้าสู่ระบบ')]"),
))

# --- Navigation (left menu: Setup -> Summary) ---
MENU_SETUP = SelectorRole("Setup menu", (
    _text_anywhere("Setup"),
    _xp(f"//a[{_ci_contains('Setup')}]"),
    _xp(f"//*[contains(@class, 'mx-link')][{_ci_contains('Setup')}]"),
    _css("[title*='Setup']"),
))

MENU_SUMMARY = SelectorRole("Summary menu", (
    _text_anywhere("Summary"),
    _xp(f"//a[{_ci_contains('Summary')}]"),
    _xp(f"//*[contains(@class, 'mx-link')][{_ci_contains('Summary')}]"),
    _text_anywhere("TA Summary"),
    _xp(f"//a[{_ci_contains('TA Summary')}]"),
    _css("[title*='Summary']"),
))

NAVIGATION_MENU_PATH = (MENU_SETUP, MENU_SUMMARY)

SEARCH_FORM_READY = SelectorRole("search form", (
    _css("input[type='text']", visible=False),
    _css(".mx-grid-search-input", visible=False),
    _css("label", visible=False),
))

# --- Search form ---
YEAR_INPUT = SelectorRole("TA year input", (
    _css("#mxui_widget_SearchInput_0_input"),
    _css("input[id*='SearchInput_0_input']"),
    _css("input[id*='SearchInput'][id*='_0_input']"),
    _css(".mx-name-searchField6 input"),
    _css(".mx-grid-search-input input", label_contains="year"),
    _css("input[type='text']", label_contains="year"),
))

IDENTIFIER_INPUT = SelectorRole("supplier code input", (
    _css("#mxui_widget_SearchInput_4_input"),
    _css("input[id*='SearchInput_4_input']"),
    _css(".mx-name-searchField10 input"),
    _css(".mx-grid-search-input input", label_contains="supplier"),
    _css("input[type='text']", label_contains="supplier"),
))

SEARCH_BUTTON = SelectorRole("search button", (
    _xp(f"//button[{_ci_contains('Search')}]"),
    _css("input[type='submit'][value*='Search']"),
    _css(".search-btn"),
    _css("[data-button-id*='search']"),
))

# --- Results grid ---
PAGINATION_STATUS = SelectorRole("pagination status", (
    _css(".dijitInline.mx-grid-paging-status", visible=False),
    _css(".mx-grid-paging-status", visible=False),
    _xp(f"//*[{_ci_contains(' of ')} and {_ci_contains(' to ')} and not(*)]", visible=False),
))

_ROW_FILTER = {"text_min_length": MIN_ROW_TEXT_LENGTH, "text_excludes": NO_DATA_PHRASES}

RESULT_ROW = SelectorRole("result row", (
    _css("tbody tr", **_ROW_FILTER),
    _css("table tr:not(:first-child)", **_ROW_FILTER),
    _xp("//tr[td]", **_ROW_FILTER),
    _css(".mx-datagrid-body tr", **_ROW_FILTER),
))

EDIT_BUTTON = SelectorRole("edit button", (
    _xp(f"//button[{_ci_contains('View TA detail')}]"),
    _css(".mx-name-actionButton8", text_contains="View TA detail"),
    _xp(f"//button[{_ci_contains('Edit')}]"),
    _css("input[type='submit'][value*='Edit']"),
    _css("input[type='button'][value*='Edit']"),
    _xp("//button[contains(normalize-space(.), 'แก้ไข')]"),
    _css("input[value*='แก้ไข']"),
    _css(".edit-btn"),
    _css(".btn-edit"),
    _css("[data-button-id*='edit']"),
    _css("button[onclick*='edit']"),
))

EDIT_VIEW_READY = SelectorRole("edit view marker", (
    _text_anywhere("Upload new Internal Attachment", visible=False),
    _xp(f"//button[{_ci_contains('Upload')}]", visible=False),
    _css("input[type='file']", visible=False),
    _text_anywhere("Internal Attachment", visible=False),
))

# --- Upload and save ---
FILE_INPUT = SelectorRole("file input", (
    _css("input[type='file']", visible=False),
))

OPEN_UPLOAD_BUTTON = SelectorRole("open upload button", (
    _xp(f"//button[{_ci_contains('Upload File')}]"),
    _css("input[type='button'][value='Upload File']"),
    _xp(f"//button[{_ci_contains('Upload new Internal Attachment')}]"),
    _text_anywhere("Upload new Internal Attachment"),
    _xp(f"//button[{_ci_contains('Upload')}]"),
    _xp("//button[contains(normalize-space(.), 'อัปโหลด')]"),
    _xp(f"//a[{_ci_contains('Upload')}]"),
    _css("input[type='button'][value*='Upload']"),
))

CONFIRM_UPLOAD_BUTTON = SelectorRole("confirm upload button", (
    _xp(f"//button[{_ci_contains('Upload File')}]", enabled=True),
    _css("input[value='Upload File']", enabled=True),
))

UPLOAD_SUCCESS_DIALOG = SelectorRole("upload success dialog", (
    _text_anywhere("Upload new Additional Document succeed!", visible=False),
    _text_anywhere("succeed!", visible=False),
))

UPLOAD_SUCCESS = SelectorRole("upload success marker", (
    _text_anywhere("success", visible=False),
    _text_anywhere("สำเร็จ", visible=False),
    _text_anywhere("uploaded", visible=False),
    _text_anywhere("complete", visible=False),
    _css(".success", visible=False),
    _css(".alert-success", visible=False),
))

DIALOG_OK_BUTTON = SelectorRole("dialog OK button", (
    _css("button", text_equals="OK", enabled=True),
    _css("input[type='button'][value='OK']", text_equals="OK", enabled=True),
    _css("input[value='OK']", text_equals="OK", enabled=True),
    _css(".btn", text_equals="OK", enabled=True),
    _css(".modal button", text_equals="OK", enabled=True),
    _css(".modal-dialog button", text_equals="OK", enabled=True),
    _css(".modal-content button", text_equals="OK", enabled=True),
    _css("[value='OK']", text_equals="OK", enabled=True),
))

OPEN_DIALOG = SelectorRole("open dialog", (
    _css(".modal"),
    _css(".mx-dialog"),
))

SAVE_BUTTON = SelectorRole("save button", (
    _xp(f"//button[{_ci_contains('Save')}]", enabled=True),
    _css("input[type='submit'][value*='Save']", enabled=True),
    _css(".btn-success", text_contains="save", enabled=True),
    _css(".save-btn", text_contains="save", enabled=True),
    _css("button.btn.btn-success", text_contains="save", enabled=True),
    _css("button", text_contains="save", enabled=True),
))

SAVE_CONFIRMATION = SelectorRole("save confirmation", (
    _text_anywhere("saved", visible=False),
    _text_anywhere("success", visible=False),
    _css(".save-success", visible=False),
    _text_anywhere("TA Summary", visible=False),
))


# --- Structured settings (via Pydantic Settings) ---
class UploaderSettings(BaseSettings):
    """Centralized, typed settings for the upload batch.

    Values can be configured via environment variables. Prefer the
    UPLOADER_* variants; the older unprefixed names are accepted as aliases.
    Timeouts are in seconds unless the name says otherwise.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    base_url: str = Field(
        default=PLACEHOLDER_BASE_URL,
        validation_alias=AliasChoices("UPLOADER_BASE_URL", "TA_SUMMARY_URL"),
    )

    pdf_folder: str = Field(
        default="./pdfs",
        validation_alias=AliasChoices("UPLOADER_PDF_FOLDER", "PDF_FOLDER"),
    )

    # Credentials are optional; without them authentication is skipped.
    username: str = Field(
        default="",
        validation_alias=AliasChoices("UPLOADER_USERNAME", "TA_USERNAME"),
    )
    password: str = Field(
        default="",
        validation_alias=AliasChoices("UPLOADER_PASSWORD", "TA_PASSWORD"),
    )

    ta_year: str = Field(
        default="2025",
        validation_alias=AliasChoices("UPLOADER_TA_YEAR", "TA_YEAR"),
    )

    headless: bool = Field(
        default=False,
        validation_alias=AliasChoices("UPLOADER_HEADLESS", "HEADLESS_MODE"),
    )

    # Pause after every browser action, in milliseconds
    slow_mo_ms: int = Field(
        default=500,
        validation_alias=AliasChoices("UPLOADER_SLOW_MO", "BROWSER_SLOW_MO"),
    )

    # Default wait for a single interaction (element waits, settle waits)
    default_timeout: int = Field(
        default=30,
        validation_alias=AliasChoices("UPLOADER_DEFAULT_TIMEOUT"),
    )

    page_load_timeout: int = Field(
        default=60,
        validation_alias=AliasChoices("UPLOADER_PAGE_LOAD_TIMEOUT"),
    )

    # Upper bound for one selector resolution call
    resolve_timeout: float = Field(
        default=5.0,
        validation_alias=AliasChoices("UPLOADER_RESOLVE_TIMEOUT"),
    )

    settle_timeout: float = Field(
        default=15.0,
        validation_alias=AliasChoices("UPLOADER_SETTLE_TIMEOUT"),
    )

    # Hard ceiling for closing the browser
    teardown_timeout: float = Field(
        default=3.0,
        validation_alias=AliasChoices("UPLOADER_TEARDOWN_TIMEOUT"),
    )

    max_retry_attempts: int = Field(
        default=3,
        validation_alias=AliasChoices("UPLOADER_MAX_RETRY_ATTEMPTS", "MAX_RETRY_ATTEMPTS"),
    )

    retry_delay_ms: int = Field(
        default=2000,
        validation_alias=AliasChoices("UPLOADER_RETRY_DELAY_MS", "RETRY_DELAY_MS"),
    )

    enable_screenshots: bool = Field(
        default=False,
        validation_alias=AliasChoices("UPLOADER_ENABLE_SCREENSHOTS", "ENABLE_SCREENSHOTS"),
    )

    verbose_logging: bool = Field(
        default=False,
        validation_alias=AliasChoices("UPLOADER_VERBOSE_LOGGING", "VERBOSE_LOGGING"),
    )

    # Directory to store screenshots when errors occur
    screenshot_dir: str = Field(
        default="logs/error_screenshots",
        validation_alias=AliasChoices("UPLOADER_SCREENSHOT_DIR"),
    )

    # File path to persist cookies/localStorage between runs
    auth_state_file: str = Field(
        default="data/auth_state.json",
        validation_alias=AliasChoices("UPLOADER_AUTH_STATE_FILE"),
    )

    # Rehearsal: visible, slowed, nothing attached, saved or moved
    dry_run: bool = Field(
        default=False,
        validation_alias=AliasChoices("UPLOADER_DRY_RUN"),
    )

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def as_rehearsal(self) -> "UploaderSettings":
        return self.model_copy(update={"dry_run": True, "headless": False, "slow_mo_ms": 1000})

