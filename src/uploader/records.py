"""Select-and-open stage: pick the first result row and open its detail view."""

from __future__ import annotations

import logging
from typing import Optional

from . import config
from .browser import Browser
from .config import UploaderSettings
from .errors import ElementNotFound
from .models import StageStatus
from .utils import is_present, require, resolve, take_error_screenshot

# Wait after clicking a row so the toolbar buttons can enable
ROW_SELECT_PAUSE_SECONDS = 1.0


def is_zero_result_text(text: Optional[str]) -> bool:
    """True when a paging status such as "0 to 0 of 0" reports no rows."""
    if not text:
        return False
    return any(phrase in text for phrase in config.ZERO_RESULT_PHRASES)


class SelectRecordStage:
    def __init__(self, browser: Browser, settings: UploaderSettings):
        self.browser = browser
        self.settings = settings

    def execute(self) -> StageStatus:
        """Open the first qualifying record, or return SKIPPED when the search found nothing."""
        logging.info("📋 Looking for any TA record...")
        if self._reports_no_results():
            return StageStatus.SKIPPED

        row = require(self.browser, config.RESULT_ROW, self.settings.resolve_timeout)
        logging.info("✅ Found data row: %s...", row.text().strip()[:100])
        row.click()
        self.browser.pause(ROW_SELECT_PAUSE_SECONDS)

        edit_button = resolve(self.browser, config.EDIT_BUTTON, self.settings.resolve_timeout)
        if edit_button is None:
            if self.settings.enable_screenshots:
                take_error_screenshot(self.browser, "edit-button-not-found", self.settings.screenshot_dir)
            raise ElementNotFound(
                "Edit button not found",
                role=config.EDIT_BUTTON.name,
                candidates=config.EDIT_BUTTON.describe(),
            )

        logging.info("🔄 Clicking Edit button...")
        edit_button.click()
        self.browser.wait_for_settle(self.settings.settle_timeout)

        if is_present(self.browser, config.EDIT_VIEW_READY, self.settings.resolve_timeout):
            logging.info("✅ Confirmed on edit page")
        else:
            logging.warning("⚠️ May not be on edit page, continuing...")
            if self.settings.enable_screenshots:
                take_error_screenshot(self.browser, "not-on-edit-page", self.settings.screenshot_dir)
        return StageStatus.SUCCEEDED

    def _reports_no_results(self) -> bool:
        status = resolve(self.browser, config.PAGINATION_STATUS)
        if status is None:
            return False
        try:
            text = status.text()
        except Exception as e:
            logging.warning("⚠️ Pagination check failed, continuing... (%s)", e)
            return False
        logging.info("📄 Pagination text: %r", text)
        if is_zero_result_text(text):
            logging.info("❌ No data found - pagination shows: %r", text)
            return True
        return False
