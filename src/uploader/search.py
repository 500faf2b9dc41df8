"""Search stage: fill the TA year and supplier code filters and run the search."""

from __future__ import annotations

import logging

from selenium.webdriver.common.by import By
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from . import config
from .browser import Browser
from .config import UploaderSettings
from .errors import ElementNotFound
from .models import SelectorRole, StageStatus
from .utils import is_present, resolve

# How many form elements to list when a field cannot be found
_DIAGNOSTIC_LIMIT = 15


class SearchFormNotReady(Exception):
    """Raised by the readiness probe while the listing is still rendering."""


class SearchStage:
    def __init__(self, browser: Browser, settings: UploaderSettings):
        self.browser = browser
        self.settings = settings

    def execute(self, identifier: str) -> StageStatus:
        logging.info("🔍 Filtering for supplier: %s", identifier)
        self._wait_for_search_form()
        self._log_page_context()

        self._fill_field(config.YEAR_INPUT, self.settings.ta_year)
        self._fill_field(config.IDENTIFIER_INPUT, identifier)
        self._click_search()
        logging.info("✅ Search completed")
        return StageStatus.SUCCEEDED

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        retry=retry_if_exception_type(SearchFormNotReady),
    )
    def _probe_search_form(self) -> None:
        self.browser.wait_for_settle(self.settings.settle_timeout)
        if not is_present(self.browser, config.SEARCH_FORM_READY):
            logging.info("⚠️ Search form not ready, waiting and retrying...")
            raise SearchFormNotReady()

    def _wait_for_search_form(self) -> bool:
        try:
            self._probe_search_form()
        except RetryError:
            logging.warning("⚠️ Search form still not ready after retries, proceeding anyway...")
            return False
        logging.debug("Search form detected, proceeding...")
        return True

    def _log_page_context(self) -> None:
        try:
            logging.debug("Page title: %r, URL: %s", self.browser.title(), self.browser.current_url())
        except Exception as e:
            logging.debug("Page context unavailable: %s", e)

    def _fill_field(self, role: SelectorRole, value: str) -> None:
        field = resolve(self.browser, role, self.settings.resolve_timeout)
        if field is None:
            self._log_form_elements()
            raise ElementNotFound(
                f"{role.name} field not found",
                role=role.name,
                candidates=role.describe(),
            )
        field.fill(value)
        logging.info("✅ %s set to %s", role.name, value)

    def _click_search(self) -> None:
        button = resolve(self.browser, config.SEARCH_BUTTON, self.settings.resolve_timeout)
        if button is None:
            raise ElementNotFound(
                "Search button not found",
                role=config.SEARCH_BUTTON.name,
                candidates=config.SEARCH_BUTTON.describe(),
            )
        button.click()
        self.browser.wait_for_settle(self.settings.settle_timeout)

    def _log_form_elements(self) -> None:
        """List inputs and labels on the page to help update the selectors."""
        if not logging.getLogger().isEnabledFor(logging.DEBUG):
            return
        try:
            inputs = self.browser.query(By.TAG_NAME, "input")[:_DIAGNOSTIC_LIMIT]
            logging.debug("Found %d input fields:", len(inputs))
            for idx, el in enumerate(inputs, start=1):
                logging.debug(
                    "  %d. id=%r type=%r class=%r name=%r",
                    idx,
                    el.get_attribute("id"),
                    el.get_attribute("type"),
                    el.get_attribute("class"),
                    el.get_attribute("name"),
                )
            labels = self.browser.query(By.TAG_NAME, "label")[:_DIAGNOSTIC_LIMIT]
            for idx, el in enumerate(labels, start=1):
                logging.debug("  Label %d: %r for=%r", idx, el.text(), el.get_attribute("for"))
        except Exception as debug_error:
            logging.debug("Form diagnostics failed: %s", debug_error)
