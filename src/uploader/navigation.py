"""
Navigate stage: walk the left menu down to the TA Summary listing.
"""

from __future__ import annotations

import logging
from typing import Sequence

from . import config
from .browser import Browser
from .config import UploaderSettings
from .errors import NavigationFailure
from .models import SelectorRole, StageStatus
from .utils import is_present, resolve, take_error_screenshot

# Short pause after each menu click so the submenu can expand
MENU_EXPAND_PAUSE_SECONDS = 0.3


class NavigateStage:
    def __init__(
        self,
        browser: Browser,
        settings: UploaderSettings,
        menu_path: Sequence[SelectorRole] = config.NAVIGATION_MENU_PATH,
    ):
        self.browser = browser
        self.settings = settings
        self.menu_path = tuple(menu_path)

    def execute(self) -> StageStatus:
        logging.info("📋 Navigating through menu to TA Summary...")
        self.browser.wait_for_settle(self.settings.settle_timeout)

        for role in self.menu_path:
            self._click_menu(role)

        self.browser.wait_for_settle(self.settings.settle_timeout)
        self._wait_for_listing_ready()
        logging.info("✅ Successfully navigated to TA Summary page")
        return StageStatus.SUCCEEDED

    def _click_menu(self, role: SelectorRole) -> None:
        logging.debug("🔍 Looking for %s...", role.name)
        element = resolve(self.browser, role, self.settings.resolve_timeout)
        if element is None:
            if self.settings.enable_screenshots:
                take_error_screenshot(self.browser, f"{role.name}-not-found", self.settings.screenshot_dir)
            raise NavigationFailure(
                f"{role.name} not found",
                role=role.name,
                candidates=role.describe(),
            )
        element.click()
        logging.info("🔄 %s clicked", role.name)
        self.browser.pause(MENU_EXPAND_PAUSE_SECONDS)

    def _wait_for_listing_ready(self) -> None:
        # Advisory only: the search stage probes the form again before acting.
        if is_present(self.browser, config.SEARCH_FORM_READY, self.settings.default_timeout):
            logging.info("✅ TA Summary search form loaded")
            return
        logging.warning("⚠️ Search form not loaded within timeout, continuing...")
        if self.settings.enable_screenshots:
            take_error_screenshot(self.browser, "ta-summary-form-not-loaded", self.settings.screenshot_dir)
