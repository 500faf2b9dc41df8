"""Authenticate stage: SSO login, skipped when already logged in."""

from __future__ import annotations

import logging

from . import config
from .browser import Browser
from .config import UploaderSettings
from .errors import AuthenticationFailure
from .models import StageStatus
from .utils import is_present, require, resolve, robust_activate


class AuthenticateStage:
    def __init__(self, browser: Browser, settings: UploaderSettings):
        self.browser = browser
        self.settings = settings

    def is_logged_in(self) -> bool:
        return is_present(self.browser, config.LOGGED_IN_INDICATORS)

    def execute(self) -> StageStatus:
        """Log in unless the page already shows a logged-in indicator.

        Returns SKIPPED when no credentials are configured, since
        authentication is optional for this application.
        """
        logging.info("🔐 Checking authentication status...")
        if self.is_logged_in():
            logging.info("✅ Already logged in.")
            return StageStatus.SUCCEEDED

        if not self.settings.has_credentials:
            logging.warning("⚠️ No credentials provided, skipping authentication")
            return StageStatus.SKIPPED

        logging.info("🔐 Not logged in, starting authentication process...")
        self._click_sso_login()
        self._fill_login_form()
        logging.info("✅ Authentication completed")
        return StageStatus.SUCCEEDED

    def _click_sso_login(self) -> None:
        button = resolve(self.browser, config.LOGIN_BUTTON, self.settings.resolve_timeout)
        if button is None:
            raise AuthenticationFailure(
                "SSO LOGIN button not found",
                role=config.LOGIN_BUTTON.name,
                candidates=config.LOGIN_BUTTON.describe(),
            )
        button.click()
        logging.info("✅ SSO LOGIN clicked")

    def _fill_login_form(self) -> None:
        if not is_present(self.browser, config.LOGIN_FORM, self.settings.resolve_timeout):
            raise AuthenticationFailure(
                "Login form not found after clicking SSO button",
                role=config.LOGIN_FORM.name,
                candidates=config.LOGIN_FORM.describe(),
            )

        username_field = resolve(self.browser, config.USERNAME_INPUT)
        if username_field is not None:
            username_field.fill(self.settings.username)
            logging.debug("Username entered")

        password_field = require(self.browser, config.PASSWORD_INPUT)
        password_field.fill(self.settings.password)
        logging.debug("Password entered")

        submit = resolve(self.browser, config.LOGIN_SUBMIT)
        method = robust_activate(self.browser, submit, ("click",)) if submit is not None else None
        if method is None:
            password_field.press("Enter")
            logging.info("✅ Login submitted using Enter key")
        else:
            logging.info("✅ Login submitted")

        self.browser.wait_for_settle(self.settings.settle_timeout)
