"""
Ownership of the single live browser session.

The manager creates the session on demand, restores the persisted
authentication snapshot, answers liveness questions, recreates the session
after a crash, and tears it down within a hard time bound.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .browser import Browser
from .config import UploaderSettings
from .errors import SessionCrashed

BrowserFactory = Callable[[UploaderSettings], Browser]


def _default_browser_factory(settings: UploaderSettings) -> Browser:
    from .driver import SeleniumBrowser

    return SeleniumBrowser(settings)


@dataclass
class Session:
    browser: Browser
    created_at: float
    auth_snapshot: Optional[Dict[str, Any]] = None

    @property
    def alive(self) -> bool:
        try:
            return self.browser.is_connected() and not self.browser.is_page_closed()
        except Exception as exc:
            logging.debug("Liveness probe failed: %s", exc)
            return False


class SessionManager:
    def __init__(
        self,
        settings: UploaderSettings,
        browser_factory: BrowserFactory = _default_browser_factory,
    ):
        self.settings = settings
        self._browser_factory = browser_factory
        self.session: Optional[Session] = None
        self.reinit_count = 0

    @property
    def browser(self) -> Browser:
        if self.session is None:
            raise SessionCrashed("No live browser session.")
        return self.session.browser

    # --- Snapshot persistence ---

    def _load_snapshot(self) -> Optional[Dict[str, Any]]:
        path = self.settings.auth_state_file
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                state = json.load(f)
            if not isinstance(state, dict):
                raise ValueError("snapshot is not a JSON object")
            return state
        except Exception as e:
            logging.warning(f"Failed to load session state: {e}")
            return None

    def _save_snapshot(self, browser: Browser) -> None:
        path = self.settings.auth_state_file
        try:
            state = dict(browser.get_auth_state())
            state["timestamp"] = time.time()
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(state, f, indent=2)
            logging.info(f"Session state saved to {path}.")
        except Exception as e:
            logging.warning(f"Failed to save session state: {e}")

    # --- Lifecycle ---

    def init(self) -> Session:
        """Create a new browser session, restoring a saved login if one exists."""
        if self.session is not None:
            self.cleanup(persist=False)

        logging.info("Initializing browser session...")
        snapshot = self._load_snapshot()
        browser = self._browser_factory(self.settings)
        try:
            browser.open()
        except Exception as exc:
            # A driver process may already be running even though the page never opened.
            try:
                browser.close()
            except Exception as close_exc:
                logging.debug("Cleanup after failed start raised: %s", close_exc)
            raise SessionCrashed(f"Failed to start browser session: {exc}") from exc

        if snapshot:
            try:
                browser.apply_auth_state(snapshot, self.settings.base_url)
            except Exception as e:
                # Proceed unauthenticated; the Authenticate stage logs in again.
                logging.warning(f"Failed to apply saved session state: {e}")
                snapshot = None

        self.session = Session(browser=browser, created_at=time.time(), auth_snapshot=snapshot)
        return self.session

    def is_alive(self) -> bool:
        return self.session is not None and self.session.alive

    def ensure_alive(self) -> bool:
        """Recreate the session if it died. Returns True when a reinitialization happened."""
        if self.is_alive():
            return False
        logging.warning("Browser not alive, reinitializing...")
        self.cleanup(persist=False)
        self.init()
        self.reinit_count += 1
        logging.info("Browser reinitialized successfully.")
        return True

    def cleanup(self, persist: bool = False) -> None:
        session = self.session
        self.session = None
        if session is None:
            return

        browser = session.browser
        if persist:
            try:
                page_open = not browser.is_page_closed()
            except Exception:
                page_open = False
            if page_open:
                self._save_snapshot(browser)

        def _close():
            try:
                browser.close()
            except Exception as e:
                logging.warning(f"Error during browser cleanup: {e}")

        closer = threading.Thread(target=_close, name="browser-teardown", daemon=True)
        closer.start()
        closer.join(self.settings.teardown_timeout)
        if closer.is_alive():
            logging.warning(
                "Browser did not close within %ss; continuing without waiting.",
                self.settings.teardown_timeout,
            )
        else:
            logging.info("Browser session closed.")
