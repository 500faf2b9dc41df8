"""
Selenium (Chrome) implementation of the browser capability.

Handles driver creation with container-friendly fallbacks, forced teardown
of lingering chromedriver processes, and cookie/localStorage snapshots.
"""

from __future__ import annotations

import os
import logging
import time
import shutil
import signal
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from selenium import webdriver
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support.ui import WebDriverWait
from selenium.common.exceptions import (
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)

from .config import UploaderSettings
from .errors import SessionCrashed

_SESSION_LOST_MARKERS = (
    "session not found",
    "invalid session id",
    "chrome not reachable",
    "disconnected",
    "no such window",
    "target window already closed",
)

_JS_LABEL_TEXT = """
const el = arguments[0];
const parts = [];
if (el.labels) {
  for (const label of el.labels) parts.push(label.innerText || label.textContent || "");
}
if (el.id) {
  const forLabel = document.querySelector('label[for="' + CSS.escape(el.id) + '"]');
  if (forLabel) parts.push(forLabel.innerText || forLabel.textContent || "");
}
const aria = el.getAttribute("aria-label");
if (aria) parts.push(aria);
let node = el.parentElement;
for (let depth = 0; node && depth < 3 && parts.length === 0; depth++, node = node.parentElement) {
  const nearby = node.querySelector("label");
  if (nearby) parts.push(nearby.innerText || nearby.textContent || "");
}
return parts.join(" ").trim();
"""

_JS_PENDING_ACTIVITY = """
const ready = (document.readyState || "").toLowerCase() === "complete";
const jq = window.jQuery ? window.jQuery.active : 0;
return ready && !jq;
"""


def exception_indicates_session_lost(exc: Exception) -> bool:
    if isinstance(exc, SessionCrashed):
        return True
    if isinstance(exc, WebDriverException):
        message = str(exc).lower()
        return any(marker in message for marker in _SESSION_LOST_MARKERS)
    return False


# --- Driver Management ---

def _resolve_chrome_binary() -> str | None:
    """Attempt to resolve a Chrome/Chromium binary path from env or PATH."""
    for env_name in ("CHROME_BINARY", "GOOGLE_CHROME_SHIM", "CHROME_PATH", "CHROMIUM_PATH"):
        binary_path = os.getenv(env_name)
        if binary_path and os.path.exists(binary_path):
            return binary_path

    for exe in ("google-chrome", "chrome", "chromium", "chromium-browser"):
        resolved = shutil.which(exe)
        if resolved:
            return resolved
    return None


def _ensure_tmp_dirs() -> dict[str, str]:
    """Ensure Chrome temp directories exist and return their paths."""
    base = Path("/tmp/uploader_chrome")
    user_data = base / "user_data"
    cache_dir = base / "cache"
    for p in (user_data, cache_dir):
        p.mkdir(parents=True, exist_ok=True)
    return {
        "user_data_dir": str(user_data),
        "disk_cache_dir": str(cache_dir),
    }


def _get_chrome_options(settings: UploaderSettings, *, force_legacy_headless: bool = False) -> webdriver.ChromeOptions:
    """Configures Chrome options based on settings.

    force_legacy_headless: when True, use the legacy "--headless" flag instead of
    the modern "--headless=new". Useful as a fallback for older Chrome builds.
    """
    options = webdriver.ChromeOptions()

    if settings.headless:
        options.add_argument("--headless" if force_legacy_headless else "--headless=new")

    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_argument("--disable-extensions")
    options.add_argument("--start-maximized")
    options.add_argument("--window-size=1920,1080")
    options.add_argument("--no-first-run")
    options.add_argument("--no-default-browser-check")
    options.add_argument("--remote-debugging-port=0")

    tmp_dirs = _ensure_tmp_dirs()
    options.add_argument(f"--user-data-dir={tmp_dirs['user_data_dir']}")
    options.add_argument(f"--disk-cache-dir={tmp_dirs['disk_cache_dir']}")

    options.add_experimental_option("excludeSwitches", ["enable-automation"])
    options.add_experimental_option("useAutomationExtension", False)

    chrome_binary = _resolve_chrome_binary()
    if chrome_binary:
        options.binary_location = chrome_binary

    return options


def _start_chrome(settings: UploaderSettings, service: ChromeService, force_legacy_headless: bool = False) -> webdriver.Chrome:
    driver = webdriver.Chrome(
        service=service,
        options=_get_chrome_options(settings, force_legacy_headless=force_legacy_headless),
    )
    try:
        driver.set_page_load_timeout(settings.page_load_timeout)
    except Exception:
        # Chrome is already running; do not leave it behind.
        _quit_quietly(driver)
        raise
    return driver


def _quit_quietly(driver: webdriver.Chrome) -> None:
    try:
        driver.quit()
    except Exception as e:
        logging.debug("Quit after failed setup raised: %s", e)
        _force_kill_driver_process(driver)


def _create_driver(settings: UploaderSettings) -> webdriver.Chrome:
    """Initializes and returns a configured Chrome WebDriver with fallbacks.

    Strategy:
      1) Try modern headless mode with Selenium Manager.
      2) On failure, retry with legacy headless flag.
    """
    log_path = os.getenv("SELENIUM_LOG_PATH", str(Path.cwd() / "selenium_driver.log"))
    try:
        service = ChromeService(log_output=log_path)
    except TypeError:
        # Older Selenium may not support log_output kwarg
        service = ChromeService()

    try:
        driver = _start_chrome(settings, service)
        logging.info("WebDriver initialized (headless=%s).", settings.headless)
        return driver
    except Exception as first_error:
        if not settings.headless:
            raise
        logging.warning(
            "Primary WebDriver init failed with headless=new. Retrying with legacy headless. Error: %s",
            first_error,
        )

    try:
        driver = _start_chrome(settings, service, force_legacy_headless=True)
        logging.info("WebDriver initialized (legacy --headless).")
        return driver
    except Exception as second_error:
        logging.critical(
            "Failed to initialize WebDriver after fallbacks. Chrome/Chromium may be missing or "
            "required OS libraries are not installed. See %s for ChromeDriver logs. Error: %s",
            log_path,
            second_error,
        )
        raise


def _force_kill_driver_process(driver: webdriver.Chrome) -> None:
    """Best-effort termination of lingering Chrome/Chromedriver processes."""
    service = getattr(driver, "service", None)
    process = getattr(service, "process", None)
    pid = getattr(process, "pid", None)

    if not process:
        logging.debug("No WebDriver service process found to terminate.")
        return

    logging.warning("Attempting to forcefully terminate lingering WebDriver process (pid=%s).", pid)

    try:
        process.terminate()
        process.wait(timeout=2)
        logging.info("WebDriver process terminated after forced kill attempt.")
        return
    except Exception as terminate_err:
        logging.debug("process.terminate() failed: %s", terminate_err)

    if pid:
        sig = signal.SIGKILL if hasattr(signal, "SIGKILL") else signal.SIGTERM
        try:
            os.kill(pid, sig)
            logging.info("WebDriver OS-level kill signal dispatched for pid %s.", pid)
        except Exception as os_kill_err:
            logging.debug("OS-level kill attempt for pid %s failed: %s", pid, os_kill_err)


class SeleniumElement:
    """Element handle backed by a Selenium ``WebElement``."""

    def __init__(self, browser: "SeleniumBrowser", element: WebElement):
        self._browser = browser
        self._element = element

    @property
    def _driver(self) -> webdriver.Chrome:
        return self._browser.driver

    def is_visible(self) -> bool:
        try:
            return self._element.is_displayed()
        except StaleElementReferenceException:
            return False

    def is_enabled(self) -> bool:
        try:
            return self._element.is_enabled()
        except StaleElementReferenceException:
            return False

    def text(self) -> str:
        text = self._element.text or ""
        if not text.strip():
            text = self._element.get_attribute("value") or self._element.get_attribute("textContent") or ""
        return text

    def label_text(self) -> str:
        return self._driver.execute_script(_JS_LABEL_TEXT, self._element) or ""

    def get_attribute(self, name: str) -> Optional[str]:
        return self._element.get_attribute(name)

    def _scroll_into_view(self) -> None:
        try:
            self._driver.execute_script(
                "arguments[0].scrollIntoView({block: 'center', inline: 'nearest'});",
                self._element,
            )
        except Exception as e:
            logging.debug("scrollIntoView failed: %s", e)

    def click(self) -> None:
        self._scroll_into_view()
        self._element.click()
        self._browser.slow_down()

    def force_click(self) -> None:
        ActionChains(self._driver).move_to_element(self._element).click().perform()
        self._browser.slow_down()

    def script_click(self) -> None:
        self._driver.execute_script("arguments[0].click();", self._element)
        self._browser.slow_down()

    def fill(self, value: str) -> None:
        self._scroll_into_view()
        try:
            self._element.click()
        except Exception:
            try:
                self._driver.execute_script("arguments[0].focus();", self._element)
            except Exception as e:
                logging.debug("Could not focus element before typing: %s", e)
        self._element.clear()
        self._element.send_keys(value)
        self._browser.slow_down()

    def press(self, key: str) -> None:
        self._element.send_keys(getattr(Keys, key.upper()))
        self._browser.slow_down()

    def set_files(self, path: str) -> None:
        self._element.send_keys(os.path.abspath(path))
        self._browser.slow_down()


class SeleniumBrowser:
    """Chrome session driven through Selenium WebDriver."""

    def __init__(self, settings: UploaderSettings):
        self.settings = settings
        self.driver: Optional[webdriver.Chrome] = None

    def _require_driver(self) -> webdriver.Chrome:
        if self.driver is None:
            raise SessionCrashed("Browser session is not open.")
        return self.driver

    def slow_down(self) -> None:
        if self.settings.slow_mo_ms > 0:
            time.sleep(self.settings.slow_mo_ms / 1000.0)

    def open(self) -> None:
        self.driver = _create_driver(self.settings)

    def close(self) -> None:
        driver = self.driver
        self.driver = None
        if driver is None:
            return

        timeout_seconds = self.settings.teardown_timeout
        quit_completed = threading.Event()

        def _on_quit_timeout():
            if quit_completed.is_set():
                return
            logging.warning("WebDriver quit timed out after %s seconds; forcing termination.", timeout_seconds)
            _force_kill_driver_process(driver)

        timer = threading.Timer(timeout_seconds, _on_quit_timeout)
        timer.daemon = True
        timer.start()
        try:
            driver.quit()
            quit_completed.set()
            logging.info("WebDriver quit successfully.")
        except Exception as e:
            quit_completed.set()
            # quit() may fail if the browser crashed; cleanup stays best-effort
            logging.warning(f"WebDriver quit failed (browser may have crashed): {e}")
            _force_kill_driver_process(driver)
        finally:
            timer.cancel()

    def is_connected(self) -> bool:
        if self.driver is None:
            return False
        service = getattr(self.driver, "service", None)
        try:
            return bool(service is None or service.is_connectable())
        except Exception:
            return False

    def is_page_closed(self) -> bool:
        if self.driver is None:
            return True
        try:
            _ = self.driver.current_window_handle
            return False
        except WebDriverException:
            return True

    def goto(self, url: str) -> None:
        driver = self._require_driver()
        try:
            driver.get(url)
        except WebDriverException as exc:
            if exception_indicates_session_lost(exc):
                raise SessionCrashed(str(exc)) from exc
            raise
        self.slow_down()

    def current_url(self) -> str:
        return self._require_driver().current_url or ""

    def title(self) -> str:
        return self._require_driver().title or ""

    def query(self, by: str, value: str) -> List[SeleniumElement]:
        driver = self._require_driver()
        return [SeleniumElement(self, el) for el in driver.find_elements(by, value)]

    def wait_for_settle(self, timeout: float) -> bool:
        """Wait for document.readyState=complete and no in-flight jQuery requests."""
        driver = self._require_driver()
        try:
            WebDriverWait(driver, timeout, poll_frequency=0.2).until(
                lambda d: bool(d.execute_script(_JS_PENDING_ACTIVITY))
            )
            return True
        except TimeoutException:
            logging.debug("Page did not settle within %ss", timeout)
            return False

    def pause(self, seconds: float) -> None:
        time.sleep(seconds)

    def press_key(self, key: str) -> None:
        driver = self._require_driver()
        ActionChains(driver).send_keys(getattr(Keys, key.upper())).perform()
        self.slow_down()

    def screenshot(self, path: str) -> None:
        self._require_driver().save_screenshot(path)

    def get_auth_state(self) -> Dict[str, Any]:
        driver = self._require_driver()
        return {
            "cookies": driver.get_cookies(),
            "localStorage": driver.execute_script("return Object.assign({}, window.localStorage);") or {},
        }

    def apply_auth_state(self, state: Dict[str, Any], base_url: str) -> None:
        """Restores cookies and localStorage; must visit the domain first."""
        driver = self._require_driver()
        cookies = state.get("cookies", [])
        local_storage_data = state.get("localStorage", {})
        if not cookies and not local_storage_data:
            return

        driver.get(base_url)
        for cookie in cookies:
            # Selenium requires "expiry" to be an integer timestamp
            if "expiry" in cookie and isinstance(cookie["expiry"], float):
                cookie["expiry"] = int(cookie["expiry"])
            if cookie.get("name") and cookie.get("value") is not None:
                try:
                    driver.add_cookie(cookie)
                except WebDriverException as exc:
                    logging.debug("Skipping cookie %s: %s", cookie.get("name"), exc)
        for key, value in local_storage_data.items():
            driver.execute_script("window.localStorage.setItem(arguments[0], arguments[1]);", key, value)
        logging.info("Loaded %d cookies and %d localStorage items.", len(cookies), len(local_storage_data))
