"""Selector resolution and interaction helpers shared by all stages."""

from __future__ import annotations

import logging
import os
import re
import time
from datetime import datetime
from typing import Iterable, Optional, Sequence

from .browser import Browser, Element
from .errors import ElementNotFound
from .models import SelectorCandidate, SelectorRole

# Polling interval between resolution passes
RESOLVE_POLL_SECONDS = 0.25

# Ordered interaction methods tried by robust_activate
DEFAULT_ACTIVATION_METHODS: Sequence[str] = (
    "click",
    "force_click",
    "script_click",
    "key:Enter",
    "key:Escape",
)


def _element_text(element: Element) -> str:
    return (element.text() or "").strip()


def _matches_predicate(element: Element, candidate: SelectorCandidate) -> bool:
    if candidate.label_contains:
        label = (element.label_text() or "").lower()
        if candidate.label_contains.lower() not in label:
            return False

    needs_text = (
        candidate.text_contains
        or candidate.text_equals
        or candidate.text_min_length
        or candidate.text_excludes
    )
    if not needs_text:
        return True

    text = _element_text(element)
    if candidate.text_equals and text.upper() != candidate.text_equals.upper():
        return False
    if candidate.text_contains and candidate.text_contains.lower() not in text.lower():
        return False
    if candidate.text_min_length and len(text) < candidate.text_min_length:
        return False
    if any(phrase in text for phrase in candidate.text_excludes):
        return False
    return True


def _first_qualifying(browser: Browser, candidate: SelectorCandidate) -> Optional[Element]:
    try:
        matches = browser.query(candidate.by, candidate.value)
    except Exception as exc:
        # Malformed selectors and DOM churn count as "no match".
        logging.debug("Query failed for %s: %s", candidate.describe(), exc)
        return None

    for element in matches:
        try:
            if candidate.visible and not element.is_visible():
                continue
            if candidate.enabled and not element.is_enabled():
                continue
            if _matches_predicate(element, candidate):
                return element
        except Exception as exc:
            logging.debug("Skipping element for %s: %s", candidate.describe(), exc)
            continue
    return None


def resolve(browser: Browser, role: SelectorRole, timeout: float = 0.0) -> Optional[Element]:
    """Locate the element for ``role`` using its ordered candidate list.

    Candidates are tried in declared order and the first one yielding a
    qualifying element wins; later candidates are not consulted. When a full
    pass finds nothing, passes repeat until ``timeout`` seconds have elapsed
    (a zero timeout means exactly one pass). Returns ``None`` when nothing
    qualifies; callers decide whether that is a failure.
    """

    deadline = time.monotonic() + max(timeout, 0.0)
    passes = 0

    while True:
        passes += 1
        for candidate in role.candidates:
            element = _first_qualifying(browser, candidate)
            if element is not None:
                logging.debug("Resolved %s via %s (pass %s)", role.name, candidate.describe(), passes)
                return element
        if time.monotonic() >= deadline:
            break
        time.sleep(RESOLVE_POLL_SECONDS)

    logging.debug("No candidate resolved for %s after %s pass(es)", role.name, passes)
    return None


def require(browser: Browser, role: SelectorRole, timeout: float = 0.0) -> Element:
    """Like :func:`resolve` but raises ``ElementNotFound`` with diagnostics attached."""
    element = resolve(browser, role, timeout)
    if element is None:
        raise ElementNotFound(
            f"{role.name} not found",
            role=role.name,
            candidates=role.describe(),
        )
    return element


def is_present(browser: Browser, role: SelectorRole, timeout: float = 0.0) -> bool:
    return resolve(browser, role, timeout) is not None


def robust_activate(
    browser: Browser,
    element: Optional[Element],
    methods: Iterable[str] = DEFAULT_ACTIVATION_METHODS,
) -> Optional[str]:
    """Trigger a control through an ordered list of interaction methods.

    Methods are element-level (``click``, ``force_click``, ``script_click``)
    or page-level key presses written as ``key:<Name>``. Element-level
    methods are skipped when ``element`` is None. Returns the name of the
    first method that completed without raising, or None if all failed.
    """

    for method in methods:
        try:
            if method.startswith("key:"):
                browser.press_key(method.split(":", 1)[1])
            elif element is None:
                continue
            elif method == "click":
                element.click()
            elif method == "force_click":
                element.force_click()
            elif method == "script_click":
                element.script_click()
            else:
                logging.warning("Unknown activation method '%s' ignored", method)
                continue
        except Exception as exc:
            logging.debug("Activation via %s failed: %s", method, exc)
            continue
        logging.debug("Activation succeeded via %s", method)
        return method
    return None


def _sanitize_filename_component(value: str) -> str:
    cleaned = re.sub(r"[^\w.-]+", "_", value or "")
    cleaned = re.sub(r"_+", "_", cleaned).strip("._")
    return cleaned[:80] or "artifact"


def take_error_screenshot(browser: Optional[Browser], filename_prefix: str, screenshot_dir: str) -> Optional[str]:
    """Saves a screenshot to ``screenshot_dir`` with a timestamp. Never raises."""
    if browser is None:
        return None
    try:
        if browser.is_page_closed():
            logging.debug("Page closed; skipping screenshot '%s'", filename_prefix)
            return None
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"{_sanitize_filename_component(filename_prefix)}_{timestamp}.png"
        filepath = os.path.join(screenshot_dir, filename)
        os.makedirs(screenshot_dir, exist_ok=True)
        browser.screenshot(filepath)
        logging.info("Screenshot saved to %s", filepath)
        return filepath
    except Exception as e:
        # Avoid causing a new error during error logging
        logging.error(f"Failed to capture error screenshot: {e}")
        return None
