"""
Unit tests for src/uploader/utils.py

Covers selector resolution order, predicates, robust activation and the
best-effort screenshot helper.
"""

import re

import pytest

from src.uploader import utils
from src.uploader.errors import ElementNotFound
from src.uploader.models import SelectorCandidate, SelectorRole
from src.uploader.utils import (
    _sanitize_filename_component,
    is_present,
    require,
    resolve,
    robust_activate,
    take_error_screenshot,
)
from tests.conftest import FakeElement

CSS = "css selector"

A = SelectorCandidate(CSS, "#a")
B = SelectorCandidate(CSS, "#b")
C = SelectorCandidate(CSS, "#c")
ROLE = SelectorRole("test control", (A, B, C))


class TestResolve:
    def test_first_matching_candidate_wins_and_later_ones_are_not_consulted(self, browser):
        b_element = browser.add(CSS, "#b", FakeElement("B"))
        browser.add(CSS, "#c", FakeElement("C"))

        assert resolve(browser, ROLE) is b_element
        assert browser.queries == [(CSS, "#a"), (CSS, "#b")]

    def test_invisible_match_is_skipped(self, browser):
        browser.add(CSS, "#a", FakeElement("hidden", visible=False))
        b_element = browser.add(CSS, "#b", FakeElement("B"))

        assert resolve(browser, ROLE) is b_element

    def test_disabled_match_is_skipped_when_enabled_required(self, browser):
        role = SelectorRole("save", (SelectorCandidate(CSS, "button", enabled=True),))
        browser.add(CSS, "button", FakeElement("Save", enabled=False))
        save = browser.add(CSS, "button", FakeElement("Save"))

        assert resolve(browser, role) is save

    def test_disabled_match_accepted_by_default(self, browser):
        disabled = browser.add(CSS, "#a", FakeElement("A", enabled=False))

        assert resolve(browser, ROLE) is disabled

    def test_hidden_element_accepted_when_visibility_not_required(self, browser):
        role = SelectorRole("file input", (SelectorCandidate(CSS, "input[type='file']", visible=False),))
        hidden = browser.add(CSS, "input[type='file']", FakeElement(visible=False))

        assert resolve(browser, role) is hidden

    def test_query_errors_count_as_no_match(self, browser):
        browser.broken_locators.add((CSS, "#a"))
        b_element = browser.add(CSS, "#b", FakeElement("B"))

        assert resolve(browser, ROLE) is b_element

    def test_returns_none_after_single_pass_with_zero_timeout(self, browser):
        assert resolve(browser, ROLE, timeout=0) is None
        assert len(browser.queries) == 3

    def test_polls_until_element_appears(self, browser, monkeypatch):
        def fake_sleep(seconds):
            browser.add(CSS, "#c", FakeElement("late"))

        monkeypatch.setattr(utils.time, "sleep", fake_sleep)
        found = resolve(browser, ROLE, timeout=5)

        assert found is not None and found.text() == "late"

    def test_label_predicate(self, browser):
        role = SelectorRole(
            "year",
            (SelectorCandidate(CSS, "input[type='text']", label_contains="year"),),
        )
        browser.add(CSS, "input[type='text']", FakeElement(label="Supplier Code"))
        year = browser.add(CSS, "input[type='text']", FakeElement(label="TA Year"))

        assert resolve(browser, role) is year

    def test_text_equals_is_case_insensitive_and_exact(self, browser):
        role = SelectorRole("ok", (SelectorCandidate(CSS, "button", text_equals="OK"),))
        browser.add(CSS, "button", FakeElement("Look"))
        ok = browser.add(CSS, "button", FakeElement(" ok "))

        assert resolve(browser, role) is ok

    def test_row_filters_skip_short_and_no_data_rows(self, browser):
        role = SelectorRole(
            "row",
            (SelectorCandidate(CSS, "tbody tr", text_min_length=11, text_excludes=("No data",)),),
        )
        browser.add(CSS, "tbody tr", FakeElement("header"))
        browser.add(CSS, "tbody tr", FakeElement("No data to display"))
        row = browser.add(CSS, "tbody tr", FakeElement("2025 1001 Supplier A Approved"))

        assert resolve(browser, role) is row


class TestRequire:
    def test_raises_with_role_and_candidates(self, browser):
        with pytest.raises(ElementNotFound) as exc_info:
            require(browser, ROLE)

        err = exc_info.value
        assert err.role == "test control"
        assert err.candidates == ROLE.describe()
        assert "ElementNotFound" in str(err)

    def test_is_present(self, browser):
        assert not is_present(browser, ROLE)
        browser.add(CSS, "#c", FakeElement())
        assert is_present(browser, ROLE)


class TestRobustActivate:
    def test_plain_click_first(self, browser):
        element = FakeElement()
        assert robust_activate(browser, element) == "click"
        assert element.calls == ["click"]

    def test_falls_through_in_order(self, browser):
        element = FakeElement(failing={"click", "force_click"})

        assert robust_activate(browser, element) == "script_click"
        assert element.calls == ["click", "force_click", "script_click"]
        assert browser.keys == []

    def test_keyboard_used_when_element_methods_fail(self, browser):
        element = FakeElement(failing={"click", "force_click", "script_click"})

        assert robust_activate(browser, element) == "key:Enter"
        assert browser.keys == ["Enter"]

    def test_missing_element_goes_straight_to_keys(self, browser):
        assert robust_activate(browser, None) == "key:Enter"

    def test_returns_none_when_everything_fails(self, browser):
        browser.failing_keys.update({"Enter", "Escape"})
        element = FakeElement(failing={"click", "force_click", "script_click"})

        assert robust_activate(browser, element) is None
        assert browser.keys == ["Enter", "Escape"]

    def test_custom_method_list(self, browser):
        element = FakeElement(failing={"click"})
        assert robust_activate(browser, element, ("click",)) is None


class TestScreenshots:
    def test_sanitize_filename_component_strips_invalid_characters(self):
        sanitized = _sanitize_filename_component("error_//button[contains(., 'Save')]")
        assert re.fullmatch(r"[\w.-]+", sanitized)

    def test_sanitize_filename_component_handles_empty_input(self):
        assert _sanitize_filename_component("") == "artifact"

    def test_writes_file(self, browser, tmp_path):
        path = take_error_screenshot(browser, "error_1001", str(tmp_path / "shots"))

        assert path is not None
        assert (tmp_path / "shots").exists()
        assert browser.screenshots == [path]

    def test_skips_closed_page(self, browser, tmp_path):
        browser.crash()
        assert take_error_screenshot(browser, "error", str(tmp_path)) is None
        assert browser.screenshots == []

    def test_never_raises(self, browser, tmp_path):
        def broken(path):
            raise RuntimeError("renderer gone")

        browser.screenshot = broken
        assert take_error_screenshot(browser, "error", str(tmp_path)) is None
