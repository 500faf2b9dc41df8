from pathlib import Path

import pytest
from selenium.common.exceptions import TimeoutException

from src.uploader import config
from src.uploader.errors import ElementNotFound, NavigationFailure, SessionCrashed
from src.uploader.models import OutcomeStatus, StageStatus, Task, WorkflowState
from src.uploader.session import SessionManager
from src.uploader.workflow import WorkflowOrchestrator
from tests.conftest import FakeElement, StubStages

TASK = Task(document=Path("/data/pdfs/1001.pdf"), identifier="1001")


@pytest.fixture()
def stubs():
    return StubStages()


@pytest.fixture()
def sessions(settings, browser_factory):
    browser_factory.prepare = lambda fake: fake.show(config.DASHBOARD_INDICATORS, FakeElement("Trading Agreement"))
    manager = SessionManager(settings, browser_factory)
    manager.init()
    return manager


def test_happy_path_runs_every_stage_in_order(sessions, settings, stubs):
    orchestrator = WorkflowOrchestrator(sessions, settings, stubs.stage_set())

    outcome = orchestrator.run(TASK)

    assert outcome.is_success
    assert stubs.calls == ["authenticate", "navigate", "search", "select_record", "upload", "save"]
    assert orchestrator.history == [
        WorkflowState.IDLE,
        WorkflowState.AUTHENTICATING,
        WorkflowState.NAVIGATING,
        WorkflowState.SEARCHING,
        WorkflowState.SELECTING_RECORD,
        WorkflowState.UPLOADING,
        WorkflowState.SAVING,
        WorkflowState.DONE,
    ]
    assert sessions.browser.visited == [settings.base_url]


def test_zero_results_skip_upload_and_save(sessions, settings, stubs):
    stubs.select_result = StageStatus.SKIPPED

    outcome = WorkflowOrchestrator(sessions, settings, stubs.stage_set()).run(TASK)

    assert outcome.status is OutcomeStatus.SKIPPED
    assert outcome.reason == "No data found"
    assert "upload" not in stubs.calls
    assert "save" not in stubs.calls


def test_authenticate_and_navigate_are_retried(sessions, settings, stubs):
    stubs.failures["navigate"] = [NavigationFailure("menu not ready"), NavigationFailure("menu not ready"), None]

    outcome = WorkflowOrchestrator(sessions, settings, stubs.stage_set()).run(TASK)

    assert outcome.is_success
    assert stubs.calls.count("authenticate") == 3
    assert stubs.calls.count("navigate") == 3


def test_retry_budget_exhausted(sessions, settings, stubs):
    stubs.failures["navigate"] = NavigationFailure("menu not ready")

    outcome = WorkflowOrchestrator(sessions, settings, stubs.stage_set()).run(TASK)

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.stage is WorkflowState.NAVIGATING
    assert "menu not ready" in outcome.reason
    assert stubs.calls.count("authenticate") == settings.max_retry_attempts
    assert "search" not in stubs.calls


def test_page_load_timeout_is_retried(sessions, settings, stubs):
    browser = sessions.browser
    real_goto = browser.goto
    attempts = []

    def flaky_goto(url):
        attempts.append(url)
        if len(attempts) == 1:
            raise TimeoutException("timeout: Timed out receiving message from renderer")
        real_goto(url)

    browser.goto = flaky_goto

    outcome = WorkflowOrchestrator(sessions, settings, stubs.stage_set()).run(TASK)

    assert outcome.is_success
    assert len(attempts) == 2
    assert stubs.calls.count("authenticate") == 1


def test_session_crash_during_authenticate_is_not_retried(sessions, settings, stubs):
    stubs.failures["authenticate"] = SessionCrashed("target window already closed")

    outcome = WorkflowOrchestrator(sessions, settings, stubs.stage_set()).run(TASK)

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.stage is WorkflowState.AUTHENTICATING
    assert stubs.calls == ["authenticate"]


def test_missing_dashboard_fails_after_retries(sessions, settings, stubs):
    sessions.browser.hide(config.DASHBOARD_INDICATORS)

    outcome = WorkflowOrchestrator(sessions, settings, stubs.stage_set()).run(TASK)

    assert outcome.status is OutcomeStatus.FAILED
    assert "Dashboard not loaded properly" in outcome.reason
    assert stubs.calls.count("authenticate") == settings.max_retry_attempts
    assert "navigate" not in stubs.calls


def test_later_stage_failure_is_not_retried(sessions, settings, stubs):
    stubs.failures["search"] = ElementNotFound("supplier code input field not found")

    outcome = WorkflowOrchestrator(sessions, settings, stubs.stage_set()).run(TASK)

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.stage is WorkflowState.SEARCHING
    assert stubs.calls == ["authenticate", "navigate", "search"]


def test_dead_session_is_reinitialized_and_restarts_from_authenticate(sessions, settings, stubs, browser_factory):
    browser_factory.created[0].crash()
    orchestrator = WorkflowOrchestrator(sessions, settings, stubs.stage_set())

    outcome = orchestrator.run(TASK)

    assert outcome.is_success
    assert sessions.reinit_count == 1
    assert orchestrator.history[:2] == [WorkflowState.IDLE, WorkflowState.AUTHENTICATING]
    assert browser_factory.created[1].visited == [settings.base_url]


def test_crash_mid_upload_reports_session_crashed(sessions, settings, stubs):
    stubs.before["upload"] = lambda browser: browser.crash()
    stubs.failures["upload"] = RuntimeError("no such window")

    outcome = WorkflowOrchestrator(sessions, settings, stubs.stage_set()).run(TASK)

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.stage is WorkflowState.UPLOADING
    assert outcome.reason.startswith("SessionCrashed")


def test_session_crashed_error_becomes_failed_outcome(sessions, settings, stubs):
    stubs.failures["save"] = SessionCrashed("target window already closed")

    outcome = WorkflowOrchestrator(sessions, settings, stubs.stage_set()).run(TASK)

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.stage is WorkflowState.SAVING


def test_unexpected_error_on_live_session(sessions, settings, stubs):
    stubs.failures["search"] = ValueError("boom")

    outcome = WorkflowOrchestrator(sessions, settings, stubs.stage_set()).run(TASK)

    assert outcome.reason == "Unexpected error: boom"


def test_failure_screenshot_when_enabled(sessions, settings, stubs):
    shooting = settings.model_copy(update={"enable_screenshots": True})
    stubs.failures["search"] = ElementNotFound("search button not found")

    WorkflowOrchestrator(sessions, shooting, stubs.stage_set()).run(TASK)

    assert len(sessions.browser.screenshots) == 1
    assert "error_1001" in sessions.browser.screenshots[0]
