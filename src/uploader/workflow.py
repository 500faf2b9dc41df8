"""
Workflow orchestration for one (document, identifier) task.

Stages always run from Authenticate in a fixed order. Only the
open/authenticate/navigate phase is retried; a failure in a later stage
fails the task straight away.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from . import config
from .auth import AuthenticateStage
from .browser import Browser
from .config import UploaderSettings
from .errors import NavigationFailure, SessionCrashed, StageError
from .models import StageStatus, Task, TaskOutcome, WorkflowState
from .navigation import NavigateStage
from .records import SelectRecordStage
from .search import SearchStage
from .session import SessionManager
from .upload import UploadStage
from .utils import is_present, take_error_screenshot

StageFactory = Callable[[Browser, UploaderSettings], object]


@dataclass
class StageSet:
    """Factories for the five stage handlers, replaceable in tests."""

    authenticate: StageFactory = AuthenticateStage
    navigate: StageFactory = NavigateStage
    search: StageFactory = SearchStage
    select_record: StageFactory = SelectRecordStage
    upload: StageFactory = UploadStage


class WorkflowOrchestrator:
    def __init__(
        self,
        sessions: SessionManager,
        settings: UploaderSettings,
        stages: StageSet | None = None,
    ):
        self.sessions = sessions
        self.settings = settings
        self.stages = stages or StageSet()
        self.state = WorkflowState.IDLE
        self.history: List[WorkflowState] = []

    def _transition(self, state: WorkflowState) -> None:
        self.state = state
        self.history.append(state)
        logging.debug("Workflow state -> %s", state.value)

    def run(self, task: Task) -> TaskOutcome:
        """Execute all stages for ``task`` and return exactly one outcome."""
        self.history = []
        self._transition(WorkflowState.IDLE)
        browser = None

        try:
            if self.sessions.ensure_alive():
                logging.info("🔄 Session was reinitialized; starting again from Authenticate")
            browser = self.sessions.browser

            self._authenticate_and_navigate(browser)

            self._transition(WorkflowState.SEARCHING)
            self.stages.search(browser, self.settings).execute(task.identifier)

            self._transition(WorkflowState.SELECTING_RECORD)
            if self.stages.select_record(browser, self.settings).execute() is StageStatus.SKIPPED:
                logging.info("⚠️ No data found for supplier %s", task.identifier)
                self._snapshot(browser, f"no-data-{task.identifier}")
                return TaskOutcome.skipped("No data found")

            upload_stage = self.stages.upload(browser, self.settings)
            self._transition(WorkflowState.UPLOADING)
            upload_stage.upload(str(task.document))
            self._transition(WorkflowState.SAVING)
            upload_stage.save()

            self._transition(WorkflowState.DONE)
            logging.info("✅ Successfully uploaded to supplier %s", task.identifier)
            return TaskOutcome.succeeded()

        except StageError as exc:
            return self._fail(browser, task, str(exc))
        except SessionCrashed as exc:
            return self._fail(browser, task, f"SessionCrashed: {exc}")
        except Exception as exc:
            if not self.sessions.is_alive():
                return self._fail(browser, task, f"SessionCrashed: {exc}")
            logging.error("Unexpected error processing supplier %s: %s", task.identifier, exc, exc_info=True)
            return self._fail(browser, task, f"Unexpected error: {exc}")

    def _fail(self, browser, task: Task, reason: str) -> TaskOutcome:
        failed_stage = self.state
        self._transition(WorkflowState.FAILED)
        logging.error("❌ Error processing supplier %s at %s: %s", task.identifier, failed_stage.value, reason)
        self._snapshot(browser, f"error_{task.identifier}")
        return TaskOutcome.failed(reason, failed_stage)

    def _snapshot(self, browser, prefix: str) -> None:
        if self.settings.enable_screenshots:
            take_error_screenshot(browser, prefix, self.settings.screenshot_dir)

    # --- Authenticate + Navigate phase ---

    def _authenticate_and_navigate(self, browser: Browser) -> None:
        retryer = Retrying(
            stop=stop_after_attempt(max(1, self.settings.max_retry_attempts)),
            wait=wait_fixed(self.settings.retry_delay_seconds),
            # Page-load timeouts and driver hiccups are retried too; a dead session is not.
            retry=retry_if_exception_type(Exception) & retry_if_not_exception_type(SessionCrashed),
            before_sleep=before_sleep_log(logging.getLogger(), logging.WARNING),
            reraise=True,
        )
        retryer(self._open_and_authenticate, browser)

    def _open_and_authenticate(self, browser: Browser) -> None:
        self._transition(WorkflowState.AUTHENTICATING)
        logging.info("🌐 Navigating to main page...")
        browser.goto(self.settings.base_url)
        browser.wait_for_settle(self.settings.settle_timeout)

        self.stages.authenticate(browser, self.settings).execute()

        if not is_present(browser, config.DASHBOARD_INDICATORS, self.settings.resolve_timeout):
            self._snapshot(browser, "dashboard-not-loaded")
            raise NavigationFailure(
                "Dashboard not loaded properly",
                role=config.DASHBOARD_INDICATORS.name,
                candidates=config.DASHBOARD_INDICATORS.describe(),
            )

        self._transition(WorkflowState.NAVIGATING)
        self.stages.navigate(browser, self.settings).execute()
