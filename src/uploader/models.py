"""Plain data types shared by the uploader components."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class SelectorCandidate:
    """One way of locating the element for a semantic role.

    ``by``/``value`` form a Selenium-style locator. The remaining fields are an
    optional disambiguation predicate evaluated against each matched element;
    all populated fields must hold for the element to qualify.
    """

    by: str
    value: str
    label_contains: Optional[str] = None
    text_contains: Optional[str] = None
    text_equals: Optional[str] = None
    text_min_length: int = 0
    text_excludes: Tuple[str, ...] = ()
    visible: bool = True
    enabled: bool = False

    def describe(self) -> str:
        extras = []
        if self.label_contains:
            extras.append(f"label~{self.label_contains!r}")
        if self.text_contains:
            extras.append(f"text~{self.text_contains!r}")
        if self.text_equals:
            extras.append(f"text=={self.text_equals!r}")
        if self.enabled:
            extras.append("enabled")
        suffix = f" [{', '.join(extras)}]" if extras else ""
        return f"{self.by}::{self.value}{suffix}"


@dataclass(frozen=True)
class SelectorRole:
    name: str
    candidates: Tuple[SelectorCandidate, ...]

    def describe(self) -> List[str]:
        return [c.describe() for c in self.candidates]


class StageStatus(enum.Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"


class WorkflowState(enum.Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    NAVIGATING = "navigating"
    SEARCHING = "searching"
    SELECTING_RECORD = "selecting_record"
    UPLOADING = "uploading"
    SAVING = "saving"
    DONE = "done"
    FAILED = "failed"


class OutcomeStatus(enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Task:
    document: Path
    identifier: str

    @property
    def document_name(self) -> str:
        return self.document.name


@dataclass(frozen=True)
class TaskOutcome:
    status: OutcomeStatus
    reason: str = ""
    stage: Optional[WorkflowState] = None

    @classmethod
    def succeeded(cls) -> "TaskOutcome":
        return cls(OutcomeStatus.SUCCEEDED)

    @classmethod
    def failed(cls, reason: str, stage: Optional[WorkflowState] = None) -> "TaskOutcome":
        return cls(OutcomeStatus.FAILED, reason, stage)

    @classmethod
    def skipped(cls, reason: str) -> "TaskOutcome":
        return cls(OutcomeStatus.SKIPPED, reason, WorkflowState.SELECTING_RECORD)

    @property
    def is_success(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


@dataclass
class DocumentResult:
    """Outcomes for every identifier of one document, in declared order."""

    document: Path
    outcomes: List[Tuple[str, TaskOutcome]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return bool(self.outcomes) and all(o.is_success for _, o in self.outcomes)

    def failed_identifiers(self) -> List[str]:
        return [ident for ident, o in self.outcomes if not o.is_success]
