"""Exception taxonomy for the upload workflow."""

from __future__ import annotations

from typing import Optional, Sequence


class UploaderError(Exception):
    """Base class for all uploader errors."""


class StageError(UploaderError):
    """A stage could not complete. Converted into a failed task outcome."""

    kind = "StageError"

    def __init__(
        self,
        detail: str,
        *,
        role: Optional[str] = None,
        candidates: Optional[Sequence[str]] = None,
    ):
        self.detail = detail
        self.role = role
        self.candidates = list(candidates or [])
        super().__init__(detail)

    def __str__(self) -> str:
        if self.role:
            return f"{self.kind}: {self.detail} (role={self.role}, candidates={len(self.candidates)})"
        return f"{self.kind}: {self.detail}"


class ElementNotFound(StageError):
    kind = "ElementNotFound"


class AuthenticationFailure(StageError):
    kind = "AuthenticationFailure"


class NavigationFailure(StageError):
    kind = "NavigationFailure"


class UploadFailure(StageError):
    kind = "UploadFailure"


class SessionCrashed(UploaderError):
    """The browser disconnected or its page was closed."""


class FatalError(UploaderError):
    """Startup or configuration problem; the batch cannot begin."""
