"""
Vastu Samadhan Registration — exception hierarchy.

FormValidationError never leaves the server; UploadError and InsertError
become destructive toasts; AnalyticsError is only ever logged.
"""

from __future__ import annotations

from typing import Any


class IntakeError(RuntimeError):
    """Base class for all registration-flow errors."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None, *, error_code: str | None = None) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_code, "message": self.message}


class FormValidationError(IntakeError):
    """One or more fields failed validation. ``errors`` maps field → message."""

    default_message = "Please correct the highlighted fields."

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(error_code="VALIDATION_ERROR")
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "fields": self.errors}


class UploadError(IntakeError):
    default_message = "Failed to upload floor plan. Please try again."


class InsertError(IntakeError):
    default_message = "Failed to save your registration. Please try again."


class AnalyticsError(IntakeError):
    default_message = "Failed to record analytics event."


class SubmissionInProgressError(IntakeError):
    default_message = "A submission is already in progress."
