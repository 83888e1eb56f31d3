"""Error taxonomy for the generation and grading pipeline.

- UpstreamFailed: the completion service failed (transport, HTTP status,
  unparseable reply). Never retried by the core.
- GenerationInvalid: retries exhausted and the semantic violation persists.
  Carries the last attempt and the violation for diagnosis.
- GradingFailed / GradingInvalid: the open-form grading call failed or
  returned an unusable payload.
- InvalidQuestion / InvalidRequest: precondition violations on input shape,
  rejected immediately.
"""

from __future__ import annotations

from typing import Any


class MockExamError(Exception):
    """Base error for the pipeline."""

    pass


class UpstreamFailed(MockExamError):
    """Completion service failure, surfaced without retry."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        category: str = "upstream",
        raw: str | None = None,
        contract: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.category = category
        # Raw excerpt is capped so error payloads stay small
        self.raw = raw[:2000] if raw else None
        self.contract = contract

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for error reporting."""
        result: dict[str, Any] = {
            "error": type(self).__name__,
            "message": str(self),
            "category": self.category,
        }
        if self.status is not None:
            result["status"] = self.status
        if self.contract is not None:
            result["contract"] = self.contract
        if self.raw is not None:
            result["raw"] = self.raw
        return result


class GenerationFailed(MockExamError):
    """Exam generation did not produce a valid exam."""

    pass


class GenerationInvalid(GenerationFailed):
    """Semantic validation still failing after the last allowed attempt."""

    def __init__(
        self,
        violation: str,
        last_attempt: dict[str, Any] | None,
        attempts: int,
        contract: str,
    ):
        super().__init__(
            f"Output violates {contract} after {attempts} attempt(s): {violation}"
        )
        self.violation = violation
        self.last_attempt = last_attempt
        self.attempts = attempts
        self.contract = contract

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for error reporting."""
        return {
            "error": type(self).__name__,
            "message": str(self),
            "contract": self.contract,
            "violation": self.violation,
            "attempts": self.attempts,
            "last_attempt": self.last_attempt,
        }


class GradingError(MockExamError):
    """Grading did not produce a report."""

    pass


class GradingFailed(UpstreamFailed, GradingError):
    """Transport or service error during open-form grading."""

    pass


class GradingInvalid(GradingError):
    """Open-form grading payload cannot be mapped onto the submitted items."""

    def __init__(self, message: str, raw: dict[str, Any] | None = None, contract: str | None = None):
        super().__init__(message)
        self.raw = raw
        self.contract = contract


class InvalidQuestion(MockExamError, ValueError):
    """Question is missing required structure (e.g. its id)."""

    pass


class InvalidRequest(MockExamError, ValueError):
    """Request fields are outside their allowed values."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []
