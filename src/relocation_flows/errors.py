"""Error taxonomy for the conversational flow engine.

Every error that may cross the SDK boundary derives from ``FlowError``.
Each subclass carries the HTTP status and the client-safe message the
server should use, so the server needs a single handler instead of
matching on message text.

  - UnknownFlow       — flow type not in the registry
  - Unauthenticated   — caller has no identity
  - ValidationError   — empty / malformed input (carries the field name)
  - AIBackendError    — AI call failed; recovered by the dispatcher
  - GenerationFailed  — both AI and template generation failed
  - ArtifactNotFound  — handle unknown, expired, or owned by someone else

Note that ``ValidationError`` here is unrelated to
``pydantic.ValidationError``; the SDK converts pydantic failures on
caller-supplied data into this class.
"""

from __future__ import annotations


class FlowError(Exception):
    """Base class for all SDK errors surfaced to callers."""

    status_code: int = 400
    safe_message: str = "Invalid request"


class UnknownFlow(FlowError):
    """The requested flow type does not exist."""

    status_code = 404
    safe_message = "Unknown flow type"

    def __init__(self, flow_type: str) -> None:
        super().__init__(f"Unknown flow type: {flow_type!r}")
        self.flow_type = flow_type


class Unauthenticated(FlowError):
    """The caller is not logged in (no subject identity)."""

    status_code = 401
    safe_message = "Login required"

    def __init__(self, message: str = "Login required") -> None:
        super().__init__(message)


class ValidationError(FlowError):
    """A required field is empty or a caller-supplied value is malformed."""

    status_code = 422

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message

    @property
    def safe_message(self) -> str:  # type: ignore[override]
        # Field-level detail is safe to show: it only echoes the input shape.
        return f"{self.field}: {self.message}"


class AIBackendError(FlowError):
    """The AI completion call failed (timeout, bad status, malformed body)."""

    status_code = 502
    safe_message = "AI backend unavailable"


class GenerationFailed(FlowError):
    """Neither the AI nor the template generator produced content."""

    status_code = 503
    safe_message = "Generation failed, please try again"


class ArtifactNotFound(FlowError):
    """The artifact handle is unknown or its TTL has elapsed."""

    status_code = 404
    safe_message = "Not found or expired, please regenerate"

    def __init__(self, handle: str) -> None:
        super().__init__(f"Artifact not found or expired: {handle!r}")
        self.handle = handle
