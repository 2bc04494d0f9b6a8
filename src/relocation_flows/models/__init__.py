"""Public model re-exports for relocation_flows.

Consumers should import from ``relocation_flows.models`` rather than
reaching into sub-modules directly.
"""

# --- Flows ---
from relocation_flows.models.flow import FlowCategory, FlowType

# --- Questions ---
from relocation_flows.models.question import (
    Condition,
    InputKind,
    Option,
    Question,
    QuestionSet,
)

# --- Conversation ---
from relocation_flows.models.conversation import (
    Answer,
    ConversationContext,
    GenerationOutcome,
    GenerationRequest,
    StepResult,
    Turn,
)

# --- Artifacts ---
from relocation_flows.models.artifact import (
    Artifact,
    ContentSection,
    DownloadFormat,
    DownloadLink,
    FlowSummary,
    GeneratedContent,
    SavedDocument,
)

__all__ = [
    # Flows
    "FlowCategory",
    "FlowType",
    # Questions
    "Condition",
    "InputKind",
    "Option",
    "Question",
    "QuestionSet",
    # Conversation
    "Answer",
    "ConversationContext",
    "GenerationOutcome",
    "GenerationRequest",
    "StepResult",
    "Turn",
    # Artifacts
    "Artifact",
    "ContentSection",
    "DownloadFormat",
    "DownloadLink",
    "FlowSummary",
    "GeneratedContent",
    "SavedDocument",
]
