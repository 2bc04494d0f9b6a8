"""relocation_flows — conversational form engine for member relocation tools.

Public API:
    FlowService          — boundary operations (start, answer, download, clear)
    ConversationMachine  — stateless step function over a flow's questions
    QuestionSetRegistry  — loads YAML question sets into typed models
    ConditionEvaluator   — question visibility (OR across condition keys)
    GenerationDispatcher — AI-first generation with template fallback
    ArtifactStore        — handle-addressed previews with lazy expiry
    IdempotencyCache     — bounded-lifetime dedup keys
    DocumentRenderer     — HTML / Word-compatible download rendering

Generation collaborators:
    CompletionBackend / ContentGenerator — ABCs
    AnthropicBackend, AIGenerator        — AI path
    TemplateGenerator                    — deterministic fallback
    PromptManager                        — Jinja2 prompt templates

Step models:
    Turn              — step: show the next question
    GenerationOutcome — step: content was generated and stored
    StepResult        — union of both
"""

from relocation_flows.ai import AIGenerator, AnthropicBackend
from relocation_flows.conversation import ConversationMachine
from relocation_flows.dispatcher import GenerationDispatcher
from relocation_flows.errors import (
    AIBackendError,
    ArtifactNotFound,
    FlowError,
    GenerationFailed,
    Unauthenticated,
    UnknownFlow,
    ValidationError,
)
from relocation_flows.evaluator import ConditionEvaluator
from relocation_flows.interfaces import CompletionBackend, ContentGenerator
from relocation_flows.models import (
    Artifact,
    ConversationContext,
    DownloadFormat,
    DownloadLink,
    FlowCategory,
    FlowSummary,
    FlowType,
    GenerationOutcome,
    GenerationRequest,
    SavedDocument,
    StepResult,
    Turn,
)
from relocation_flows.prompt import PromptManager
from relocation_flows.registry import QuestionSetRegistry
from relocation_flows.render import DocumentRenderer, RenderedFile
from relocation_flows.service import FlowService
from relocation_flows.store import ArtifactStore, IdempotencyCache
from relocation_flows.templates import TemplateGenerator

__all__ = [
    # Boundary & core
    "FlowService",
    "ConversationMachine",
    "QuestionSetRegistry",
    "ConditionEvaluator",
    "GenerationDispatcher",
    "ArtifactStore",
    "IdempotencyCache",
    "DocumentRenderer",
    "RenderedFile",
    # Generation
    "CompletionBackend",
    "ContentGenerator",
    "AnthropicBackend",
    "AIGenerator",
    "TemplateGenerator",
    "PromptManager",
    # Models
    "Artifact",
    "ConversationContext",
    "DownloadFormat",
    "DownloadLink",
    "FlowCategory",
    "FlowSummary",
    "FlowType",
    "GenerationOutcome",
    "GenerationRequest",
    "SavedDocument",
    "StepResult",
    "Turn",
    # Errors
    "FlowError",
    "UnknownFlow",
    "Unauthenticated",
    "ValidationError",
    "AIBackendError",
    "GenerationFailed",
    "ArtifactNotFound",
]
