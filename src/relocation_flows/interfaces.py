"""Abstract interfaces for generation collaborators.

These ABCs define the contract the dispatcher relies on.  The SDK ships
concrete implementations (``ai.AnthropicBackend``, ``ai.AIGenerator``,
``templates.TemplateGenerator``); tests and alternative deployments can
swap in their own.

Typical integration flow::

    backend = AnthropicBackend(api_key=...)
    ai = AIGenerator(backend, registry, prompts)
    fallback = TemplateGenerator(registry)
    dispatcher = GenerationDispatcher(ai, fallback, artifacts, idempotency)

    outcome = await dispatcher.generate(db, request, subject_id="42")
"""

from abc import ABC, abstractmethod

from relocation_flows.models.artifact import GeneratedContent
from relocation_flows.models.conversation import GenerationRequest


class CompletionBackend(ABC):
    """Interface for a third-party text-completion service."""

    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials are present and calls may be attempted."""
        ...

    @abstractmethod
    async def complete(self, prompt: str, *, max_tokens: int, timeout: float) -> str:
        """Return the completion text for *prompt*.

        Implementations must raise ``AIBackendError`` for every failure
        mode (timeout, transport error, non-success status, malformed
        body) so the dispatcher has a single recovery path.
        """
        ...


class ContentGenerator(ABC):
    """Interface for anything that turns answers into structured content."""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GeneratedContent:
        """Build content for a completed conversation.

        Parameters
        ----------
        request:
            The flow type, the collected answers, the member's profile and
            the display name to address them by.

        Returns
        -------
        GeneratedContent
            Title, optional subtitle, and body sections.
        """
        ...

    def is_available(self) -> bool:
        """Whether this generator should be tried at all."""
        return True
