"""AI generation: the Anthropic Messages backend and the generator on top of it.

``AnthropicBackend`` is the only code that talks to the network.  Every
failure mode (timeout, transport error, non-2xx status, malformed body)
surfaces as ``AIBackendError`` so the dispatcher has one thing to catch.

``AIGenerator`` renders the flow's prompt, calls the backend, and wraps
the returned text as ``GeneratedContent`` with the flow's title.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from relocation_flows.constants import (
    AI_API_URL,
    AI_API_VERSION,
    AI_MAX_TOKENS,
    AI_MODEL,
    AI_TIMEOUT_SECONDS,
)
from relocation_flows.errors import AIBackendError
from relocation_flows.interfaces import CompletionBackend, ContentGenerator
from relocation_flows.models.artifact import ContentSection, GeneratedContent
from relocation_flows.models.conversation import Answer, GenerationRequest
from relocation_flows.models.flow import FlowCategory, FlowType
from relocation_flows.prompt import PromptManager
from relocation_flows.registry import QuestionSetRegistry
from relocation_flows.store import Clock, utcnow

logger = logging.getLogger(__name__)

# --- Titles ---
DOCUMENT_LABELS: dict[FlowType, str] = {
    FlowType.COVER_LETTER: "Visa Cover Letter",
    FlowType.FINANCIAL_STATEMENT: "Financial Resources Statement",
    FlowType.ATTESTATION: "Attestation on Honor",
    FlowType.ACCOMMODATION_LETTER: "Accommodation Letter",
}

GUIDE_TITLES: dict[FlowType, tuple[str, str]] = {
    # flow -> (title, subtitle prefix)
    FlowType.PET_RELOCATION: ("Pet Relocation Guide to France", "Personalized for"),
    FlowType.FRENCH_MORTGAGES: ("French Mortgage Evaluation Guide", "Prepared for"),
    FlowType.APOSTILLE: ("Apostille Guide", "Customized for"),
    FlowType.BANK_RATINGS: ("French Bank Comparison Guide", "Recommendations for"),
}


class AnthropicBackend(CompletionBackend):
    """Anthropic Messages API over ``httpx``.

    Args:
        api_key: credential; an empty key means "not configured"
        model: model id sent with every request
        api_url: endpoint (overridable for proxies and tests)
        transport: optional ``httpx`` transport, e.g. ``httpx.MockTransport``
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = AI_MODEL,
        api_url: str = AI_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._model = model
        self._api_url = api_url
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int = AI_MAX_TOKENS,
        timeout: float = AI_TIMEOUT_SECONDS,
    ) -> str:
        if not self.is_configured():
            raise AIBackendError("AI backend is not configured")

        headers = {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": AI_API_VERSION,
        }
        payload = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(self._api_url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise AIBackendError(f"AI request timed out after {timeout:.0f}s") from exc
        except httpx.HTTPError as exc:
            raise AIBackendError(f"AI request failed: {exc}") from exc

        data = self._json_body(response)
        if not response.is_success:
            message = _error_message(data) or f"API request failed with status {response.status_code}"
            raise AIBackendError(message)

        try:
            text = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise AIBackendError("Invalid API response") from None
        if not isinstance(text, str) or not text.strip():
            raise AIBackendError("Invalid API response")
        return text

    @staticmethod
    def _json_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None


def _error_message(data: Any) -> str | None:
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        message = data["error"].get("message")
        if isinstance(message, str) and message:
            return message
    return None


class AIGenerator(ContentGenerator):
    """Prompt → completion → ``GeneratedContent``.

    Args:
        backend: completion backend; availability follows ``is_configured``
        registry: for consulate addresses and visa labels
        prompts: prompt renderer; the packaged templates if omitted
        clock: current time, used for the date in guide prompts
    """

    def __init__(
        self,
        backend: CompletionBackend,
        registry: QuestionSetRegistry,
        prompts: PromptManager | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._prompts = prompts or PromptManager()
        self._clock = clock or utcnow

    def is_available(self) -> bool:
        return self._backend.is_configured()

    async def generate(self, request: GenerationRequest) -> GeneratedContent:
        full_name = legal_full_name(request.profile, request.identity)
        user_name = _first_of(
            request.profile.get("first_name"), request.identity,
            request.profile.get("display_name"), "Member",
        )
        answers = request.answers

        prompt = self._prompts.render_generation(
            request,
            full_name=full_name,
            user_name=user_name,
            current_date=self._clock().strftime("%B %d, %Y"),
            consulate=self._registry.consulate_address(_scalar(answers.get("consulate"))),
            visa_type=self._registry.visa_label(_scalar(answers.get("visa_type"))),
        )
        logger.debug("AI prompt for %s: %d chars", request.flow_type.value, len(prompt))

        text = await self._backend.complete(
            prompt, max_tokens=AI_MAX_TOKENS, timeout=AI_TIMEOUT_SECONDS,
        )

        if request.flow_type.category is FlowCategory.DOCUMENT:
            title = f"{full_name} - {DOCUMENT_LABELS[request.flow_type]}"
            subtitle = None
        else:
            guide_title, prefix = GUIDE_TITLES[request.flow_type]
            title = guide_title
            subtitle = f"{prefix} {user_name}"

        return GeneratedContent(
            title=title,
            subtitle=subtitle,
            sections=[ContentSection(body=text.strip())],
            ai_generated=True,
        )


def legal_full_name(profile: dict[str, Any], identity: str = "") -> str:
    """Legal first/middle/last name from the profile, else the display name.

    Empty parts (commonly the middle name) are skipped.
    """
    parts = [
        str(profile.get(field) or "").strip()
        for field in ("legal_first_name", "legal_middle_name", "legal_last_name")
    ]
    full = " ".join(p for p in parts if p)
    return full or _first_of(identity, profile.get("display_name"), "Member")


def _first_of(*candidates: Any) -> str:
    for c in candidates:
        if c and str(c).strip():
            return str(c).strip()
    return ""


def _scalar(value: Answer | None) -> str | None:
    if isinstance(value, list):
        return value[0] if value else None
    return value
