"""AnthropicBackend and AIGenerator tests over ``httpx.MockTransport``.

No network: every request is answered by a handler function that can
inspect what was sent.
"""

import json

import httpx
import pytest

from relocation_flows.ai import AIGenerator, AnthropicBackend, legal_full_name
from relocation_flows.errors import AIBackendError
from relocation_flows.models.conversation import GenerationRequest
from relocation_flows.models.flow import FlowType
from relocation_flows.prompt import PromptManager

from test_store import FakeClock


def _ok(text):
    return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})


def _backend(handler, api_key="sk-test"):
    return AnthropicBackend(api_key, transport=httpx.MockTransport(handler))


# =====================================================================
# Backend
# =====================================================================


class TestAnthropicBackend:

    def test_configured_flag(self):
        assert AnthropicBackend("sk-test").is_configured() is True
        assert AnthropicBackend("").is_configured() is False
        assert AnthropicBackend("   ").is_configured() is False
        assert AnthropicBackend(None).is_configured() is False

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return _ok("Dear Consul,")

        text = await _backend(handler).complete("write it", max_tokens=123, timeout=5)
        assert text == "Dear Consul,"
        assert seen["headers"]["x-api-key"] == "sk-test"
        assert seen["headers"]["anthropic-version"] == "2023-06-01"
        assert seen["body"]["max_tokens"] == 123
        assert seen["body"]["messages"] == [{"role": "user", "content": "write it"}]

    @pytest.mark.asyncio
    async def test_not_configured_raises_without_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(AIBackendError):
            await _backend(handler, api_key="").complete("x")

    @pytest.mark.asyncio
    async def test_error_status_uses_api_message(self):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "invalid x-api-key"}})

        with pytest.raises(AIBackendError, match="invalid x-api-key"):
            await _backend(handler).complete("x")

    @pytest.mark.asyncio
    async def test_error_status_without_body(self):
        def handler(request):
            return httpx.Response(529, text="overloaded")

        with pytest.raises(AIBackendError, match="529"):
            await _backend(handler).complete("x")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {},
        {"content": []},
        {"content": [{"type": "text"}]},
        {"content": [{"type": "text", "text": "   "}]},
        {"content": "nope"},
    ])
    async def test_malformed_body(self, body):
        def handler(request):
            return httpx.Response(200, json=body)

        with pytest.raises(AIBackendError, match="Invalid API response"):
            await _backend(handler).complete("x")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(AIBackendError, match="timed out"):
            await _backend(handler).complete("x", timeout=3)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AIBackendError, match="failed"):
            await _backend(handler).complete("x")


# =====================================================================
# Generator
# =====================================================================


class TestAIGenerator:

    @pytest.fixture
    def prompts(self):
        return []

    @pytest.fixture
    def generator(self, registry, prompts):
        def handler(request):
            prompts.append(json.loads(request.content)["messages"][0]["content"])
            return _ok("**<u>Introduction</u>**\nBonjour.\n")

        return AIGenerator(_backend(handler), registry, PromptManager(), clock=FakeClock())

    @pytest.mark.asyncio
    async def test_document_title_uses_legal_name(self, generator, prompts):
        request = GenerationRequest(
            flow_type=FlowType.COVER_LETTER,
            answers={"visa_type": "talent", "consulate": "boston", "accommodation": "renting"},
            profile={"legal_first_name": "Jane", "legal_last_name": "Doe"},
            identity="JD",
        )
        content = await generator.generate(request)
        assert content.title == "Jane Doe - Visa Cover Letter"
        assert content.subtitle is None
        assert content.ai_generated is True
        assert content.sections[0].body == "**<u>Introduction</u>**\nBonjour."

        prompt = prompts[0]
        assert "Full Legal Name: Jane Doe" in prompt
        assert "Talent Passport Visa" in prompt
        assert "Boston" in prompt

    @pytest.mark.asyncio
    async def test_guide_title_and_subtitle(self, generator, prompts):
        request = GenerationRequest(
            flow_type=FlowType.APOSTILLE,
            answers={"documents_needed": ["birth_cert", "diploma"], "urgency": "asap"},
            profile={"first_name": "Jane"},
        )
        content = await generator.generate(request)
        assert content.title == "Apostille Guide"
        assert content.subtitle == "Customized for Jane"
        assert "birth_cert, diploma" in prompts[0]
        assert "October 01, 2026" in prompts[0]

    @pytest.mark.asyncio
    async def test_every_flow_renders_a_prompt(self, generator, prompts):
        for ft in FlowType:
            await generator.generate(GenerationRequest(flow_type=ft, answers={}))
        assert len(prompts) == len(FlowType)
        assert all(p.strip() for p in prompts)

    def test_availability_follows_backend(self, registry):
        assert AIGenerator(AnthropicBackend(""), registry).is_available() is False
        assert AIGenerator(AnthropicBackend("k"), registry).is_available() is True


class TestLegalFullName:

    def test_skips_empty_middle(self):
        profile = {"legal_first_name": "Jane", "legal_middle_name": "", "legal_last_name": "Doe"}
        assert legal_full_name(profile) == "Jane Doe"

    def test_falls_back_to_identity_then_display_name(self):
        assert legal_full_name({}, "Janie") == "Janie"
        assert legal_full_name({"display_name": "jdoe"}) == "jdoe"
        assert legal_full_name({}) == "Member"
