"""
Tests for the insight orchestrator: JSON extraction, field validation,
citation checks, failure handling and draft messages.

The generation provider is replaced by conftest.FakeProvider.
"""

import json

import httpx
import pytest

from pipeline_velocity.models.enums import MessageChannel, ProviderKind, RecipientRole, Severity
from pipeline_velocity.models.schemas import CopilotInsight, ProviderErrorInfo
from pipeline_velocity.services.copilot import (
    DEFAULT_WHY_NOW,
    DRAFT_TASK,
    INSIGHTS_TASK,
    build_system_prompt,
    build_user_prompt,
    extract_json_object,
    generate_ai_insights,
    generate_draft_message,
    parse_ai_response,
)
from pipeline_velocity.services.generation_provider import GenerationProviderError, HttpGenerationProvider
from pipeline_velocity.tests.conftest import FakeProvider


def _reply(*insights) -> str:
    return json.dumps({"insights": list(insights)})


GOOD = {
    "title": "Time to fill is healthy",
    "severity": "P2",
    "claim": "Median time-to-fill is 34 days.",
    "why_now": "Within the 45 day target.",
    "recommended_actions": ["Keep current cadence"],
    "citations": ["kpis.median_ttf_days", "sample_sizes.total_filled"],
}

BAD_CITATION = {
    "title": "Made up metric",
    "severity": "P1",
    "claim": "Something nobody measured.",
    "why_now": "Because.",
    "recommended_actions": ["Do a thing"],
    "citations": ["kpis.nonexistent_metric"],
}


# =============================================================================
# JSON Extraction
# =============================================================================


class TestExtractJsonObject:

    @pytest.mark.parametrize("text", ["", "no braces here", "only } closing"])
    def test_nothing_to_extract(self, text: str) -> None:
        assert extract_json_object(text) is None

    def test_surrounding_prose_and_fences(self) -> None:
        text = 'Here you go:\n```json\n{"insights": []}\n```\nLet me know!'
        assert extract_json_object(text) == '{"insights": []}'

    def test_first_object_wins(self) -> None:
        assert extract_json_object('{"a": {"b": 1}} {"c": 2}') == '{"a": {"b": 1}}'

    def test_braces_inside_strings(self) -> None:
        text = 'prefix {"a": "}{", "b": "say \\"}\\" now"} suffix'
        assert extract_json_object(text) == '{"a": "}{", "b": "say \\"}\\" now"}'

    def test_unclosed_brace_is_skipped(self) -> None:
        assert extract_json_object('{ oops {"a": 1}') == '{"a": 1}'


# =============================================================================
# Prompts
# =============================================================================


class TestPrompts:

    def test_system_prompt_states_grounding_rules(self) -> None:
        prompt = build_system_prompt()
        assert prompt.startswith("You are a recruiting analytics copilot.")
        assert "ONLY use data from the VelocityFactPack provided" in prompt
        assert '"citations"' in prompt

    def test_user_prompt_embeds_the_whole_pack(self, rich_fact_pack) -> None:
        prompt = build_user_prompt(rich_fact_pack)
        assert json.dumps(rich_fact_pack.to_citable_dict(), indent=2) in prompt
        assert prompt.endswith("Include citations for every claim.")


# =============================================================================
# Response Parsing
# =============================================================================


class TestParseAiResponse:

    def test_valid_insight(self, rich_fact_pack) -> None:
        insights, validation, warnings = parse_ai_response(_reply(GOOD), rich_fact_pack)

        assert len(insights) == 1
        insight = insights[0]
        assert insight.id == "ai_insight_0"
        assert insight.severity == Severity.P2
        assert insight.deep_link_params.insight_type == "ai_generated"
        assert insight.deep_link_params.metric_key == "kpis.median_ttf_days"
        assert validation.valid is True
        assert warnings == []

    def test_invalid_citations_are_kept_with_warning(self, rich_fact_pack) -> None:
        insights, validation, warnings = parse_ai_response(_reply(GOOD, BAD_CITATION), rich_fact_pack)

        assert [i.id for i in insights] == ["ai_insight_0", "ai_insight_1"]
        assert validation.valid is False
        assert validation.invalid_citations == ["kpis.nonexistent_metric"]
        assert validation.error is None
        assert warnings == ["ai_insight_1 cites fields not in the fact pack: kpis.nonexistent_metric"]

    @pytest.mark.parametrize(
        "broken",
        [
            {**GOOD, "citations": []},
            {**GOOD, "citations": None},
            {**GOOD, "citations": ["kpis.median_ttf_days", ""]},
            {**GOOD, "severity": "P9"},
            {**GOOD, "title": "   "},
            {k: v for k, v in GOOD.items() if k != "claim"},
            "not an object",
        ],
    )
    def test_non_conforming_insights_are_dropped(self, rich_fact_pack, broken) -> None:
        insights, validation, _ = parse_ai_response(_reply(broken, GOOD), rich_fact_pack)
        assert [i.id for i in insights] == ["ai_insight_1"]
        assert validation.valid is True

    def test_optional_fields_are_normalized(self, rich_fact_pack) -> None:
        raw = {
            **GOOD,
            "why_now": "",
            "recommended_actions": ["one", "", 5, "two", "three", "four"],
        }
        [insight], _, _ = parse_ai_response(_reply(raw), rich_fact_pack)
        assert insight.why_now == DEFAULT_WHY_NOW
        assert insight.recommended_actions == ["one", "two", "three"]

    def test_personal_data_is_scrubbed(self, rich_fact_pack) -> None:
        raw = {**GOOD, "claim": "Ask zelda.quixote@example.com about 415-555-0134."}
        [insight], _, _ = parse_ai_response(_reply(raw), rich_fact_pack)
        assert insight.claim == "Ask [REDACTED] about [REDACTED]."

    def test_no_json(self, rich_fact_pack) -> None:
        insights, validation, _ = parse_ai_response("I could not find anything.", rich_fact_pack)
        assert insights == []
        assert validation.missing_citations is True
        assert validation.error == "No JSON found in response"

    def test_undecodable_json(self, rich_fact_pack) -> None:
        insights, validation, _ = parse_ai_response('{"insights": [oops]}', rich_fact_pack)
        assert insights == []
        assert validation.error.startswith("Failed to parse AI response:")

    def test_deeply_nested_json(self, rich_fact_pack) -> None:
        content = '{"insights": ' + "[" * 100000 + "]" * 100000 + "}"
        insights, validation, _ = parse_ai_response(content, rich_fact_pack)
        assert insights == []
        assert validation.missing_citations is True
        assert validation.error.startswith("Failed to parse AI response:")

    @pytest.mark.parametrize("content", ['{"insights": "none"}', '{"other": []}', '{"insights": []}'])
    def test_no_usable_insights(self, rich_fact_pack, content: str) -> None:
        insights, validation, _ = parse_ai_response(content, rich_fact_pack)
        assert insights == []
        assert validation.valid is False
        assert validation.error == "No valid insights in response"

    def test_gated_block_citation_depends_on_pack(self, rich_fact_pack, sparse_fact_pack) -> None:
        raw = {**GOOD, "citations": ["cohort_comparison.gating_reason"]}
        _, rich_validation, _ = parse_ai_response(_reply(raw), rich_fact_pack)
        _, sparse_validation, _ = parse_ai_response(_reply(raw), sparse_fact_pack)
        assert rich_validation.valid is False
        assert sparse_validation.valid is True


# =============================================================================
# Orchestration
# =============================================================================


class TestGenerateAiInsights:

    @pytest.mark.asyncio
    async def test_success(self, rich_fact_pack) -> None:
        provider = FakeProvider(content=f"Sure!\n{_reply(GOOD, BAD_CITATION)}")
        response = await generate_ai_insights(rich_fact_pack, provider)

        assert len(response.insights) == 2
        assert response.model_used == "fake-model"
        assert response.tokens_used == 42
        assert response.latency_ms == 250
        assert response.error is None
        assert response.validation.valid is False
        assert len(response.warnings) == 1

    @pytest.mark.asyncio
    async def test_request_contents(self, rich_fact_pack) -> None:
        provider = FakeProvider(content=_reply(GOOD))
        await generate_ai_insights(rich_fact_pack, provider)

        [request] = provider.requests
        assert request.task_type == INSIGHTS_TASK
        assert request.system_prompt == build_system_prompt()
        assert request.messages[0].role == "user"
        assert request.messages[0].content == build_user_prompt(rich_fact_pack)

    @pytest.mark.asyncio
    async def test_provider_error_is_reported(self, rich_fact_pack) -> None:
        provider = FakeProvider(raises=GenerationProviderError("Request timed out", code="timeout"))
        response = await generate_ai_insights(rich_fact_pack, provider)
        assert response.insights == []
        assert response.error == "Request timed out"
        assert response.model_used == "fake-model"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_reported(self, rich_fact_pack) -> None:
        provider = FakeProvider(raises=RuntimeError("kaput"))
        response = await generate_ai_insights(rich_fact_pack, provider)
        assert response.insights == []
        assert response.error == "Unexpected provider error: kaput"

    @pytest.mark.asyncio
    async def test_error_payload_is_reported(self, rich_fact_pack) -> None:
        provider = FakeProvider(error=ProviderErrorInfo(code="rate_limited", message="Slow down"))
        response = await generate_ai_insights(rich_fact_pack, provider)
        assert response.insights == []
        assert response.error == "Slow down"

    @pytest.mark.asyncio
    async def test_unparseable_reply(self, rich_fact_pack) -> None:
        response = await generate_ai_insights(rich_fact_pack, FakeProvider(content="no json at all"))
        assert response.insights == []
        assert response.error == "No JSON found in response"
        assert response.validation.missing_citations is True

    @pytest.mark.asyncio
    async def test_deeply_nested_reply_is_reported(self, rich_fact_pack) -> None:
        provider = FakeProvider(content='{"insights": ' + "[" * 100000 + "]" * 100000 + "}")
        response = await generate_ai_insights(rich_fact_pack, provider)
        assert response.insights == []
        assert response.error.startswith("Failed to parse AI response:")

    @pytest.mark.asyncio
    async def test_http_failure_through_real_client(self, rich_fact_pack) -> None:
        provider = HttpGenerationProvider(
            kind=ProviderKind.OPENAI,
            api_key="k",
            model="gpt-test",
            transport=httpx.MockTransport(lambda r: httpx.Response(503)),
        )
        response = await generate_ai_insights(rich_fact_pack, provider)
        assert response.insights == []
        assert response.error == "HTTP error from openai: 503"
        assert response.model_used == "gpt-test"


# =============================================================================
# Draft Messages
# =============================================================================


INSIGHT = CopilotInsight(
    id="det_zombie",
    title="Zombie Requisitions",
    severity=Severity.P0,
    claim="1 reqs have had no activity for 30+ days.",
    why_now="Zombie reqs waste resources and distort metrics.",
    recommended_actions=["Review each zombie req for viability", "Close or reassign stale reqs"],
    citations=["contributing_reqs.zombie_req_ids"],
)


class TestGenerateDraftMessage:

    @pytest.mark.asyncio
    async def test_template_without_provider(self) -> None:
        draft = await generate_draft_message(INSIGHT, RecipientRole.RECRUITER, MessageChannel.SLACK)
        assert draft.body.startswith("Hi! Quick note on zombie requisitions:")

    @pytest.mark.asyncio
    async def test_generated_body_is_scrubbed(self) -> None:
        provider = FakeProvider(content="  Please review REQ-Z01. Questions? Ping bart.xenakis@example.org  ")
        draft = await generate_draft_message(
            INSIGHT, RecipientRole.HIRING_MANAGER, MessageChannel.EMAIL, provider
        )
        assert draft.body == "Please review REQ-Z01. Questions? Ping [REDACTED]"
        assert draft.subject == "Action needed: Zombie Requisitions"

        [request] = provider.requests
        assert request.task_type == DRAFT_TASK
        assert "professional email message to a Hiring Manager" in request.system_prompt
        assert "Suggested Actions: Review each zombie req for viability, Close or reassign stale reqs" in (
            request.messages[0].content
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "provider",
        [
            FakeProvider(raises=GenerationProviderError("down", code="transport_error")),
            FakeProvider(raises=RuntimeError("boom")),
            FakeProvider(error=ProviderErrorInfo(code="http_error", message="500")),
            FakeProvider(content="   "),
        ],
    )
    async def test_falls_back_to_template(self, provider: FakeProvider) -> None:
        draft = await generate_draft_message(INSIGHT, RecipientRole.TA_OPS, MessageChannel.SLACK, provider)
        assert draft.body.startswith("Hi! Quick note on zombie requisitions:")
        assert draft.subject is None
