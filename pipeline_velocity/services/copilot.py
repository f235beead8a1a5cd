"""
Insight Orchestrator - grounded generation over a VelocityFactPack.

Flow for generate_ai_insights():
1. Build the system instruction (grounding contract and JSON output shape)
   and the user payload (the whole fact pack as JSON)
2. Send one request to the generation provider (task "velocity_copilot")
3. Extract the first balanced JSON object from the reply and decode it
4. Validate each candidate insight field by field, dropping non-conforming
   entries
5. Validate every kept insight's citations against the fact pack and attach
   the result to the response

Nothing in this module raises on provider or parse failure: the response
carries an error string and an empty insight list, and callers decide
whether to fall back to the deterministic generator.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from pipeline_velocity.models.enums import MessageChannel, RecipientRole, Severity
from pipeline_velocity.models.schemas import (
    CitationValidationResult,
    CopilotInsight,
    CopilotResponse,
    DeepLinkParams,
    DraftMessage,
    ProviderMessage,
    ProviderRequest,
    VelocityFactPack,
)
from pipeline_velocity.services.citations import validate_citations
from pipeline_velocity.services.deterministic_insights import generate_deterministic_draft_message
from pipeline_velocity.services.generation_provider import GenerationProvider, GenerationProviderError
from pipeline_velocity.services.redaction import redact_text

logger = logging.getLogger(__name__)


INSIGHTS_TASK = "velocity_copilot"
DRAFT_TASK = "velocity_copilot_draft"
DEFAULT_WHY_NOW = "Analysis based on current data."
MAX_RECOMMENDED_ACTIONS = 3


# =============================================================================
# Prompts
# =============================================================================


def build_system_prompt() -> str:
    return """You are a recruiting analytics copilot. Your job is to analyze velocity metrics and generate actionable insights.

CRITICAL RULES:
1. ONLY use data from the VelocityFactPack provided. Do NOT invent or assume any numbers.
2. Every insight MUST include citations to exact fact paths (e.g., "kpis.median_ttf_days", "sample_sizes.total_offers").
3. If data is missing or unavailable, say "Not available" and cite the missing field.
4. Keep claims to 1 sentence. Keep why_now to 1 sentence.
5. Provide 1-3 actionable recommended steps per insight.
6. Never include candidate names, emails, or any PII.
7. Prioritize severity correctly: P0 for blocking issues, P1 for risks, P2 for optimizations.

OUTPUT FORMAT (JSON):
{
  "insights": [
    {
      "title": "Short title",
      "severity": "P0|P1|P2",
      "claim": "One sentence describing the finding.",
      "why_now": "One sentence explaining urgency or relevance.",
      "recommended_actions": ["Action 1", "Action 2"],
      "citations": ["kpis.median_ttf_days", "sample_sizes.total_offers"]
    }
  ]
}

Generate 3-7 insights maximum, focusing on the most impactful findings."""


def build_user_prompt(fact_pack: VelocityFactPack) -> str:
    payload = json.dumps(fact_pack.to_citable_dict(), indent=2)
    return (
        "Analyze this VelocityFactPack and generate insights:\n\n"
        f"{payload}\n\n"
        "Generate insights based ONLY on the data above. Include citations for every claim."
    )


# =============================================================================
# Response Parsing
# =============================================================================


def extract_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} substring of text.

    Braces inside JSON string literals (including escaped quotes) are ignored.
    An opening brace that is never closed is skipped and the scan resumes
    after it.
    """
    if not text:
        return None

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        start = text.find("{", start + 1)
    return None


def _coerce_insight(raw: Any, index: int) -> Optional[CopilotInsight]:
    """Field-by-field validation of one generated insight, None when it does not conform."""
    if not isinstance(raw, dict):
        return None

    title = raw.get("title")
    claim = raw.get("claim")
    severity = raw.get("severity")
    citations = raw.get("citations")

    if not isinstance(title, str) or not title.strip():
        return None
    if not isinstance(claim, str) or not claim.strip():
        return None
    if severity not in {s.value for s in Severity}:
        return None
    if not isinstance(citations, list) or not citations:
        return None
    if not all(isinstance(c, str) and c for c in citations):
        return None

    why_now = raw.get("why_now")
    if not isinstance(why_now, str) or not why_now.strip():
        why_now = DEFAULT_WHY_NOW

    actions = raw.get("recommended_actions")
    if not isinstance(actions, list):
        actions = []
    actions = [redact_text(a) for a in actions if isinstance(a, str) and a.strip()][:MAX_RECOMMENDED_ACTIONS]

    return CopilotInsight(
        id=f"ai_insight_{index}",
        title=redact_text(title.strip()),
        severity=Severity(severity),
        claim=redact_text(claim.strip()),
        why_now=redact_text(why_now.strip()),
        recommended_actions=actions,
        citations=list(citations),
        deep_link_params=DeepLinkParams(insight_type="ai_generated", metric_key=citations[0]),
    )


def parse_ai_response(
    content: str,
    fact_pack: VelocityFactPack,
) -> Tuple[List[CopilotInsight], CitationValidationResult, List[str]]:
    """
    Decode a provider reply into validated insights.

    Args:
        content: Raw completion text
        fact_pack: Fact pack the reply must be grounded in

    Returns:
        (insights, aggregate citation validation, per-insight warnings)
    """
    json_text = extract_json_object(content)
    if json_text is None:
        return [], CitationValidationResult(
            valid=False, missing_citations=True, error="No JSON found in response"
        ), []

    try:
        parsed = json.loads(json_text)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError is a ValueError; very deep nesting raises RecursionError
        logger.info(f"Discarding undecodable provider reply: {e}")
        return [], CitationValidationResult(
            valid=False, missing_citations=True, error=f"Failed to parse AI response: {e}"
        ), []

    raw_insights = parsed.get("insights") if isinstance(parsed, dict) else None
    if not isinstance(raw_insights, list):
        raw_insights = []

    decoded = fact_pack.to_citable_dict()
    insights: List[CopilotInsight] = []
    invalid: List[str] = []
    warnings: List[str] = []

    for index, raw in enumerate(raw_insights):
        insight = _coerce_insight(raw, index)
        if insight is None:
            logger.info(f"Dropped non-conforming generated insight at position {index}")
            continue

        result = validate_citations(insight.citations, decoded)
        if not result.valid:
            invalid.extend(result.invalid_citations)
            warnings.append(
                f"{insight.id} cites fields not in the fact pack: {', '.join(result.invalid_citations)}"
            )
        insights.append(insight)

    validation = CitationValidationResult(
        valid=not invalid and bool(insights),
        invalid_citations=invalid,
        missing_citations=not insights,
        error="No valid insights in response" if not insights else None,
    )
    return insights, validation, warnings


# =============================================================================
# Orchestration
# =============================================================================


def _error_response(provider: GenerationProvider, started: float, error: str) -> CopilotResponse:
    return CopilotResponse(
        insights=[],
        model_used=provider.model,
        generated_at=datetime.now(timezone.utc),
        latency_ms=int((time.monotonic() - started) * 1000),
        error=error,
    )


async def generate_ai_insights(
    fact_pack: VelocityFactPack,
    provider: GenerationProvider,
) -> CopilotResponse:
    """
    Generate citation-validated insights from the fact pack.

    Never raises: provider errors, transport failures, timeouts and decode
    failures come back as an empty insight list with an error string.
    """
    started = time.monotonic()
    request = ProviderRequest(
        system_prompt=build_system_prompt(),
        messages=[ProviderMessage(role="user", content=build_user_prompt(fact_pack))],
        task_type=INSIGHTS_TASK,
    )

    try:
        response = await provider.complete(request)
    except GenerationProviderError as e:
        logger.error(f"Generation provider failed ({e.code}): {e}")
        return _error_response(provider, started, str(e))
    except Exception as e:
        logger.exception("Unexpected error calling generation provider")
        return _error_response(provider, started, f"Unexpected provider error: {e}")

    if response.error is not None:
        logger.error(f"Generation provider returned error {response.error.code}: {response.error.message}")
        return _error_response(provider, started, response.error.message)

    insights, validation, warnings = parse_ai_response(response.content, fact_pack)
    logger.info(
        f"Generated {len(insights)} insights, citations valid={validation.valid}, "
        f"{len(validation.invalid_citations)} invalid"
    )

    return CopilotResponse(
        insights=insights,
        model_used=response.model or provider.model,
        generated_at=datetime.now(timezone.utc),
        latency_ms=response.latency_ms or int((time.monotonic() - started) * 1000),
        tokens_used=response.usage.total_tokens,
        error=validation.error if not insights else None,
        validation=validation,
        warnings=warnings,
    )


async def generate_draft_message(
    insight: CopilotInsight,
    recipient_role: RecipientRole,
    channel: MessageChannel,
    provider: Optional[GenerationProvider] = None,
) -> DraftMessage:
    """
    Draft a message to the insight's action owner.

    Uses the provider when one is given and falls back to the deterministic
    template when it is absent or fails. Output is always PII-scrubbed.
    """
    if provider is None:
        return generate_deterministic_draft_message(insight, recipient_role, channel)

    system_prompt = (
        f"You are drafting a professional {channel.value} message to a {recipient_role.value}.\n"
        "Keep it brief, actionable, and friendly. Do NOT include any candidate names or PII.\n"
        "Focus on the action needed, not the analysis."
    )
    user_prompt = (
        f"Draft a {channel.value} message about this insight:\n\n"
        f"Title: {insight.title}\n"
        f"Issue: {insight.claim}\n"
        f"Urgency: {insight.why_now}\n"
        f"Suggested Actions: {', '.join(insight.recommended_actions)}\n\n"
        "Keep it under 100 words for Slack, 150 for email."
    )
    request = ProviderRequest(
        system_prompt=system_prompt,
        messages=[ProviderMessage(role="user", content=user_prompt)],
        task_type=DRAFT_TASK,
    )

    try:
        response = await provider.complete(request)
    except GenerationProviderError as e:
        logger.error(f"Draft generation failed ({e.code}): {e}")
        return generate_deterministic_draft_message(insight, recipient_role, channel)
    except Exception:
        logger.exception("Unexpected error drafting message; using template")
        return generate_deterministic_draft_message(insight, recipient_role, channel)

    if response.error is not None or not response.content.strip():
        logger.error("Draft generation returned no content; using template")
        return generate_deterministic_draft_message(insight, recipient_role, channel)

    return DraftMessage(
        channel=channel,
        recipient_role=recipient_role,
        subject=f"Action needed: {insight.title}" if channel == MessageChannel.EMAIL else None,
        body=redact_text(response.content.strip()),
        insight_context=redact_text(f"{insight.title}: {insight.claim}"),
    )
