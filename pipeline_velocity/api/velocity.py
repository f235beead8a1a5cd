"""
FastAPI router module for Pipeline Velocity endpoints.

Every endpoint receives raw pipeline records in the request body and computes
from scratch; nothing is persisted between requests. Thresholds and the
generation provider come from dependencies (see core/dependencies.py).

Endpoints:
- POST /velocity/metrics: decay curves, cohort comparison, velocity insights
- POST /velocity/fact-pack: the redacted VelocityFactPack
- POST /velocity/load-vs-performance: recruiter workload vs time-to-fill
- POST /velocity/insights/deterministic: model-free copilot insights
- POST /velocity/insights/ai: generated, citation-validated insights
- POST /velocity/citations/validate: check citations against a fact pack
- POST /velocity/draft-message: Slack/email draft for an insight
- POST /velocity/action-items: convert insights into action queue entries
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException

from pipeline_velocity.core.config import VelocityThresholds
from pipeline_velocity.core.dependencies import ProviderDep, ThresholdsDep
from pipeline_velocity.models.schemas import (
    ActionItem,
    AIInsightsRequest,
    CitationValidationRequest,
    CitationValidationResult,
    CopilotInsight,
    CopilotResponse,
    DeterministicSummary,
    DraftMessage,
    DraftMessageRequest,
    LoadVsPerformanceResult,
    VelocityDataRequest,
    VelocityFactPack,
    VelocityMetrics,
)
from pipeline_velocity.services.citations import validate_citations
from pipeline_velocity.services.copilot import generate_ai_insights, generate_draft_message
from pipeline_velocity.services.deterministic_insights import (
    generate_deterministic_summary,
    insight_to_action_item,
)
from pipeline_velocity.services.fact_pack import build_velocity_fact_pack
from pipeline_velocity.services.load_performance import analyze_load_vs_performance
from pipeline_velocity.services.velocity_analysis import (
    calculate_velocity_metrics,
    filter_requisitions,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/velocity", tags=["velocity"])

DETERMINISTIC_MODEL = "deterministic"


# =============================================================================
# Helpers
# =============================================================================


def _metrics(request: VelocityDataRequest, thresholds: VelocityThresholds) -> VelocityMetrics:
    return calculate_velocity_metrics(
        candidates=request.candidates,
        requisitions=request.requisitions,
        events=request.events,
        filters=request.filters,
        thresholds=thresholds,
        as_of=request.as_of,
    )


def _fact_pack(request: VelocityDataRequest, thresholds: VelocityThresholds) -> VelocityFactPack:
    return build_velocity_fact_pack(
        metrics=_metrics(request, thresholds),
        requisitions=request.requisitions,
        candidates=request.candidates,
        events=request.events,
        filters=request.filters,
        thresholds=thresholds,
        as_of=request.as_of,
    )


def _deterministic_response(fact_pack: VelocityFactPack, reason: str) -> CopilotResponse:
    summary = generate_deterministic_summary(fact_pack)
    return CopilotResponse(
        insights=summary.insights,
        model_used=DETERMINISTIC_MODEL,
        generated_at=summary.generated_at,
        validation=CitationValidationResult(valid=True),
        warnings=[reason],
    )


# =============================================================================
# Analysis Endpoints
# =============================================================================


@router.post("/metrics", response_model=VelocityMetrics)
async def velocity_metrics(request: VelocityDataRequest, thresholds: ThresholdsDep) -> VelocityMetrics:
    """
    Compute candidate decay, requisition decay, the fast vs slow cohort
    comparison and the deterministic velocity insights.
    """
    return _metrics(request, thresholds)


@router.post("/fact-pack", response_model=VelocityFactPack)
async def velocity_fact_pack(request: VelocityDataRequest, thresholds: ThresholdsDep) -> VelocityFactPack:
    """
    Build the redacted fact pack.

    Optional keys (gating reasons, cohort details, insight follow-ups) are
    omitted from the JSON when absent.
    """
    return _fact_pack(request, thresholds)


@router.post("/load-vs-performance", response_model=LoadVsPerformanceResult)
async def load_vs_performance(
    request: VelocityDataRequest,
    thresholds: ThresholdsDep,
) -> LoadVsPerformanceResult:
    """Relate recruiter workload to time-to-fill for the filtered requisitions."""
    scoped = filter_requisitions(request.requisitions, request.filters)
    return analyze_load_vs_performance(scoped, request.candidates, thresholds)


# =============================================================================
# Insight Endpoints
# =============================================================================


@router.post("/insights/deterministic", response_model=DeterministicSummary)
async def deterministic_insights(
    request: VelocityDataRequest,
    thresholds: ThresholdsDep,
) -> DeterministicSummary:
    """Rule based insights; every citation is valid by construction."""
    return generate_deterministic_summary(_fact_pack(request, thresholds))


@router.post("/insights/ai", response_model=CopilotResponse)
async def ai_insights(
    request: AIInsightsRequest,
    thresholds: ThresholdsDep,
    provider: ProviderDep,
) -> CopilotResponse:
    """
    Generate insights with the configured provider.

    Args:
        request: Pipeline records plus `fallback_to_deterministic`
        thresholds: Gating thresholds
        provider: Generation provider, None when not configured

    Returns:
        CopilotResponse. When generation fails or returns nothing and fallback
        is requested, deterministic insights are returned with the original
        error kept and a warning added.

    Raises:
        HTTPException 503: If no provider is configured and fallback is off
    """
    fact_pack = _fact_pack(request, thresholds)

    if provider is None:
        if request.fallback_to_deterministic:
            return _deterministic_response(
                fact_pack, "Generation provider not configured; showing deterministic insights"
            )
        raise HTTPException(
            status_code=503,
            detail="AI insights are not available: no generation provider is configured",
        )

    response = await generate_ai_insights(fact_pack, provider)

    if not response.insights and request.fallback_to_deterministic:
        logger.info(f"Falling back to deterministic insights: {response.error}")
        fallback = _deterministic_response(
            fact_pack, "Generation failed; showing deterministic insights"
        )
        return fallback.model_copy(update={"error": response.error})

    return response


@router.post("/citations/validate", response_model=CitationValidationResult)
async def validate_citations_endpoint(request: CitationValidationRequest) -> CitationValidationResult:
    """Check that every citation resolves in the supplied fact pack."""
    return validate_citations(request.citations, request.fact_pack)


@router.post("/draft-message", response_model=DraftMessage)
async def draft_message(request: DraftMessageRequest, provider: ProviderDep) -> DraftMessage:
    """
    Draft a Slack or email message about an insight.

    Raises:
        HTTPException 503: If `use_ai` is set and no provider is configured
    """
    if request.use_ai and provider is None:
        raise HTTPException(
            status_code=503,
            detail="AI drafting is not available: no generation provider is configured",
        )
    return await generate_draft_message(
        request.insight,
        request.recipient_role,
        request.channel,
        provider if request.use_ai else None,
    )


@router.post("/action-items", response_model=List[ActionItem])
async def action_items(insights: List[CopilotInsight]) -> List[ActionItem]:
    """Convert insights into action queue entries, one per distinct title."""
    items: List[ActionItem] = []
    seen = set()
    for insight in insights:
        item = insight_to_action_item(insight)
        if item.action_id in seen:
            continue
        seen.add(item.action_id)
        items.append(item)
    return items
