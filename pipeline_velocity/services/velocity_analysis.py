"""
Velocity Analysis - decay curves, cohort comparison and narrative insights.

calculate_velocity_metrics() is the entry point used by the fact pack builder
and the API. It narrows requisitions with the metric filters, runs the decay
and cohort engines, and derives deterministic narrative insights from them.

Every narrative insight carries its sample size, an evidence string and a
confidence grade. LOW confidence switches the wording to conditional language
("may drop", "tend to win") so thin samples are never stated as fact.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from pipeline_velocity.core.config import DEFAULT_THRESHOLDS, VelocityThresholds
from pipeline_velocity.models.enums import ConfidenceLevel, ImpactLevel, InsightType
from pipeline_velocity.models.schemas import (
    Candidate,
    CandidateDecayAnalysis,
    CohortComparison,
    MetricFilters,
    PipelineEvent,
    ReqDecayAnalysis,
    Requisition,
    VelocityInsight,
    VelocityMetrics,
    as_utc,
)
from pipeline_velocity.services.cohort_comparison import calculate_cohort_comparison
from pipeline_velocity.services.confidence_gate import confidence_level
from pipeline_velocity.services.decay_curves import calculate_candidate_decay, calculate_req_decay
from pipeline_velocity.services.stats import round_half_up

logger = logging.getLogger(__name__)


SLOW_REQ_BUCKET_MIN_DAYS = 91
REFERRAL_GAP_PERCENT = 15


# =============================================================================
# Filtering
# =============================================================================


def filter_requisitions(
    requisitions: Sequence[Requisition],
    filters: Optional[MetricFilters],
) -> List[Requisition]:
    """
    Apply recruiter, function, job family, level and hiring manager filters.

    An empty list for a dimension means no filter on that dimension.
    """
    if filters is None:
        return list(requisitions)

    def keep(r: Requisition) -> bool:
        if filters.recruiter_ids and r.recruiter_id not in filters.recruiter_ids:
            return False
        if filters.functions and r.function not in filters.functions:
            return False
        if filters.job_families and (r.job_family or "") not in filters.job_families:
            return False
        if filters.levels and (r.level or "") not in filters.levels:
            return False
        if filters.hiring_manager_ids and r.hiring_manager_id not in filters.hiring_manager_ids:
            return False
        return True

    return [r for r in requisitions if keep(r)]


# =============================================================================
# Narrative Insights
# =============================================================================


def _percent(rate: float) -> int:
    return round_half_up(rate * 100)


def _differentiator_copy(factor_name: str) -> Tuple[str, str]:
    """(action, next_step) for the top differentiating factor."""
    if "Referral" in factor_name:
        return "Increase referral pipeline", "Launch a referral campaign for hard-to-fill roles."
    if "HM" in factor_name:
        return "Coach HMs on faster feedback", "Set SLA expectations with HMs for feedback turnaround."
    if "Interview" in factor_name:
        return "Streamline interview process", "Audit interview loops for unnecessary stages."
    return "Monitor this metric", "Track this metric over time to validate correlation."


def _decay_insights(
    candidate_decay: CandidateDecayAnalysis,
    req_decay: ReqDecayAnalysis,
    thresholds: VelocityThresholds,
) -> List[VelocityInsight]:
    insights: List[VelocityInsight] = []

    offer_confidence = confidence_level(candidate_decay.total_offers, thresholds.min_offers_for_decay)
    req_confidence = confidence_level(req_decay.total_reqs, thresholds.min_reqs_for_req_decay)
    enough_offers = candidate_decay.total_offers >= thresholds.min_offers_for_decay
    enough_reqs = req_decay.total_reqs >= thresholds.min_reqs_for_req_decay

    if enough_offers and candidate_decay.decay_rate_per_day and candidate_decay.decay_start_day:
        daily_drop = f"{candidate_decay.decay_rate_per_day * 100:.1f}"
        verb = "may drop" if offer_confidence == ConfidenceLevel.LOW else "drops"
        insights.append(VelocityInsight(
            type=InsightType.WARNING,
            title="Candidate Interest May Decay Over Time",
            description=(
                f"Based on {candidate_decay.total_offers} offers, acceptance rate {verb} "
                f"~{daily_drop}% per day after day {candidate_decay.decay_start_day}."
            ),
            metric=f"{daily_drop}%/day decay",
            action="Prioritize candidates who have been in process longest",
            evidence=(
                f"n={candidate_decay.total_offers} offers, decay starts day "
                f"{candidate_decay.decay_start_day}"
            ),
            sample_size=candidate_decay.total_offers,
            so_what="Candidates lose interest over time, reducing your offer acceptance rate.",
            next_step="Move candidates to offer within the decay window to maximize acceptance.",
            confidence=offer_confidence,
        ))

    if enough_offers and candidate_decay.median_days_to_decision:
        fast = next((p for p in candidate_decay.data_points if p.min_days == 0), None)
        if (
            fast is not None
            and fast.count >= thresholds.min_bucket_size_for_chart
            and fast.rate > candidate_decay.overall_acceptance_rate * 1.2
        ):
            bucket_confidence = confidence_level(fast.count, thresholds.min_bucket_size_for_chart)
            tentative = bucket_confidence == ConfidenceLevel.LOW
            insights.append(VelocityInsight(
                type=InsightType.SUCCESS,
                title="Fast Processes Tend to Win" if tentative else "Fast Processes Win",
                description=(
                    f"Candidates receiving offers within 14 days accept at {_percent(fast.rate)}% "
                    f"(n={fast.count}) vs {_percent(candidate_decay.overall_acceptance_rate)}% overall."
                ),
                metric=f"+{_percent(fast.rate - candidate_decay.overall_acceptance_rate)}% acceptance",
                action="Target 14-day offer timeline",
                evidence=f"Fast bucket: {fast.count} offers at {_percent(fast.rate)}%",
                sample_size=fast.count,
                so_what="Speed is a competitive advantage in hiring top talent.",
                next_step="Set a goal to extend offers within 14 days of first contact.",
                confidence=bucket_confidence,
            ))

    if enough_reqs and req_decay.decay_rate_per_day and req_decay.decay_start_day:
        daily_drop = f"{req_decay.decay_rate_per_day * 100:.1f}"
        verb = "may decline" if req_confidence == ConfidenceLevel.LOW else "declines"
        insights.append(VelocityInsight(
            type=InsightType.WARNING,
            title="Req Fill Probability May Decline",
            description=(
                f"Based on {req_decay.total_reqs} reqs, fill probability {verb} "
                f"~{daily_drop}% per day after day {req_decay.decay_start_day}."
            ),
            metric=f"{daily_drop}%/day decay",
            action="Reassess strategy on reqs open >60 days",
            evidence=f"n={req_decay.total_reqs} reqs, decay starts day {req_decay.decay_start_day}",
            sample_size=req_decay.total_reqs,
            so_what="Stale reqs are harder to fill and may indicate misaligned requirements.",
            next_step="Review reqs older than 60 days for scope, comp, or HM engagement issues.",
            confidence=req_confidence,
        ))

    fast_req = next((p for p in req_decay.data_points if p.min_days == 0), None)
    slow_req = next((p for p in req_decay.data_points if p.min_days == SLOW_REQ_BUCKET_MIN_DAYS), None)
    if (
        fast_req is not None
        and slow_req is not None
        and fast_req.count >= thresholds.min_bucket_size_for_chart
        and slow_req.count >= thresholds.min_bucket_size_for_chart
        and fast_req.rate > slow_req.rate * 1.5
    ):
        combined = fast_req.count + slow_req.count
        combined_confidence = confidence_level(combined, thresholds.min_bucket_size_for_chart * 2)
        insights.append(VelocityInsight(
            type=InsightType.INFO,
            title="Early Closure May Correlate with Success",
            description=(
                f"Reqs closed within 30 days show {_percent(fast_req.rate)}% fill rate "
                f"(n={fast_req.count}) vs {_percent(slow_req.rate)}% for 90+ day reqs "
                f"(n={slow_req.count})."
            ),
            metric=f"{_percent(fast_req.rate)}% vs {_percent(slow_req.rate)}%",
            evidence=f"Fast: n={fast_req.count}, Slow: n={slow_req.count}",
            sample_size=combined,
            so_what="Quick closures indicate strong alignment between job specs and candidate market.",
            next_step="Identify patterns in fast-closing reqs to replicate success.",
            confidence=combined_confidence,
        ))

    return insights


def _cohort_insights(
    cohort: CohortComparison,
    thresholds: VelocityThresholds,
) -> List[VelocityInsight]:
    insights: List[VelocityInsight] = []
    fast, slow = cohort.fast_hires, cohort.slow_hires
    ttf_gap = slow.avg_time_to_fill - fast.avg_time_to_fill
    cohort_size = fast.count + slow.count
    cohort_confidence = confidence_level(cohort_size, thresholds.min_hires_for_fast_vs_slow)
    tentative = cohort_confidence == ConfidenceLevel.LOW

    insights.append(VelocityInsight(
        type=InsightType.INFO,
        title="Speed Gap Between Cohorts",
        description=(
            f"Fastest 25% close in {round_half_up(fast.avg_time_to_fill)} days (n={fast.count}) vs "
            f"{round_half_up(slow.avg_time_to_fill)} days for slowest 25% (n={slow.count}), "
            f"a {round_half_up(ttf_gap)} day difference."
        ),
        metric=f"{round_half_up(ttf_gap)} day gap",
        evidence=f"Fast cohort: n={fast.count}, Slow cohort: n={slow.count}",
        sample_size=cohort_size,
        so_what="Understanding what makes fast hires different can improve overall velocity.",
        next_step="Review the factors below to identify actionable improvements.",
        confidence=cohort_confidence,
    ))

    differentiators = [
        f for f in cohort.factors
        if f.impact_level == ImpactLevel.HIGH and f.factor != "Avg Time to Fill"
    ]
    if differentiators:
        top = differentiators[0]
        action, next_step = _differentiator_copy(top.factor)
        qualifier = "Potential " if tentative else ""
        insights.append(VelocityInsight(
            type=InsightType.SUCCESS,
            title=f"{qualifier}Differentiator: {top.factor}",
            description=(
                f"Fast hires: {top.fast_value} {top.unit} vs slow hires: {top.slow_value} {top.unit}. "
                f"Delta: {top.delta} {top.unit}."
            ),
            metric=f"{top.delta} {top.unit}",
            action=action,
            evidence=f"Fast: {top.fast_value}, Slow: {top.slow_value}",
            sample_size=cohort_size,
            so_what="This factor shows a meaningful difference between fast and slow hires.",
            next_step=next_step,
            confidence=cohort_confidence,
        ))

    referral_gap = fast.referral_percent - slow.referral_percent
    if referral_gap > REFERRAL_GAP_PERCENT:
        insights.append(VelocityInsight(
            type=InsightType.SUCCESS,
            title="Referrals May Correlate with Speed" if tentative else "Referrals Correlate with Speed",
            description=(
                f"Fast hires: {round_half_up(fast.referral_percent)}% referrals vs "
                f"{round_half_up(slow.referral_percent)}% for slow hires."
            ),
            metric=f"+{round_half_up(referral_gap)}% referrals",
            action="Push for referrals on stalled reqs",
            evidence=f"Referral delta: {round_half_up(referral_gap)}%",
            sample_size=cohort_size,
            so_what="Referrals often have faster hire cycles due to pre-existing trust.",
            next_step="Prioritize referral outreach for roles that have been open >30 days.",
            confidence=cohort_confidence,
        ))

    return insights


def generate_velocity_insights(
    candidate_decay: CandidateDecayAnalysis,
    req_decay: ReqDecayAnalysis,
    cohort: Optional[CohortComparison],
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
) -> List[VelocityInsight]:
    """
    Derive narrative insights from the decay curves and cohort comparison.

    Args:
        candidate_decay: Offer acceptance decay analysis
        req_decay: Requisition fill decay analysis
        cohort: Fast vs slow comparison, None when gated
        thresholds: Gating thresholds

    Returns:
        Insights in a stable order: decay, cohort, then sample size notices
    """
    insights = _decay_insights(candidate_decay, req_decay, thresholds)

    if cohort is not None:
        insights.extend(_cohort_insights(cohort, thresholds))

    if candidate_decay.total_offers < thresholds.min_offers_for_decay:
        insights.append(VelocityInsight(
            type=InsightType.INFO,
            title="Limited Offer Data",
            description=(
                f"Analysis based on {candidate_decay.total_offers} offers. "
                f"Need {thresholds.min_offers_for_decay} for full analysis."
            ),
            evidence=f"n={candidate_decay.total_offers} offers",
            sample_size=candidate_decay.total_offers,
            so_what="Some decay insights are unavailable due to limited sample size.",
            next_step="Continue collecting data to unlock additional analysis.",
            confidence=ConfidenceLevel.INSUFFICIENT,
        ))

    if req_decay.total_reqs < thresholds.min_reqs_for_req_decay:
        insights.append(VelocityInsight(
            type=InsightType.INFO,
            title="Limited Req Data",
            description=(
                f"Analysis based on {req_decay.total_reqs} reqs. "
                f"Need {thresholds.min_reqs_for_req_decay} for full analysis."
            ),
            evidence=f"n={req_decay.total_reqs} reqs",
            sample_size=req_decay.total_reqs,
            so_what="Some req decay insights are unavailable due to limited sample size.",
            next_step="Continue collecting data to unlock additional analysis.",
            confidence=ConfidenceLevel.INSUFFICIENT,
        ))

    return insights


# =============================================================================
# Entry Point
# =============================================================================


def calculate_velocity_metrics(
    candidates: Sequence[Candidate],
    requisitions: Sequence[Requisition],
    events: Sequence[PipelineEvent],
    filters: Optional[MetricFilters] = None,
    *,
    thresholds: VelocityThresholds,
    as_of: Optional[datetime] = None,
) -> VelocityMetrics:
    """
    Compute decay curves, cohort comparison and narrative insights.

    Args:
        candidates: Candidates
        requisitions: Requisitions (filters are applied here)
        events: Pipeline events
        filters: Metric filters, None for no filtering
        thresholds: Gating thresholds
        as_of: Reference time for open requisitions; defaults to now (UTC)

    Returns:
        VelocityMetrics
    """
    as_of = as_utc(as_of) or datetime.now(timezone.utc)
    scoped = filter_requisitions(requisitions, filters)

    candidate_decay = calculate_candidate_decay(candidates, scoped, thresholds)
    req_decay = calculate_req_decay(scoped, as_of, thresholds)
    cohort = calculate_cohort_comparison(candidates, scoped, events, thresholds)
    insights = generate_velocity_insights(candidate_decay, req_decay, cohort, thresholds)

    logger.info(
        f"Velocity metrics computed: {candidate_decay.total_offers} offers, "
        f"{req_decay.total_reqs} reqs, cohort {'available' if cohort else 'gated'}, "
        f"{len(insights)} insights"
    )

    return VelocityMetrics(
        candidate_decay=candidate_decay,
        req_decay=req_decay,
        cohort_comparison=cohort,
        insights=insights,
    )
