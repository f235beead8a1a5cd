"""
Cohort Comparison Engine - what separates fast hires from slow hires.

Filled requisitions (Closed with both open and close dates) are sorted by
time-to-fill and split into the fastest quartile, the slowest quartile and
"all". For each cohort the engine computes:

- Average and median time-to-fill (days)
- Referral share of hired candidates (%)
- Pipeline depth (candidates per requisition)
- Interviews per hire
- Hiring manager feedback latency (hours from the candidate's latest
  completed interview to feedback, samples capped below 720h)
- Submittals per hire (candidates moved to a hiring manager stage)

Factors contrast fast vs slow values and are classified high / medium / low
impact from the absolute size of the delta. The comparison is gated: it
needs at least 2 x min_hires_for_fast_vs_slow filled requisitions so each
side of the split is meaningful.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pipeline_velocity.core.config import DEFAULT_THRESHOLDS, VelocityThresholds
from pipeline_velocity.models.enums import (
    CandidateDisposition,
    CandidateSource,
    EventType,
    ImpactLevel,
    RequisitionStatus,
)
from pipeline_velocity.models.schemas import (
    Candidate,
    CohortComparison,
    CohortStats,
    PipelineEvent,
    Requisition,
    SuccessFactor,
)
from pipeline_velocity.services.confidence_gate import safe_rate
from pipeline_velocity.services.stats import days_between, hours_between, mean, round_half_up, upper_median


MAX_FEEDBACK_LATENCY_HOURS = 720

HM_STAGE_MARKERS = ("hm", "hiring manager")

IMPACT_ORDER = {ImpactLevel.HIGH: 0, ImpactLevel.MEDIUM: 1, ImpactLevel.LOW: 2}

ReqWithTTF = Tuple[Requisition, int]


# =============================================================================
# Impact Classification
# =============================================================================


def classify_impact(delta: float, high: float, medium: float) -> ImpactLevel:
    """
    Classify a factor delta by absolute magnitude.

    Args:
        delta: Signed difference between cohorts
        high: |delta| above this is HIGH
        medium: |delta| above this is MEDIUM

    Returns:
        ImpactLevel
    """
    magnitude = abs(delta)
    if magnitude > high:
        return ImpactLevel.HIGH
    if magnitude > medium:
        return ImpactLevel.MEDIUM
    return ImpactLevel.LOW


def _signed(text: str, delta: float) -> str:
    return f"+{text}" if delta > 0 else text


def _whole(value: float) -> str:
    return str(round_half_up(value))


def _one_decimal(value: float) -> str:
    return f"{value:.1f}"


def _factor(
    name: str,
    fast: float,
    slow: float,
    delta: float,
    unit: str,
    fmt: Callable[[float], str],
    high: float,
    medium: float,
) -> SuccessFactor:
    return SuccessFactor(
        factor=name,
        fast_value=fmt(fast),
        slow_value=fmt(slow),
        delta=_signed(fmt(delta), delta),
        delta_value=delta,
        unit=unit,
        impact_level=classify_impact(delta, high, medium),
    )


# =============================================================================
# Cohort Statistics
# =============================================================================


def _average_feedback_latency(events: Sequence[PipelineEvent]) -> float:
    """Average hours from each candidate's latest completed interview to feedback."""
    latest_interview: Dict[Optional[str], datetime] = {}
    for e in events:
        if e.event_type != EventType.INTERVIEW_COMPLETED:
            continue
        existing = latest_interview.get(e.candidate_id)
        if existing is None or e.event_at > existing:
            latest_interview[e.candidate_id] = e.event_at

    latencies: List[float] = []
    for e in events:
        if e.event_type != EventType.FEEDBACK_SUBMITTED:
            continue
        interview_at = latest_interview.get(e.candidate_id)
        if interview_at is None or e.event_at <= interview_at:
            continue
        hours = hours_between(interview_at, e.event_at)
        if 0 < hours < MAX_FEEDBACK_LATENCY_HOURS:
            latencies.append(hours)

    return mean(latencies)


def calculate_cohort_stats(
    reqs: Sequence[ReqWithTTF],
    candidates: Sequence[Candidate],
    events: Sequence[PipelineEvent],
) -> CohortStats:
    """
    Aggregate one cohort of filled requisitions.

    Args:
        reqs: (requisition, time-to-fill days) pairs in the cohort
        candidates: All candidates (narrowed to the cohort's requisitions here)
        events: All events (narrowed to the cohort's requisitions here)

    Returns:
        CohortStats
    """
    req_ids = {r.req_id for r, _ in reqs}
    cohort_candidates = [c for c in candidates if c.req_id in req_ids]
    hired = [c for c in cohort_candidates if c.disposition == CandidateDisposition.HIRED]
    cohort_events = [e for e in events if e.req_id in req_ids]

    referrals = sum(
        1 for c in hired
        if c.source is not None and c.source.lower() == CandidateSource.REFERRAL.value.lower()
    )
    referral_percent = (safe_rate(referrals, len(hired)).value or 0.0) * 100

    pipeline_depth = len(cohort_candidates) / len(reqs) if reqs else 0.0

    interviews = sum(1 for e in cohort_events if e.event_type == EventType.INTERVIEW_COMPLETED)
    interviews_per_hire = interviews / len(hired) if hired else 0.0

    submitted = {
        e.candidate_id for e in cohort_events
        if e.event_type == EventType.STAGE_CHANGE
        and e.to_stage
        and any(marker in e.to_stage.lower() for marker in HM_STAGE_MARKERS)
    }
    submittals_per_hire = len(submitted) / len(hired) if hired else 0.0

    ttf_values = [ttf for _, ttf in reqs]

    return CohortStats(
        count=len(reqs),
        avg_time_to_fill=mean(ttf_values),
        median_time_to_fill=upper_median(ttf_values) or 0.0,
        avg_hm_latency_hours=_average_feedback_latency(cohort_events),
        referral_percent=referral_percent,
        avg_pipeline_depth=pipeline_depth,
        avg_interviews_per_hire=interviews_per_hire,
        avg_submittals_per_hire=submittals_per_hire,
    )


def _build_factors(fast: CohortStats, slow: CohortStats) -> List[SuccessFactor]:
    factors: List[SuccessFactor] = []

    if fast.avg_hm_latency_hours > 0 or slow.avg_hm_latency_hours > 0:
        factors.append(_factor(
            "HM Feedback Latency",
            fast.avg_hm_latency_hours,
            slow.avg_hm_latency_hours,
            slow.avg_hm_latency_hours - fast.avg_hm_latency_hours,
            "hrs", _whole, high=24, medium=8,
        ))

    factors.append(_factor(
        "Referral Source %",
        fast.referral_percent,
        slow.referral_percent,
        fast.referral_percent - slow.referral_percent,
        "%", _whole, high=20, medium=10,
    ))

    factors.append(_factor(
        "Pipeline Depth",
        fast.avg_pipeline_depth,
        slow.avg_pipeline_depth,
        fast.avg_pipeline_depth - slow.avg_pipeline_depth,
        "candidates/req", _one_decimal, high=5, medium=2,
    ))

    if fast.avg_interviews_per_hire > 0 or slow.avg_interviews_per_hire > 0:
        factors.append(_factor(
            "Interviews per Hire",
            fast.avg_interviews_per_hire,
            slow.avg_interviews_per_hire,
            slow.avg_interviews_per_hire - fast.avg_interviews_per_hire,
            "interviews", _one_decimal, high=3, medium=1.5,
        ))

    if fast.avg_submittals_per_hire > 0 or slow.avg_submittals_per_hire > 0:
        factors.append(_factor(
            "Submittals per Hire",
            fast.avg_submittals_per_hire,
            slow.avg_submittals_per_hire,
            slow.avg_submittals_per_hire - fast.avg_submittals_per_hire,
            "submittals", _one_decimal, high=3, medium=1.5,
        ))

    # Outcome metric, always shown first among the high impact factors
    ttf_delta = slow.avg_time_to_fill - fast.avg_time_to_fill
    factors.append(SuccessFactor(
        factor="Avg Time to Fill",
        fast_value=_whole(fast.avg_time_to_fill),
        slow_value=_whole(slow.avg_time_to_fill),
        delta=f"+{round_half_up(ttf_delta)}",
        delta_value=ttf_delta,
        unit="days",
        impact_level=ImpactLevel.HIGH,
    ))

    factors.sort(key=lambda f: IMPACT_ORDER[f.impact_level])
    return factors


# =============================================================================
# Comparison
# =============================================================================


def calculate_cohort_comparison(
    candidates: Sequence[Candidate],
    requisitions: Sequence[Requisition],
    events: Sequence[PipelineEvent],
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
) -> Optional[CohortComparison]:
    """
    Compare the fastest and slowest quartiles of filled requisitions.

    Args:
        candidates: All candidates
        requisitions: Requisitions already narrowed by the metric filters
        events: All events
        thresholds: Gating thresholds

    Returns:
        CohortComparison, or None when fewer than
        2 x min_hires_for_fast_vs_slow filled requisitions are available
    """
    filled = [
        r for r in requisitions
        if r.status == RequisitionStatus.CLOSED
        and r.closed_at is not None
        and r.opened_at is not None
    ]
    if len(filled) < 2 * thresholds.min_hires_for_fast_vs_slow:
        return None

    with_ttf: List[ReqWithTTF] = sorted(
        ((r, days_between(r.opened_at, r.closed_at)) for r in filled),
        key=lambda pair: pair[1],
    )

    quartile = max(len(with_ttf) // 4, 1)
    fast = calculate_cohort_stats(with_ttf[:quartile], candidates, events)
    slow = calculate_cohort_stats(with_ttf[-quartile:], candidates, events)
    everyone = calculate_cohort_stats(with_ttf, candidates, events)

    return CohortComparison(
        fast_hires=fast,
        slow_hires=slow,
        all_hires=everyone,
        factors=_build_factors(fast, slow),
    )
