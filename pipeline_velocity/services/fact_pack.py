"""
Fact Pack Builder - the single source of truth for generated insights.

build_velocity_fact_pack() turns computed VelocityMetrics plus the raw
records into an immutable, PII-free VelocityFactPack:

- metadata: schema version, generation time, date range, data quality
- sample_sizes / kpis: scalar counts and rates (None when undefined)
- stage_timing: capability detected by the confidence gate
- candidate_decay / req_decay / cohort_comparison: gated blocks with an
  `available` flag and a `gating_reason` when unavailable
- bottleneck_stages: average days in current stage per canonical stage
- contributing_reqs: stalled / zombie / slow-fill / fast-fill requisition ids
- definitions / deterministic_insights

Redaction contract: names, emails, phone numbers, requisition titles and raw
stage labels never enter the pack. Stage labels are normalized to canonical
stages and requisition ids are screened by redaction.safe_identifier.

CITABLE_FACT_PATHS enumerates every dot path a citation may use.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from pipeline_velocity.core.config import DEFAULT_THRESHOLDS, VelocityThresholds
from pipeline_velocity.models.enums import CanonicalStage, ConfidenceLevel, RequisitionStatus
from pipeline_velocity.models.schemas import (
    BottleneckStage,
    Candidate,
    CohortComparison,
    CohortComparisonBlock,
    CohortStats,
    ContributingReqs,
    DecayBucket,
    DecayDataPoint,
    FactCohortFactor,
    FactCohortStats,
    FactDateRange,
    FactInsight,
    FactKpis,
    FactMetadata,
    FactSampleSizes,
    FactStageTiming,
    GatedDecayBlock,
    MetricDefinitions,
    MetricFilters,
    PipelineEvent,
    Requisition,
    VelocityFactPack,
    VelocityMetrics,
    as_utc,
)
from pipeline_velocity.services.confidence_gate import detect_stage_timing_capability
from pipeline_velocity.services.redaction import normalize_stage, pii_terms, safe_identifier
from pipeline_velocity.services.stats import days_between, round_half_up
from pipeline_velocity.services.velocity_analysis import filter_requisitions

logger = logging.getLogger(__name__)


# =============================================================================
# Citable Paths
# =============================================================================

# Present only in some packs: gating reasons appear when a block is
# unavailable, cohort details when it is available.
OPTIONAL_FACT_PATHS: Tuple[str, ...] = (
    "candidate_decay.gating_reason",
    "req_decay.gating_reason",
    "cohort_comparison.gating_reason",
    "cohort_comparison.fast_hires",
    "cohort_comparison.slow_hires",
    "cohort_comparison.factors",
)

CITABLE_FACT_PATHS: Tuple[str, ...] = (
    "metadata.schema_version",
    "metadata.generated_at",
    "metadata.date_range.start",
    "metadata.date_range.end",
    "metadata.data_quality",
    "sample_sizes.total_offers",
    "sample_sizes.total_accepted",
    "sample_sizes.total_reqs",
    "sample_sizes.total_filled",
    "sample_sizes.total_hires",
    "sample_sizes.fast_hires_cohort",
    "sample_sizes.slow_hires_cohort",
    "kpis.median_ttf_days",
    "kpis.offer_accept_rate",
    "kpis.overall_fill_rate",
    "kpis.decay_rate_per_day",
    "kpis.req_decay_rate_per_day",
    "kpis.decay_start_day",
    "stage_timing.capability",
    "stage_timing.can_show_duration",
    "stage_timing.reason",
    "candidate_decay.available",
    "candidate_decay.gating_reason",
    "candidate_decay.buckets",
    "req_decay.available",
    "req_decay.gating_reason",
    "req_decay.buckets",
    "cohort_comparison.available",
    "cohort_comparison.gating_reason",
    "cohort_comparison.fast_hires",
    "cohort_comparison.slow_hires",
    "cohort_comparison.factors",
    "bottleneck_stages",
    "contributing_reqs.stalled_req_ids",
    "contributing_reqs.zombie_req_ids",
    "contributing_reqs.slow_fill_req_ids",
    "contributing_reqs.fast_fill_req_ids",
    "definitions.median_ttf",
    "definitions.offer_accept_rate",
    "definitions.decay_rate",
    "definitions.fast_hires",
    "definitions.slow_hires",
    "deterministic_insights",
)

DEFINITIONS = MetricDefinitions(
    median_ttf="Median time-to-fill in days for closed requisitions in the selected period",
    offer_accept_rate="Percentage of extended offers that were accepted by candidates",
    decay_rate="Percentage point drop in acceptance/fill rate per day after decay threshold",
    fast_hires="Bottom 25% of hires by time-to-fill (fastest closures)",
    slow_hires="Top 25% of hires by time-to-fill (slowest closures)",
)


# =============================================================================
# Data Quality
# =============================================================================


def calculate_data_quality(
    total_offers: int,
    total_reqs: int,
    cohort: Optional[CohortComparison],
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
) -> ConfidenceLevel:
    """
    Aggregate grade from which of offers, reqs and cohorts clear their gates.

    All three HIGH, any two MED, exactly one LOW, none INSUFFICIENT.
    """
    cleared = sum((
        total_offers >= thresholds.min_offers_for_decay,
        total_reqs >= thresholds.min_reqs_for_req_decay,
        cohort is not None,
    ))
    return {
        3: ConfidenceLevel.HIGH,
        2: ConfidenceLevel.MED,
        1: ConfidenceLevel.LOW,
    }.get(cleared, ConfidenceLevel.INSUFFICIENT)


# =============================================================================
# Contributing Requisitions and Bottlenecks
# =============================================================================


def get_contributing_req_ids(
    requisitions: Sequence[Requisition],
    events: Sequence[PipelineEvent],
    as_of: datetime,
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
    personal_terms: Sequence[str] = (),
) -> ContributingReqs:
    """
    Identify stalled, zombie, slow-fill and fast-fill requisitions.

    - stalled: Open, last activity (latest event, else opened_at) 14-29 days ago
    - zombie: Open, last activity 30+ days ago
    - slow fill: Closed, more than 60 days from open to close
    - fast fill: Closed, at most 30 days from open to close

    Each list holds at most max_contributing_reqs redacted identifiers.
    """
    last_activity: Dict[str, datetime] = {}
    for e in events:
        existing = last_activity.get(e.req_id)
        if existing is None or e.event_at > existing:
            last_activity[e.req_id] = e.event_at

    stalled: List[str] = []
    zombie: List[str] = []
    slow: List[str] = []
    fast: List[str] = []

    for r in requisitions:
        if r.status == RequisitionStatus.OPEN:
            last = last_activity.get(r.req_id) or r.opened_at
            if last is None:
                continue
            idle = days_between(last, as_of)
            if thresholds.stalled_days <= idle < thresholds.zombie_days:
                stalled.append(r.req_id)
            elif idle >= thresholds.zombie_days:
                zombie.append(r.req_id)
        elif r.status == RequisitionStatus.CLOSED and r.opened_at and r.closed_at:
            days_to_fill = days_between(r.opened_at, r.closed_at)
            if days_to_fill > thresholds.slow_fill_days:
                slow.append(r.req_id)
            elif days_to_fill <= thresholds.fast_fill_days:
                fast.append(r.req_id)

    def redact(ids: List[str]) -> List[str]:
        limited = ids[:thresholds.max_contributing_reqs]
        return [safe_identifier(i, "req", personal_terms) for i in limited]

    return ContributingReqs(
        stalled_req_ids=redact(stalled),
        zombie_req_ids=redact(zombie),
        slow_fill_req_ids=redact(slow),
        fast_fill_req_ids=redact(fast),
    )


def calculate_bottleneck_stages(
    candidates: Sequence[Candidate],
    as_of: datetime,
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
) -> List[BottleneckStage]:
    """
    Average days candidates have spent in their current canonical stage.

    Stages with fewer than min_bottleneck_samples candidates are dropped; the
    rest are sorted by average days (longest first) and truncated to
    max_bottleneck_stages.
    """
    totals: Dict[CanonicalStage, List[int]] = {}
    for c in candidates:
        if not c.current_stage or c.current_stage_entered_at is None:
            continue
        stage = normalize_stage(c.current_stage)
        days = days_between(c.current_stage_entered_at, as_of)
        totals.setdefault(stage, []).append(days)

    stages = [
        BottleneckStage(
            stage=stage,
            avg_days=round_half_up(sum(days) / len(days)),
            count=len(days),
        )
        for stage, days in totals.items()
        if len(days) >= thresholds.min_bottleneck_samples
    ]
    stages.sort(key=lambda b: b.avg_days, reverse=True)
    return stages[:thresholds.max_bottleneck_stages]


# =============================================================================
# Block Builders
# =============================================================================


def _decay_block(
    points: Sequence[DecayDataPoint],
    total: int,
    minimum: int,
    noun: str,
) -> GatedDecayBlock:
    available = total >= minimum
    return GatedDecayBlock(
        available=available,
        gating_reason=None if available else f"Need {minimum} {noun}, have {total}",
        buckets=[
            DecayBucket(label=p.bucket, count=p.count, rate=p.rate)
            for p in points
            if p.count > 0
        ],
    )


def _fact_cohort_stats(stats: CohortStats) -> FactCohortStats:
    return FactCohortStats(
        count=stats.count,
        avg_ttf=stats.avg_time_to_fill,
        median_ttf=stats.median_time_to_fill,
        referral_percent=stats.referral_percent,
        avg_pipeline_depth=stats.avg_pipeline_depth,
        avg_interviews_per_hire=stats.avg_interviews_per_hire,
    )


def _cohort_block(
    cohort: Optional[CohortComparison],
    thresholds: VelocityThresholds,
) -> CohortComparisonBlock:
    if cohort is None:
        return CohortComparisonBlock(
            available=False,
            gating_reason=f"Need {thresholds.min_hires_for_fast_vs_slow} hires for cohort analysis",
        )
    return CohortComparisonBlock(
        available=True,
        fast_hires=_fact_cohort_stats(cohort.fast_hires),
        slow_hires=_fact_cohort_stats(cohort.slow_hires),
        factors=[
            FactCohortFactor(
                name=f.factor,
                fast_value=f.fast_value,
                slow_value=f.slow_value,
                delta=f.delta,
                impact=f.impact_level,
            )
            for f in cohort.factors
        ],
    )


def _iso(value: datetime) -> str:
    return as_utc(value).isoformat().replace("+00:00", "Z")


# =============================================================================
# Builder
# =============================================================================


def build_velocity_fact_pack(
    metrics: VelocityMetrics,
    requisitions: Sequence[Requisition],
    candidates: Sequence[Candidate],
    events: Sequence[PipelineEvent],
    filters: Optional[MetricFilters] = None,
    *,
    thresholds: VelocityThresholds,
    as_of: Optional[datetime] = None,
) -> VelocityFactPack:
    """
    Assemble the immutable, redacted fact pack.

    Args:
        metrics: Output of calculate_velocity_metrics for the same records
        requisitions: Requisitions (filters are applied here for contributing ids)
        candidates: Candidates
        events: Pipeline events
        filters: Metric filters; the date range is recorded in metadata
        thresholds: Gating thresholds
        as_of: Generation time and reference for idle/stage durations;
            defaults to now (UTC)

    Returns:
        VelocityFactPack
    """
    as_of = as_utc(as_of) or datetime.now(timezone.utc)
    candidate_decay = metrics.candidate_decay
    req_decay = metrics.req_decay
    cohort = metrics.cohort_comparison

    date_range = filters.date_range if filters is not None else None
    range_start = date_range.start if date_range and date_range.start else as_of
    range_end = date_range.end if date_range and date_range.end else as_of

    stage_timing = detect_stage_timing_capability(events, candidates, thresholds)
    personal_terms = pii_terms(
        value for c in candidates for value in (c.name, c.email, c.phone)
    )
    scoped = filter_requisitions(requisitions, filters)

    fact_pack = VelocityFactPack(
        metadata=FactMetadata(
            generated_at=_iso(as_of),
            date_range=FactDateRange(start=_iso(range_start), end=_iso(range_end)),
            data_quality=calculate_data_quality(
                candidate_decay.total_offers, req_decay.total_reqs, cohort, thresholds
            ),
        ),
        sample_sizes=FactSampleSizes(
            total_offers=candidate_decay.total_offers,
            total_accepted=candidate_decay.total_accepted,
            total_reqs=req_decay.total_reqs,
            total_filled=req_decay.total_filled,
            total_hires=cohort.all_hires.count if cohort else 0,
            fast_hires_cohort=cohort.fast_hires.count if cohort else 0,
            slow_hires_cohort=cohort.slow_hires.count if cohort else 0,
        ),
        kpis=FactKpis(
            median_ttf_days=req_decay.median_days_to_fill,
            offer_accept_rate=(
                candidate_decay.overall_acceptance_rate if candidate_decay.total_offers > 0 else None
            ),
            overall_fill_rate=req_decay.overall_fill_rate if req_decay.total_reqs > 0 else None,
            decay_rate_per_day=candidate_decay.decay_rate_per_day,
            req_decay_rate_per_day=req_decay.decay_rate_per_day,
            decay_start_day=candidate_decay.decay_start_day,
        ),
        stage_timing=FactStageTiming(
            capability=stage_timing.capability,
            can_show_duration=stage_timing.can_show_stage_duration,
            reason=stage_timing.reason,
        ),
        candidate_decay=_decay_block(
            candidate_decay.data_points,
            candidate_decay.total_offers,
            thresholds.min_offers_for_decay,
            "offers",
        ),
        req_decay=_decay_block(
            req_decay.data_points,
            req_decay.total_reqs,
            thresholds.min_reqs_for_req_decay,
            "reqs",
        ),
        cohort_comparison=_cohort_block(cohort, thresholds),
        bottleneck_stages=calculate_bottleneck_stages(candidates, as_of, thresholds),
        contributing_reqs=get_contributing_req_ids(
            scoped, events, as_of, thresholds, personal_terms
        ),
        definitions=DEFINITIONS,
        deterministic_insights=[
            FactInsight(
                title=i.title,
                type=i.type,
                description=i.description,
                sample_size=i.sample_size,
                confidence=i.confidence,
                so_what=i.so_what,
                next_step=i.next_step,
            )
            for i in metrics.insights
        ],
    )

    logger.info(
        f"Fact pack built: data_quality={fact_pack.metadata.data_quality.value}, "
        f"stage_timing={stage_timing.capability.value}, "
        f"{len(fact_pack.deterministic_insights)} deterministic insights"
    )
    return fact_pack
