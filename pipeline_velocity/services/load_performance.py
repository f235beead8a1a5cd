"""
Load vs Performance Analyzer - does recruiter workload slow hiring down?

Method:
1. Find completed hires (disposition Hired, hired_at and applied_at set) on a
   known requisition owned by a recruiter; time-to-fill = hired - applied in
   days, kept when 0 <= TTF <= 365
2. For each hire, count the recruiter's requisitions open at the hire date
3. Group hires into load buckets (1-5, 6-10, 11-15, 16+ requisitions)
4. Compute median and average TTF per bucket
5. Compare the median TTF of the first and last buckets holding at least
   min_load_bucket_hires hires:
   - > +30% moderate, > +50% strong, positive direction (higher load slower)
   - < -30% moderate, < -50% strong, negative direction
   - otherwise no significant correlation

Fewer than min_load_hires qualifying hires, or fewer than two populated
buckets, yields an "insufficient data" conclusion.
"""

from datetime import datetime
from typing import Dict, List, Sequence

from pipeline_velocity.core.config import DEFAULT_THRESHOLDS, VelocityThresholds
from pipeline_velocity.models.enums import (
    CandidateDisposition,
    ConfidenceLevel,
    CorrelationDirection,
    CorrelationStrength,
    RequisitionStatus,
)
from pipeline_velocity.models.schemas import (
    Candidate,
    LoadBucket,
    LoadCorrelation,
    LoadVsPerformanceResult,
    Requisition,
)
from pipeline_velocity.services.stats import days_between, mean, median, round_half_up


LOAD_BUCKETS = (
    ("1-5 reqs", 1, 5),
    ("6-10 reqs", 6, 10),
    ("11-15 reqs", 11, 15),
    ("16+ reqs", 16, None),
)

MODERATE_PERCENT = 30
STRONG_PERCENT = 50

INSUFFICIENT_INSIGHT = "Not enough data to determine relationship between workload and hiring speed."


def count_concurrent_reqs(
    recruiter_id: str,
    hire_date: datetime,
    requisitions: Sequence[Requisition],
) -> int:
    """
    Count the recruiter's requisitions open on the hire date.

    A requisition counts when it was opened on or before the hire date and is
    either still Open or was closed on or after the hire date.
    """
    count = 0
    for req in requisitions:
        if req.recruiter_id != recruiter_id:
            continue
        if req.opened_at is None or req.opened_at > hire_date:
            continue
        still_open = req.status == RequisitionStatus.OPEN
        closed_later = req.closed_at is not None and req.closed_at >= hire_date
        if still_open or closed_later:
            count += 1
    return count


def _confidence(sample_size: int) -> ConfidenceLevel:
    if sample_size >= 50:
        return ConfidenceLevel.HIGH
    if sample_size >= 20:
        return ConfidenceLevel.MED
    if sample_size >= 10:
        return ConfidenceLevel.LOW
    return ConfidenceLevel.INSUFFICIENT


def _insufficient() -> LoadCorrelation:
    return LoadCorrelation(
        direction=CorrelationDirection.NONE,
        strength=CorrelationStrength.NONE,
        description="Insufficient data across load buckets",
    )


def analyze_load_vs_performance(
    requisitions: Sequence[Requisition],
    candidates: Sequence[Candidate],
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
) -> LoadVsPerformanceResult:
    """
    Relate each hire's time-to-fill to its recruiter's concurrent load.

    Args:
        requisitions: Requisitions (already narrowed by the metric filters)
        candidates: All candidates
        thresholds: Gating thresholds

    Returns:
        LoadVsPerformanceResult
    """
    reqs_by_id: Dict[str, Requisition] = {r.req_id: r for r in requisitions}
    ttf_by_bucket: List[List[int]] = [[] for _ in LOAD_BUCKETS]

    for hire in candidates:
        if hire.disposition != CandidateDisposition.HIRED:
            continue
        if hire.hired_at is None or hire.applied_at is None:
            continue
        req = reqs_by_id.get(hire.req_id)
        if req is None or not req.recruiter_id:
            continue

        ttf = days_between(hire.applied_at, hire.hired_at)
        if ttf < 0 or ttf > thresholds.max_time_to_fill_days:
            continue

        load = count_concurrent_reqs(req.recruiter_id, hire.hired_at, requisitions)
        for index, (_, low, high) in enumerate(LOAD_BUCKETS):
            if load >= low and (high is None or load <= high):
                ttf_by_bucket[index].append(ttf)
                break

    buckets = [
        LoadBucket(
            label=label,
            min_reqs=low,
            max_reqs=high,
            hire_count=len(values),
            median_ttf=median(values) if values else None,
            avg_ttf=mean(values) if values else None,
            ttf_values=values,
        )
        for (label, low, high), values in zip(LOAD_BUCKETS, ttf_by_bucket)
    ]

    sample_size = sum(b.hire_count for b in buckets)
    populated = [b for b in buckets if b.median_ttf is not None and b.hire_count >= thresholds.min_load_bucket_hires]

    if sample_size < thresholds.min_load_hires or len(populated) < 2:
        return LoadVsPerformanceResult(
            buckets=buckets,
            correlation=_insufficient(),
            sample_size=sample_size,
            confidence=_confidence(sample_size),
            insight=INSUFFICIENT_INSIGHT,
        )

    first, last = populated[0], populated[-1]
    ttf_diff = last.median_ttf - first.median_ttf
    percent_diff = (ttf_diff / first.median_ttf) * 100 if first.median_ttf else 0.0

    if percent_diff > MODERATE_PERCENT:
        correlation = LoadCorrelation(
            direction=CorrelationDirection.POSITIVE,
            strength=CorrelationStrength.STRONG if percent_diff > STRONG_PERCENT else CorrelationStrength.MODERATE,
            description=f"Higher workload correlates with {round_half_up(percent_diff)}% slower hiring",
        )
        insight = (
            f"Data supports the thesis: Recruiters with {first.label} hire in "
            f"~{round_half_up(first.median_ttf)} days, while those with {last.label} take "
            f"~{round_half_up(last.median_ttf)} days (+{round_half_up(ttf_diff)} days)."
        )
    elif percent_diff < -MODERATE_PERCENT:
        correlation = LoadCorrelation(
            direction=CorrelationDirection.NEGATIVE,
            strength=CorrelationStrength.STRONG if percent_diff < -STRONG_PERCENT else CorrelationStrength.MODERATE,
            description="Higher workload correlates with faster hiring (unexpected)",
        )
        insight = (
            "Counterintuitively, recruiters with higher loads hire faster. This may indicate "
            "that high performers get more reqs assigned to them."
        )
    else:
        correlation = LoadCorrelation(
            direction=CorrelationDirection.NONE,
            strength=CorrelationStrength.WEAK,
            description="No significant correlation between workload and hiring speed",
        )
        insight = (
            "Workload doesn't significantly impact hiring speed in this dataset. Other factors "
            "(req difficulty, candidate quality) may be more important."
        )

    return LoadVsPerformanceResult(
        buckets=buckets,
        correlation=correlation,
        sample_size=sample_size,
        confidence=_confidence(sample_size),
        insight=insight,
    )


def format_load_vs_performance_summary(result: LoadVsPerformanceResult) -> str:
    """Render the analysis as a short markdown summary."""
    lines = [f"**Analysis: Workload vs. Hiring Speed** (n={result.sample_size})", ""]

    for bucket in result.buckets:
        if bucket.hire_count > 0:
            median_text = round_half_up(bucket.median_ttf) if bucket.median_ttf is not None else "N/A"
            lines.append(
                f"• {bucket.label}: {median_text} days median TTF ({bucket.hire_count} hires)"
            )

    lines.append("")
    lines.append(f"**Finding:** {result.insight}")
    return "\n".join(lines)
