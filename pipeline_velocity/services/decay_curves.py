"""
Decay Curve Engine - outcome rate by elapsed time.

Two curves are computed:

1. CANDIDATE DECAY - offer acceptance rate by days from application (or first
   contact) to offer. Buckets: 0-14, 15-21, 22-30, 31-45, 46-60, 60+ days.
2. REQUISITION DECAY - fill rate by days open. Closed requisitions and open
   requisitions at least 30 days old are analyzed; canceled ones are not.
   Buckets: 0-30, 31-45, 46-60, 61-90, 91-120, 120+ days.

For each curve the engine estimates a decay rate per day (rate drop from the
first to the last well-populated bucket divided by the day span) and a decay
start day (first well-populated bucket whose rate falls below a fraction of
the peak rate).

Bucket rates use safe_rate, so an empty bucket reports 0 and is never shown
as "100%" or "0%" on a chart (the fact pack drops zero-count buckets).
"""

from datetime import datetime
from typing import List, NamedTuple, Optional, Sequence, Tuple

from pipeline_velocity.core.config import DEFAULT_THRESHOLDS, VelocityThresholds
from pipeline_velocity.models.enums import RequisitionStatus
from pipeline_velocity.models.schemas import (
    Candidate,
    CandidateDecayAnalysis,
    DecayDataPoint,
    ReqDecayAnalysis,
    Requisition,
)
from pipeline_velocity.services.confidence_gate import safe_rate
from pipeline_velocity.services.stats import days_between, upper_median


class DayBucket(NamedTuple):
    label: str
    min_days: int
    max_days: Optional[int]

    def contains(self, days: int) -> bool:
        return days >= self.min_days and (self.max_days is None or days <= self.max_days)


CANDIDATE_DECAY_BUCKETS: Tuple[DayBucket, ...] = (
    DayBucket("0-14 days", 0, 14),
    DayBucket("15-21 days", 15, 21),
    DayBucket("22-30 days", 22, 30),
    DayBucket("31-45 days", 31, 45),
    DayBucket("46-60 days", 46, 60),
    DayBucket("60+ days", 61, None),
)

REQ_DECAY_BUCKETS: Tuple[DayBucket, ...] = (
    DayBucket("0-30 days", 0, 30),
    DayBucket("31-45 days", 31, 45),
    DayBucket("46-60 days", 46, 60),
    DayBucket("61-90 days", 61, 90),
    DayBucket("91-120 days", 91, 120),
    DayBucket("120+ days", 121, None),
)


# =============================================================================
# Shared Helpers
# =============================================================================


def _bucketize(
    samples: Sequence[Tuple[int, bool]],
    buckets: Sequence[DayBucket],
) -> List[DecayDataPoint]:
    """
    Group (days, outcome) samples into buckets with rate and cumulative rate.

    Empty buckets report rate 0. The cumulative rate is the outcome rate over
    all samples up to and including the bucket.
    """
    points: List[DecayDataPoint] = []
    cumulative_hits = 0
    cumulative_total = 0

    for bucket in buckets:
        in_bucket = [outcome for days, outcome in samples if bucket.contains(days)]
        hits = sum(1 for outcome in in_bucket if outcome)
        rate = safe_rate(hits, len(in_bucket)).value or 0.0

        cumulative_hits += hits
        cumulative_total += len(in_bucket)
        cumulative_rate = cumulative_hits / cumulative_total if cumulative_total > 0 else 0.0

        points.append(DecayDataPoint(
            bucket=bucket.label,
            min_days=bucket.min_days,
            max_days=bucket.max_days,
            count=len(in_bucket),
            rate=rate,
            cumulative_rate=cumulative_rate,
        ))

    return points


def estimate_decay(
    points: Sequence[DecayDataPoint],
    drop_ratio: float,
    min_bucket_size: int = DEFAULT_THRESHOLDS.min_bucket_size_for_chart,
) -> Tuple[Optional[float], Optional[int]]:
    """
    Estimate the decay slope and onset of a curve.

    Only buckets with at least min_bucket_size samples participate. With two
    or more such buckets, and a rate that drops from the first to the last
    over a positive day span:
        decay_rate_per_day = (first.rate - last.rate) / (last.min_days - first.min_days)
        decay_start_day = min_days of the first bucket with rate < peak * drop_ratio

    Args:
        points: Curve data points in bucket order
        drop_ratio: Fraction of the peak rate treated as a material drop
            (0.95 for offers, 0.90 for requisitions)
        min_bucket_size: Minimum samples for a bucket to participate

    Returns:
        (decay_rate_per_day, decay_start_day), each None when not estimable
    """
    populated = [p for p in points if p.count >= min_bucket_size]
    if len(populated) < 2:
        return None, None

    first, last = populated[0], populated[-1]
    day_span = last.min_days - first.min_days
    rate_drop = first.rate - last.rate
    if day_span <= 0 or rate_drop <= 0:
        return None, None

    peak = max(p.rate for p in populated)
    start = next((p.min_days for p in populated if p.rate < peak * drop_ratio), None)
    return rate_drop / day_span, start


# =============================================================================
# Candidate Decay
# =============================================================================


def calculate_candidate_decay(
    candidates: Sequence[Candidate],
    requisitions: Sequence[Requisition],
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
) -> CandidateDecayAnalysis:
    """
    Offer acceptance rate by days from application to offer.

    Args:
        candidates: All candidates
        requisitions: Requisitions already narrowed by the metric filters;
            only candidates on these requisitions are analyzed
        thresholds: Gating thresholds

    Returns:
        CandidateDecayAnalysis
    """
    req_ids = {r.req_id for r in requisitions}

    samples: List[Tuple[int, bool]] = []
    for c in candidates:
        if c.req_id not in req_ids or c.offer_extended_at is None:
            continue
        start = c.applied_at or c.first_contacted_at
        if start is None:
            continue
        days_to_offer = days_between(start, c.offer_extended_at)
        if days_to_offer < 0:
            continue
        samples.append((days_to_offer, c.offer_accepted_at is not None))

    points = _bucketize(samples, CANDIDATE_DECAY_BUCKETS)

    total_offers = len(samples)
    total_accepted = sum(1 for _, accepted in samples if accepted)
    overall = safe_rate(total_accepted, total_offers).value or 0.0

    accepted_days = [days for days, accepted in samples if accepted]
    median_days = upper_median(accepted_days)

    decay_rate, decay_start = estimate_decay(
        points,
        thresholds.offer_decay_drop_ratio,
        thresholds.min_bucket_size_for_chart,
    )

    return CandidateDecayAnalysis(
        data_points=points,
        median_days_to_decision=median_days,
        overall_acceptance_rate=overall,
        total_offers=total_offers,
        total_accepted=total_accepted,
        decay_rate_per_day=decay_rate,
        decay_start_day=decay_start,
    )


# =============================================================================
# Requisition Decay
# =============================================================================


def calculate_req_decay(
    requisitions: Sequence[Requisition],
    as_of: datetime,
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
) -> ReqDecayAnalysis:
    """
    Requisition fill rate by days open.

    Requisitions without opened_at are skipped. Open requisitions younger than
    min_req_age_days as of `as_of` are too new to judge and are skipped.

    Args:
        requisitions: Requisitions already narrowed by the metric filters
        as_of: Reference time for still-open requisitions
        thresholds: Gating thresholds

    Returns:
        ReqDecayAnalysis
    """
    samples: List[Tuple[int, bool]] = []
    for r in requisitions:
        if r.opened_at is None or r.status == RequisitionStatus.CANCELED:
            continue
        if r.status != RequisitionStatus.CLOSED:
            if days_between(r.opened_at, as_of) < thresholds.min_req_age_days:
                continue
        end = r.closed_at or as_of
        filled = r.status == RequisitionStatus.CLOSED and r.closed_at is not None
        samples.append((days_between(r.opened_at, end), filled))

    points = _bucketize(samples, REQ_DECAY_BUCKETS)

    total_reqs = len(samples)
    total_filled = sum(1 for _, filled in samples if filled)
    overall = safe_rate(total_filled, total_reqs).value or 0.0

    median_days = upper_median([days for days, filled in samples if filled])

    decay_rate, decay_start = estimate_decay(
        points,
        thresholds.req_decay_drop_ratio,
        thresholds.min_bucket_size_for_chart,
    )

    return ReqDecayAnalysis(
        data_points=points,
        median_days_to_fill=median_days,
        overall_fill_rate=overall,
        total_reqs=total_reqs,
        total_filled=total_filled,
        decay_rate_per_day=decay_rate,
        decay_start_day=decay_start,
    )
