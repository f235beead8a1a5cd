"""
Confidence Gate - sample-size gating and safe rate arithmetic.

Every metric shown by the velocity engine passes through this module before
it is displayed or handed to a generation model:

1. SAFE RATES - guarded division that never turns 0/0 into "0%" or "100%"
   - 0/0 -> value None, display "—" (insufficient data)
   - n/0 with n > 0 -> value None, display "Invalid data" (logged as a warning)
2. CONFIDENCE - grades a sample size against a threshold t
   - n < t INSUFFICIENT, t <= n < 1.5t LOW, 1.5t <= n < 2t MED, n >= 2t HIGH
3. STAGE TIMING CAPABILITY - what stage duration analysis the data supports

All thresholds are read from an explicit VelocityThresholds value; nothing in
this module holds configuration state.

Usage:
    from pipeline_velocity.services.confidence_gate import safe_rate, calculate_confidence

    result = safe_rate(12, 15, as_percent=True)   # display_value "80%"
    confidence = calculate_confidence(15, 10, "offers")  # MED
"""

import logging
from typing import Literal, Optional, Sequence

from pipeline_velocity.core.config import DEFAULT_THRESHOLDS, VelocityThresholds
from pipeline_velocity.models.enums import ConfidenceLevel, EventType, StageTimingCapability
from pipeline_velocity.models.schemas import (
    Candidate,
    DataConfidence,
    PipelineEvent,
    SafeRateResult,
    StageTimingResult,
)
from pipeline_velocity.services.stats import round_half_up

logger = logging.getLogger(__name__)


INSUFFICIENT_DISPLAY = "—"
INVALID_DISPLAY = "Invalid data"

AnalysisType = Literal["offers", "hires", "reqs", "pass_rate"]


# =============================================================================
# Safe Division
# =============================================================================


def safe_rate(numerator: float, denominator: float, as_percent: bool = False) -> SafeRateResult:
    """
    Calculate a rate without ever fabricating a value from missing data.

    Args:
        numerator: Count of successes
        denominator: Count of attempts
        as_percent: Render display_value as a whole percentage ("80%")
            instead of a two decimal ratio ("0.80")

    Returns:
        SafeRateResult with value None for 0/0 and n/0
    """
    if numerator == 0 and denominator == 0:
        return SafeRateResult(
            value=None,
            numerator=numerator,
            denominator=denominator,
            display_value=INSUFFICIENT_DISPLAY,
            is_valid=False,
            error="insufficient_data",
        )

    if denominator == 0:
        logger.warning(f"Invalid rate calculation: {numerator}/{denominator}")
        return SafeRateResult(
            value=None,
            numerator=numerator,
            denominator=denominator,
            display_value=INVALID_DISPLAY,
            is_valid=False,
            error="invalid_denominator",
        )

    rate = numerator / denominator
    display = f"{round_half_up(rate * 100)}%" if as_percent else f"{rate:.2f}"

    return SafeRateResult(
        value=rate,
        numerator=numerator,
        denominator=denominator,
        display_value=display,
        is_valid=True,
    )


def format_rate(
    numerator: float,
    denominator: float,
    as_percent: bool = True,
    min_denom: Optional[int] = None,
    decimals: int = 0,
    show_insufficient: bool = True,
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
) -> str:
    """
    Format a rate for display, hiding it when the denominator is too small.

    Args:
        numerator: Count of successes
        denominator: Count of attempts
        as_percent: Render as a percentage
        min_denom: Smallest denominator shown; defaults to
            thresholds.min_denom_for_pass_rate
        decimals: Decimal places in the rendered value
        show_insufficient: Use "Insufficient data" (True) or "—" (False)
            below min_denom
        thresholds: Gating thresholds

    Returns:
        Display string
    """
    if min_denom is None:
        min_denom = thresholds.min_denom_for_pass_rate

    if denominator < min_denom:
        return "Insufficient data" if show_insufficient else INSUFFICIENT_DISPLAY

    result = safe_rate(numerator, denominator)
    if not result.is_valid:
        return result.display_value

    if as_percent:
        return f"{result.value * 100:.{decimals}f}%"
    return f"{result.value:.{decimals}f}"


# =============================================================================
# Confidence Grading
# =============================================================================


def confidence_level(sample_size: int, threshold: float) -> ConfidenceLevel:
    """Grade a sample size against a threshold (level only)."""
    if sample_size < threshold:
        return ConfidenceLevel.INSUFFICIENT
    if sample_size >= threshold * 2:
        return ConfidenceLevel.HIGH
    if sample_size >= threshold * 1.5:
        return ConfidenceLevel.MED
    return ConfidenceLevel.LOW


def calculate_confidence(sample_size: int, threshold: float, context: str) -> DataConfidence:
    """
    Grade a sample size and explain the grade.

    Args:
        sample_size: Observed n
        threshold: Minimum n for the metric to be shown at all
        context: Plural noun used in the reason, e.g. "offers"

    Returns:
        DataConfidence with a human-readable reason
    """
    level = confidence_level(sample_size, threshold)

    if sample_size == 0:
        reason = f"No {context} data available"
    elif level == ConfidenceLevel.INSUFFICIENT:
        reason = f"Need at least {threshold} {context} (have {sample_size})"
    elif level == ConfidenceLevel.HIGH:
        reason = f"Strong sample: {sample_size} {context}"
    elif level == ConfidenceLevel.MED:
        reason = f"Adequate sample: {sample_size} {context}"
    else:
        reason = f"Limited sample: {sample_size} {context} (threshold: {threshold})"

    return DataConfidence(
        level=level,
        sample_size=sample_size,
        threshold=threshold,
        reason=reason,
    )


def has_enough_data(
    analysis_type: AnalysisType,
    sample_size: int,
    denominator: Optional[int] = None,
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """Check whether a sample clears the threshold for one analysis type."""
    if analysis_type == "offers":
        return sample_size >= thresholds.min_offers_for_decay
    if analysis_type == "hires":
        return sample_size >= thresholds.min_hires_for_fast_vs_slow
    if analysis_type == "reqs":
        return sample_size >= thresholds.min_reqs_for_req_decay
    base = denominator if denominator is not None else sample_size
    return base >= thresholds.min_denom_for_pass_rate


# =============================================================================
# Stage Timing Capability
# =============================================================================


def detect_stage_timing_capability(
    events: Sequence[PipelineEvent],
    candidates: Sequence[Candidate],
    thresholds: VelocityThresholds = DEFAULT_THRESHOLDS,
) -> StageTimingResult:
    """
    Detect which stage timing analysis the imported data supports.

    SNAPSHOT_DIFF requires enough STAGE_CHANGE events carrying both a from and
    a to stage. TIMESTAMP_ONLY requires current-stage-entered timestamps on at
    least min(10, max(1, half of the candidates)) candidates.

    Args:
        events: Pipeline events
        candidates: Candidates
        thresholds: Gating thresholds

    Returns:
        StageTimingResult
    """
    transitions = [
        e for e in events
        if e.event_type == EventType.STAGE_CHANGE
        and e.from_stage is not None
        and e.to_stage is not None
    ]
    has_snapshot_diff_events = len(transitions) >= thresholds.min_snapshot_diff_events

    stamped = sum(1 for c in candidates if c.current_stage_entered_at is not None)
    required = min(10, max(1, len(candidates) * 0.5))
    has_stage_enter_timestamps = len(candidates) > 0 and stamped >= required

    if has_snapshot_diff_events:
        return StageTimingResult(
            capability=StageTimingCapability.SNAPSHOT_DIFF,
            has_stage_enter_timestamps=has_stage_enter_timestamps,
            has_snapshot_diff_events=True,
            can_show_stage_duration=True,
            reason="Stage change events with from/to transitions available",
        )

    if has_stage_enter_timestamps:
        return StageTimingResult(
            capability=StageTimingCapability.TIMESTAMP_ONLY,
            has_stage_enter_timestamps=True,
            has_snapshot_diff_events=False,
            can_show_stage_duration=False,
            reason="Only current stage timestamps available - cannot calculate stage durations",
        )

    return StageTimingResult(
        capability=StageTimingCapability.NONE,
        has_stage_enter_timestamps=False,
        has_snapshot_diff_events=False,
        can_show_stage_duration=False,
        reason="Insufficient stage timing data - import daily snapshots to unlock",
    )
