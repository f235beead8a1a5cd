"""
Deterministic Insight Generator - model-free insights over a fact pack.

Produces CopilotInsight objects with the same shape as generated ones, from a
fixed set of rules. Each rule cites exactly the fact pack paths it reads, so
every citation is valid by construction. Used as the fallback whenever no
generation provider is configured or generation fails.

Also converts insights into outbound artifacts:
- generate_deterministic_draft_message: Slack/email text for an action owner
- insight_to_action_item: an action queue entry with a priority based due date
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pipeline_velocity.models.enums import MessageChannel, RecipientRole, Severity
from pipeline_velocity.models.schemas import (
    ActionItem,
    CopilotInsight,
    DeepLinkParams,
    DeterministicSummary,
    DraftMessage,
    VelocityFactPack,
)
from pipeline_velocity.services.redaction import redact_text
from pipeline_velocity.services.stats import round_half_up

logger = logging.getLogger(__name__)


MAX_DETERMINISTIC_INSIGHTS = 7
MIN_OFFERS_FOR_ACCEPT_INSIGHT = 5
TTF_TARGET_DAYS = 45
TTF_RISK_DAYS = 60
ACCEPT_RISK_PERCENT = 70
ACCEPT_HEALTHY_PERCENT = 80

DUE_IN_DAYS = {
    Severity.P0: 1,
    Severity.P1: 3,
    Severity.P2: 7,
}


# =============================================================================
# Rules
# =============================================================================


def _time_to_fill(fp: VelocityFactPack) -> Optional[CopilotInsight]:
    ttf = fp.kpis.median_ttf_days
    if ttf is None:
        return None
    filled = fp.sample_sizes.total_filled
    over_target = ttf > TTF_TARGET_DAYS
    return CopilotInsight(
        id="det_ttf",
        title="Time to Fill Analysis",
        severity=Severity.P1 if ttf > TTF_RISK_DAYS else Severity.P2,
        claim=f"Median time-to-fill is {ttf} days based on {filled} filled reqs.",
        why_now=(
            "This exceeds the typical 45-day target." if over_target
            else "This is within acceptable range."
        ),
        recommended_actions=(
            ["Review stalled reqs for bottlenecks", "Engage HMs on oldest open reqs"] if over_target
            else ["Maintain current processes", "Document what works well"]
        ),
        citations=["kpis.median_ttf_days", "sample_sizes.total_filled"],
        deep_link_params=DeepLinkParams(metric_key="kpis.median_ttf_days", sample_size=filled),
    )


def _offer_acceptance(fp: VelocityFactPack) -> Optional[CopilotInsight]:
    offers = fp.sample_sizes.total_offers
    if fp.kpis.offer_accept_rate is None or offers < MIN_OFFERS_FOR_ACCEPT_INSIGHT:
        return None
    rate = round_half_up(fp.kpis.offer_accept_rate * 100)
    healthy = rate >= ACCEPT_HEALTHY_PERCENT
    return CopilotInsight(
        id="det_accept",
        title="Offer Acceptance Rate",
        severity=Severity.P1 if rate < ACCEPT_RISK_PERCENT else Severity.P2,
        claim=f"{rate}% offer acceptance rate from {offers} offers.",
        why_now=(
            "Strong acceptance indicates good candidate experience." if healthy
            else "Declining offers represent lost recruiting effort."
        ),
        recommended_actions=(
            ["Continue strong candidate engagement", "Document successful practices"] if healthy
            else ["Review declined offer reasons", "Speed up offer-to-start timeline", "Benchmark compensation"]
        ),
        citations=["kpis.offer_accept_rate", "sample_sizes.total_offers"],
        deep_link_params=DeepLinkParams(metric_key="kpis.offer_accept_rate", sample_size=offers),
    )


def _decay(fp: VelocityFactPack) -> Optional[CopilotInsight]:
    start = fp.kpis.decay_start_day
    if not fp.candidate_decay.available or start is None:
        return None
    return CopilotInsight(
        id="det_decay",
        title="Candidate Interest Decay",
        severity=Severity.P1,
        claim=f"Candidate interest begins declining after day {start} in process.",
        why_now="Candidates in process too long are less likely to accept offers.",
        recommended_actions=[
            f"Target offers within {start} days",
            "Prioritize candidates furthest along in process",
            "Remove unnecessary interview stages",
        ],
        citations=["kpis.decay_start_day", "candidate_decay.available"],
        deep_link_params=DeepLinkParams(
            metric_key="kpis.decay_start_day",
            sample_size=fp.sample_sizes.total_hires,
        ),
    )


def _cohort_gap(fp: VelocityFactPack) -> Optional[CopilotInsight]:
    block = fp.cohort_comparison
    if not block.available or block.fast_hires is None or block.slow_hires is None:
        return None
    fast_ttf = round_half_up(block.fast_hires.avg_ttf)
    slow_ttf = round_half_up(block.slow_hires.avg_ttf)
    gap = round_half_up(block.slow_hires.avg_ttf - block.fast_hires.avg_ttf)
    return CopilotInsight(
        id="det_cohort",
        title="Fast vs Slow Hire Gap",
        severity=Severity.P2,
        claim=f"{gap} day gap between fast hires ({fast_ttf}d) and slow hires ({slow_ttf}d).",
        why_now="Understanding fast hire patterns can improve overall velocity.",
        recommended_actions=[
            "Review factors table for high-impact differences",
            "Replicate fast hire practices",
            "Investigate slow hire bottlenecks",
        ],
        citations=["cohort_comparison.fast_hires", "cohort_comparison.slow_hires"],
        deep_link_params=DeepLinkParams(
            metric_key="cohort_comparison.factors",
            sample_size=block.fast_hires.count + block.slow_hires.count,
        ),
    )


def _zombie_reqs(fp: VelocityFactPack) -> Optional[CopilotInsight]:
    zombies = fp.contributing_reqs.zombie_req_ids
    if not zombies:
        return None
    return CopilotInsight(
        id="det_zombie",
        title="Zombie Requisitions",
        severity=Severity.P0,
        claim=f"{len(zombies)} reqs have had no activity for 30+ days.",
        why_now="Zombie reqs waste resources and distort metrics.",
        recommended_actions=[
            "Review each zombie req for viability",
            "Close or reassign stale reqs",
            "Engage HMs on priority",
        ],
        citations=["contributing_reqs.zombie_req_ids"],
        deep_link_params=DeepLinkParams(
            insight_type="zombie_reqs",
            filter={"req_ids": list(zombies)},
            sample_size=len(zombies),
        ),
    )


def _stage_timing(fp: VelocityFactPack) -> Optional[CopilotInsight]:
    if fp.stage_timing.can_show_duration:
        return None
    return CopilotInsight(
        id="det_stage",
        title="Stage Timing Not Available",
        severity=Severity.P2,
        claim=f"Stage duration analysis is unavailable: {fp.stage_timing.reason}",
        why_now="Stage-level bottleneck detection requires snapshot data.",
        recommended_actions=[
            "Import daily ATS snapshots to unlock stage timing",
            "Enable stage change event tracking",
        ],
        citations=["stage_timing.capability", "stage_timing.reason"],
        deep_link_params=DeepLinkParams(metric_key="stage_timing"),
    )


RULES: List[Callable[[VelocityFactPack], Optional[CopilotInsight]]] = [
    _time_to_fill,
    _offer_acceptance,
    _decay,
    _cohort_gap,
    _zombie_reqs,
    _stage_timing,
]


def generate_deterministic_summary(
    fact_pack: VelocityFactPack,
    generated_at: Optional[datetime] = None,
) -> DeterministicSummary:
    """
    Run every rule against the fact pack.

    Args:
        fact_pack: Fact pack to summarize
        generated_at: Timestamp for the summary, defaults to now (UTC)

    Returns:
        DeterministicSummary with at most 7 insights in rule order
    """
    insights = [insight for insight in (rule(fact_pack) for rule in RULES) if insight is not None]
    logger.debug(f"Deterministic rules produced {len(insights)} insights")
    return DeterministicSummary(
        insights=insights[:MAX_DETERMINISTIC_INSIGHTS],
        generated_at=generated_at or datetime.now(timezone.utc),
    )


# =============================================================================
# Draft Messages and Action Items
# =============================================================================


def generate_deterministic_draft_message(
    insight: CopilotInsight,
    recipient_role: RecipientRole,
    channel: MessageChannel,
) -> DraftMessage:
    """Template a Slack or email message for the insight's action owner."""
    first_two = " and ".join(insight.recommended_actions[:2])

    if channel == MessageChannel.SLACK:
        body = (
            f"Hi! Quick note on {insight.title.lower()}: {insight.claim} "
            f"Could you {first_two}? Thanks!"
        )
    else:
        bullets = "\n".join(f"• {a}" for a in insight.recommended_actions)
        body = (
            f"Hi,\n\nI wanted to flag something for your attention regarding {insight.title.lower()}.\n\n"
            f"{insight.claim} {insight.why_now}\n\n"
            f"Suggested next steps:\n{bullets}\n\n"
            "Let me know if you have questions.\n\nThanks!"
        )

    return DraftMessage(
        channel=channel,
        recipient_role=recipient_role,
        subject=f"Action needed: {insight.title}" if channel == MessageChannel.EMAIL else None,
        body=redact_text(body),
        insight_context=redact_text(f"{insight.title}: {insight.claim}"),
    )


def action_id_for_title(title: str) -> str:
    """Stable dedupe key, e.g. "Zombie Requisitions" -> "velocity_insight_zombie_requisitions"."""
    slug = re.sub(r"\s+", "_", title.strip().lower())
    slug = re.sub(r"[^a-z0-9_]", "", slug)
    return f"velocity_insight_{slug}"


def insight_to_action_item(insight: CopilotInsight) -> ActionItem:
    """
    Convert an insight into an action queue entry.

    Due date follows priority: P0 in 1 day, P1 in 3, P2 in 7. The first
    citation is kept as the evidence reference.
    """
    return ActionItem(
        action_id=action_id_for_title(insight.title),
        title=insight.title,
        priority=insight.severity,
        due_in_days=DUE_IN_DAYS[insight.severity],
        evidence_citation=insight.citations[0],
        description=insight.claim,
        recommended_actions=list(insight.recommended_actions),
    )
