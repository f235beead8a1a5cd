"""
Enumeration definitions for the Pipeline Velocity engine.

All enums inherit from both `str` and `Enum` so they serialize to plain JSON
strings inside Pydantic models and inside the fact pack handed to the
generation provider.

Groups:
- Raw record enums: RequisitionStatus, CandidateDisposition, CandidateSource,
  EventType, CanonicalStage
- Gating enums: ConfidenceLevel, StageTimingCapability
- Insight enums: Severity, InsightType, ImpactLevel
- Load analysis enums: CorrelationDirection, CorrelationStrength
- Messaging / provider enums: MessageChannel, RecipientRole, ProviderKind
"""

from enum import Enum


# =============================================================================
# Raw Record Enums
# =============================================================================


class RequisitionStatus(str, Enum):
    """
    Lifecycle status of a requisition as reported by the ingestion layer.

    - Open: Actively recruiting
    - Closed: Filled (closed_at marks the fill date)
    - OnHold: Paused, not counted as open for load calculations
    - Canceled: Withdrawn, excluded from decay analysis
    """
    OPEN = "Open"
    CLOSED = "Closed"
    ON_HOLD = "OnHold"
    CANCELED = "Canceled"


class CandidateDisposition(str, Enum):
    """Final or current disposition of a candidate on a requisition."""
    ACTIVE = "Active"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"
    HIRED = "Hired"


class CandidateSource(str, Enum):
    """
    Candidate origin channel.

    Only REFERRAL is used analytically (referral share per cohort); the
    other values are accepted so raw records validate cleanly.
    """
    REFERRAL = "Referral"
    INBOUND = "Inbound"
    SOURCED = "Sourced"
    AGENCY = "Agency"
    INTERNAL = "Internal"
    OTHER = "Other"


class EventType(str, Enum):
    """
    Pipeline event types emitted by the ATS export.

    STAGE_CHANGE events carrying both from_stage and to_stage are the
    "snapshot diff" evidence used for stage timing capability detection.
    """
    STAGE_CHANGE = "STAGE_CHANGE"
    INTERVIEW_SCHEDULED = "INTERVIEW_SCHEDULED"
    INTERVIEW_COMPLETED = "INTERVIEW_COMPLETED"
    FEEDBACK_SUBMITTED = "FEEDBACK_SUBMITTED"
    OFFER_REQUESTED = "OFFER_REQUESTED"
    OFFER_APPROVED = "OFFER_APPROVED"
    OFFER_EXTENDED = "OFFER_EXTENDED"
    OFFER_ACCEPTED = "OFFER_ACCEPTED"
    OFFER_DECLINED = "OFFER_DECLINED"
    CANDIDATE_WITHDREW = "CANDIDATE_WITHDREW"
    REJECTION_SENT = "REJECTION_SENT"
    NOTE_ADDED = "NOTE_ADDED"
    EMAIL_SENT = "EMAIL_SENT"
    OUTREACH_SENT = "OUTREACH_SENT"
    SCREEN_COMPLETED = "SCREEN_COMPLETED"


class CanonicalStage(str, Enum):
    """
    Canonical pipeline stages.

    Raw ATS stage labels are free text and may carry personal data, so the
    fact pack only ever exposes one of these values. UNMAPPED is used for
    labels that match no known stage pattern.
    """
    LEAD = "LEAD"
    APPLIED = "APPLIED"
    SCREEN = "SCREEN"
    HM_SCREEN = "HM_SCREEN"
    ONSITE = "ONSITE"
    FINAL = "FINAL"
    OFFER = "OFFER"
    HIRED = "HIRED"
    REJECTED = "REJECTED"
    WITHDREW = "WITHDREW"
    UNMAPPED = "UNMAPPED"


# =============================================================================
# Gating Enums
# =============================================================================


class ConfidenceLevel(str, Enum):
    """
    Sample-size driven reliability grade.

    Computed against a threshold t:
    - INSUFFICIENT: n < t
    - LOW: t <= n < 1.5t
    - MED: 1.5t <= n < 2t
    - HIGH: n >= 2t

    Also used as the aggregate fact pack data_quality grade.
    """
    INSUFFICIENT = "INSUFFICIENT"
    LOW = "LOW"
    MED = "MED"
    HIGH = "HIGH"


class StageTimingCapability(str, Enum):
    """
    What kind of stage timing the imported data supports.

    - POINT_IN_TIME: Full stage-entry history (reserved for richer imports)
    - SNAPSHOT_DIFF: Enough from/to stage change events to derive durations
    - TIMESTAMP_ONLY: Only "current stage entered at" timestamps
    - NONE: No usable stage timing data
    """
    POINT_IN_TIME = "POINT_IN_TIME"
    SNAPSHOT_DIFF = "SNAPSHOT_DIFF"
    TIMESTAMP_ONLY = "TIMESTAMP_ONLY"
    NONE = "NONE"


# =============================================================================
# Insight Enums
# =============================================================================


class Severity(str, Enum):
    """
    Copilot insight severity.

    - P0: Blocking issue, act now
    - P1: Risk that will hurt velocity if ignored
    - P2: Optimization opportunity
    """
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"


class InsightType(str, Enum):
    """Tone of a deterministic velocity insight."""
    WARNING = "warning"
    SUCCESS = "success"
    INFO = "info"


class ImpactLevel(str, Enum):
    """Impact classification of a fast vs slow cohort factor delta."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# =============================================================================
# Load vs Performance Enums
# =============================================================================


class CorrelationDirection(str, Enum):
    """
    Direction of the workload / hire speed relationship.

    POSITIVE means higher load correlates with slower hiring.
    """
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NONE = "none"


class CorrelationStrength(str, Enum):
    """Strength of the workload / hire speed relationship."""
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    NONE = "none"


# =============================================================================
# Messaging and Provider Enums
# =============================================================================


class MessageChannel(str, Enum):
    """Delivery channel for a drafted message."""
    SLACK = "slack"
    EMAIL = "email"


class RecipientRole(str, Enum):
    """Role of the person an insight's draft message is addressed to."""
    HIRING_MANAGER = "Hiring Manager"
    RECRUITER = "Recruiter"
    TA_OPS = "TA Ops"


class ProviderKind(str, Enum):
    """
    Wire protocol spoken by the configured generation provider.

    - openai / openai_compatible: POST {base_url}/chat/completions
    - anthropic: POST {base_url}/messages
    """
    OPENAI = "openai"
    OPENAI_COMPATIBLE = "openai_compatible"
    ANTHROPIC = "anthropic"
