"""
Pydantic models for the Pipeline Velocity engine.

This module provides type-safe validation and serialization for:
- Raw pipeline records supplied by the ingestion layer (requisitions,
  candidates, events) and the metric filters applied to them
- Gating results (safe rates, confidence, stage timing capability)
- Derived analyses (decay curves, fast vs slow cohorts, load vs performance)
- The VelocityFactPack, the immutable and redacted wire contract that grounds
  every generated insight
- Copilot insights, citation validation results and provider request/response
  envelopes
- API request bodies

All models use Pydantic v2 syntax. Fact pack models are frozen so a pack can
never be mutated after the builder returns it.
"""

from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer

from pipeline_velocity.models.enums import (
    CandidateDisposition,
    CanonicalStage,
    ConfidenceLevel,
    CorrelationDirection,
    CorrelationStrength,
    EventType,
    ImpactLevel,
    InsightType,
    MessageChannel,
    RecipientRole,
    RequisitionStatus,
    Severity,
    StageTimingCapability,
)


# Bumped whenever a key is added, renamed or removed from VelocityFactPack.
FACT_PACK_SCHEMA_VERSION = "1.0"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.

    Naive datetimes are assumed to already be UTC. Mixing naive and aware
    datetimes in arithmetic raises TypeError, so every timestamp entering the
    engine goes through this helper.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# Raw Pipeline Records (supplied by the ingestion layer)
# =============================================================================


class RawRecord(BaseModel):
    """Base for ingestion records: coerces every timestamp to aware UTC."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_timestamps(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return as_utc(value)
        return value


class Requisition(RawRecord):
    """
    A job requisition.

    The title and organisational attributes are accepted for filtering but
    never copied into a fact pack; only req_id may leave the engine.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "req_id": "REQ-1042",
                "req_title": "Senior Backend Engineer",
                "function": "Engineering",
                "job_family": "Software",
                "level": "L5",
                "recruiter_id": "REC-7",
                "hiring_manager_id": "HM-21",
                "opened_at": "2024-01-02T00:00:00Z",
                "closed_at": "2024-02-20T00:00:00Z",
                "status": "Closed",
            }
        }
    )

    req_id: str = Field(..., min_length=1, description="Requisition identifier")
    req_title: Optional[str] = Field(default=None, description="Free-text title (never exported)")
    function: Optional[str] = Field(default=None, description="Business function")
    job_family: Optional[str] = Field(default=None, description="Job family")
    level: Optional[str] = Field(default=None, description="Job level")
    recruiter_id: Optional[str] = Field(default=None, description="Owning recruiter identifier")
    hiring_manager_id: Optional[str] = Field(default=None, description="Hiring manager identifier")
    opened_at: Optional[datetime] = Field(default=None, description="Open date; None when missing at source")
    closed_at: Optional[datetime] = Field(default=None, description="Close (fill) date")
    status: RequisitionStatus = Field(default=RequisitionStatus.OPEN, description="Lifecycle status")


class Candidate(RawRecord):
    """
    A candidate attached to one requisition.

    name, email and phone are personal data. They are accepted so upstream
    payloads validate, and are never read by any analysis.
    """
    candidate_id: str = Field(..., min_length=1, description="Candidate identifier")
    req_id: str = Field(..., min_length=1, description="Requisition the candidate is attached to")
    name: Optional[str] = Field(default=None, description="Candidate name (PII)")
    email: Optional[str] = Field(default=None, description="Candidate email (PII)")
    phone: Optional[str] = Field(default=None, description="Candidate phone (PII)")
    source: Optional[str] = Field(default=None, description="Source channel, e.g. Referral")
    applied_at: Optional[datetime] = None
    first_contacted_at: Optional[datetime] = None
    current_stage: Optional[str] = Field(default=None, description="Raw ATS stage label")
    current_stage_entered_at: Optional[datetime] = None
    disposition: CandidateDisposition = CandidateDisposition.ACTIVE
    hired_at: Optional[datetime] = None
    offer_extended_at: Optional[datetime] = None
    offer_accepted_at: Optional[datetime] = None


class PipelineEvent(RawRecord):
    """A single pipeline event (stage change, interview, feedback, offer...)."""
    event_id: str = Field(..., min_length=1)
    candidate_id: Optional[str] = None
    req_id: str = Field(..., min_length=1)
    event_type: EventType
    from_stage: Optional[str] = None
    to_stage: Optional[str] = None
    actor_user_id: Optional[str] = None
    event_at: datetime
    metadata_json: Optional[str] = None


class DateRange(RawRecord):
    """Inclusive analysis window supplied by the caller."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class MetricFilters(RawRecord):
    """
    Filters applied to requisitions before any metric is computed.

    Empty lists mean "no filter" for that dimension. The date range is
    recorded in the fact pack metadata; records are expected to be pre-scoped
    to it by the ingestion layer.
    """
    date_range: Optional[DateRange] = None
    recruiter_ids: List[str] = Field(default_factory=list)
    functions: List[str] = Field(default_factory=list)
    job_families: List[str] = Field(default_factory=list)
    levels: List[str] = Field(default_factory=list)
    hiring_manager_ids: List[str] = Field(default_factory=list)


# =============================================================================
# Gating Results
# =============================================================================


class SafeRateResult(BaseModel):
    """
    Outcome of a guarded division.

    value is None whenever the rate is undefined (0/0) or impossible (n/0);
    display_value is what a UI may show verbatim.
    """
    value: Optional[float] = None
    numerator: float
    denominator: float
    display_value: str
    is_valid: bool
    error: Optional[Literal["insufficient_data", "invalid_denominator"]] = None


class DataConfidence(BaseModel):
    """Confidence grade with the sample size and threshold it was derived from."""
    level: ConfidenceLevel
    sample_size: int
    threshold: float
    reason: str


class StageTimingResult(BaseModel):
    """Stage timing capability detected from events and candidates."""
    capability: StageTimingCapability
    has_stage_enter_timestamps: bool
    has_snapshot_diff_events: bool
    can_show_stage_duration: bool
    reason: str


# =============================================================================
# Decay Curve Analyses
# =============================================================================


class DecayDataPoint(BaseModel):
    """One elapsed-day bucket of a decay curve."""
    bucket: str = Field(..., description="Bucket label, e.g. '15-21 days'")
    min_days: int = Field(..., ge=0)
    max_days: Optional[int] = Field(default=None, description="Upper bound, None for open-ended")
    count: int = Field(..., ge=0)
    rate: float = Field(..., ge=0.0, le=1.0, description="Outcome rate, 0 for empty buckets")
    cumulative_rate: float = Field(default=0.0, ge=0.0, le=1.0)


class CandidateDecayAnalysis(BaseModel):
    """Offer acceptance rate by days from application to offer."""
    data_points: List[DecayDataPoint] = Field(default_factory=list)
    median_days_to_decision: Optional[int] = None
    overall_acceptance_rate: float = 0.0
    total_offers: int = 0
    total_accepted: int = 0
    decay_rate_per_day: Optional[float] = None
    decay_start_day: Optional[int] = None


class ReqDecayAnalysis(BaseModel):
    """Requisition fill rate by days open."""
    data_points: List[DecayDataPoint] = Field(default_factory=list)
    median_days_to_fill: Optional[int] = None
    overall_fill_rate: float = 0.0
    total_reqs: int = 0
    total_filled: int = 0
    decay_rate_per_day: Optional[float] = None
    decay_start_day: Optional[int] = None


# =============================================================================
# Cohort Comparison
# =============================================================================


class CohortStats(BaseModel):
    """Aggregates for one hire cohort (fast quartile, slow quartile or all)."""
    count: int = Field(..., ge=0)
    avg_time_to_fill: float = 0.0
    median_time_to_fill: float = 0.0
    avg_hm_latency_hours: float = 0.0
    referral_percent: float = Field(default=0.0, ge=0.0, le=100.0)
    avg_pipeline_depth: float = 0.0
    avg_interviews_per_hire: float = 0.0
    avg_submittals_per_hire: float = 0.0


class SuccessFactor(BaseModel):
    """
    A factor contrasted between fast and slow hires.

    Values are display strings (whole numbers or one decimal depending on the
    factor); delta_value keeps the unrounded signed difference.
    """
    factor: str
    fast_value: str
    slow_value: str
    delta: str
    delta_value: float
    unit: str
    impact_level: ImpactLevel


class CohortComparison(BaseModel):
    """Fastest vs slowest quartile of completed hires."""
    fast_hires: CohortStats
    slow_hires: CohortStats
    all_hires: CohortStats
    factors: List[SuccessFactor] = Field(default_factory=list)


# =============================================================================
# Load vs Performance
# =============================================================================


class LoadBucket(BaseModel):
    """Hires grouped by the recruiter's concurrent open requisitions."""
    label: str
    min_reqs: int
    max_reqs: Optional[int] = Field(default=None, description="None for the open-ended bucket")
    hire_count: int = 0
    median_ttf: Optional[float] = None
    avg_ttf: Optional[float] = None
    ttf_values: List[int] = Field(default_factory=list)


class LoadCorrelation(BaseModel):
    direction: CorrelationDirection
    strength: CorrelationStrength
    description: str


class LoadVsPerformanceResult(BaseModel):
    """Relationship between recruiter workload and hire speed."""
    buckets: List[LoadBucket]
    correlation: LoadCorrelation
    sample_size: int
    confidence: ConfidenceLevel
    insight: str


# =============================================================================
# Velocity Metrics
# =============================================================================


class VelocityInsight(BaseModel):
    """
    Narrative insight derived from decay and cohort analyses.

    These are produced without any generation model and are embedded in the
    fact pack as deterministic_insights.
    """
    type: InsightType
    title: str
    description: str
    metric: Optional[str] = None
    action: Optional[str] = None
    evidence: Optional[str] = None
    sample_size: int = 0
    so_what: Optional[str] = None
    next_step: Optional[str] = None
    confidence: ConfidenceLevel = ConfidenceLevel.INSUFFICIENT


class VelocityMetrics(BaseModel):
    """Everything the fact pack builder consumes besides the raw records."""
    candidate_decay: CandidateDecayAnalysis
    req_decay: ReqDecayAnalysis
    cohort_comparison: Optional[CohortComparison] = None
    insights: List[VelocityInsight] = Field(default_factory=list)


# =============================================================================
# Velocity Fact Pack (wire contract)
# =============================================================================


class FactPackModel(BaseModel):
    """
    Base for every fact pack node.

    Frozen. Optional keys listed in `omit_when_none` are left out of the
    serialized value instead of being emitted as null, so a citation to an
    absent field cannot resolve.
    """
    model_config = ConfigDict(frozen=True)

    omit_when_none: ClassVar[Tuple[str, ...]] = ()

    @model_serializer(mode="wrap")
    def _omit_absent_keys(self, handler) -> Dict[str, Any]:
        data = handler(self)
        for key in self.omit_when_none:
            if data.get(key) is None:
                data.pop(key, None)
        return data


class FactDateRange(FactPackModel):
    start: str
    end: str


class FactMetadata(FactPackModel):
    schema_version: str = FACT_PACK_SCHEMA_VERSION
    generated_at: str
    date_range: FactDateRange
    data_quality: ConfidenceLevel


class FactSampleSizes(FactPackModel):
    total_offers: int
    total_accepted: int
    total_reqs: int
    total_filled: int
    total_hires: int
    fast_hires_cohort: int
    slow_hires_cohort: int


class FactKpis(FactPackModel):
    median_ttf_days: Optional[int] = None
    offer_accept_rate: Optional[float] = None
    overall_fill_rate: Optional[float] = None
    decay_rate_per_day: Optional[float] = None
    req_decay_rate_per_day: Optional[float] = None
    decay_start_day: Optional[int] = None


class FactStageTiming(FactPackModel):
    capability: StageTimingCapability
    can_show_duration: bool
    reason: str


class DecayBucket(FactPackModel):
    label: str
    count: int = Field(..., ge=0)
    rate: float = Field(..., ge=0.0, le=1.0)


class GatedDecayBlock(FactPackModel):
    omit_when_none: ClassVar[Tuple[str, ...]] = ("gating_reason",)

    available: bool
    gating_reason: Optional[str] = None
    buckets: List[DecayBucket] = Field(default_factory=list)


class FactCohortStats(FactPackModel):
    count: int
    avg_ttf: float
    median_ttf: float
    referral_percent: float
    avg_pipeline_depth: float
    avg_interviews_per_hire: float


class FactCohortFactor(FactPackModel):
    name: str
    fast_value: str
    slow_value: str
    delta: str
    impact: ImpactLevel


class CohortComparisonBlock(FactPackModel):
    omit_when_none: ClassVar[Tuple[str, ...]] = (
        "gating_reason",
        "fast_hires",
        "slow_hires",
        "factors",
    )

    available: bool
    gating_reason: Optional[str] = None
    fast_hires: Optional[FactCohortStats] = None
    slow_hires: Optional[FactCohortStats] = None
    factors: Optional[List[FactCohortFactor]] = None


class BottleneckStage(FactPackModel):
    stage: CanonicalStage
    avg_days: int
    count: int


class ContributingReqs(FactPackModel):
    stalled_req_ids: List[str] = Field(default_factory=list)
    zombie_req_ids: List[str] = Field(default_factory=list)
    slow_fill_req_ids: List[str] = Field(default_factory=list)
    fast_fill_req_ids: List[str] = Field(default_factory=list)


class MetricDefinitions(FactPackModel):
    median_ttf: str
    offer_accept_rate: str
    decay_rate: str
    fast_hires: str
    slow_hires: str


class FactInsight(FactPackModel):
    omit_when_none: ClassVar[Tuple[str, ...]] = ("so_what", "next_step")

    title: str
    type: InsightType
    description: str
    sample_size: int
    confidence: ConfidenceLevel
    so_what: Optional[str] = None
    next_step: Optional[str] = None


class VelocityFactPack(FactPackModel):
    """
    Immutable, PII-free snapshot of computed velocity metrics.

    This is the only ground truth a generation model may reference. Key names
    are a stable wire contract (see metadata.schema_version); citable dot
    paths are enumerated in services.fact_pack.CITABLE_FACT_PATHS.
    """
    metadata: FactMetadata
    sample_sizes: FactSampleSizes
    kpis: FactKpis
    stage_timing: FactStageTiming
    candidate_decay: GatedDecayBlock
    req_decay: GatedDecayBlock
    cohort_comparison: CohortComparisonBlock
    bottleneck_stages: List[BottleneckStage] = Field(default_factory=list)
    contributing_reqs: ContributingReqs
    definitions: MetricDefinitions
    deterministic_insights: List[FactInsight] = Field(default_factory=list)

    def to_citable_dict(self) -> Dict[str, Any]:
        """Decoded structural value (dict/list/scalar tree) used for citations and prompts."""
        return self.model_dump(mode="json")


# =============================================================================
# Copilot Insights and Validation
# =============================================================================


class DeepLinkParams(BaseModel):
    """Hints for the UI to open the evidence behind an insight."""
    insight_type: Optional[str] = None
    metric_key: Optional[str] = None
    filter: Optional[Dict[str, Any]] = None
    sample_size: Optional[int] = None


class CopilotInsight(BaseModel):
    """
    A grounded insight, generated either by the provider or deterministically.

    Every citation is a dot path into the fact pack the insight was produced
    from.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "det_ttf",
                "title": "Time to Fill Analysis",
                "severity": "P2",
                "claim": "Median time-to-fill is 35 days based on 15 filled reqs.",
                "why_now": "This is within acceptable range.",
                "recommended_actions": ["Maintain current processes"],
                "citations": ["kpis.median_ttf_days", "sample_sizes.total_filled"],
            }
        }
    )

    id: str
    title: str = Field(..., min_length=1)
    severity: Severity
    claim: str = Field(..., min_length=1, description="One-sentence finding")
    why_now: str = Field(..., description="One-sentence urgency rationale")
    recommended_actions: List[str] = Field(default_factory=list, max_length=3)
    citations: List[str] = Field(..., min_length=1, description="Fact pack dot paths")
    deep_link_params: Optional[DeepLinkParams] = None


class CitationValidationResult(BaseModel):
    valid: bool
    invalid_citations: List[str] = Field(default_factory=list)
    missing_citations: bool = False
    error: Optional[str] = None


class CopilotResponse(BaseModel):
    """
    Result of one insight generation call.

    On any failure insights is empty and error carries a readable reason.
    validation aggregates citation problems across kept insights.
    """
    insights: List[CopilotInsight] = Field(default_factory=list)
    model_used: str
    generated_at: datetime
    latency_ms: int = 0
    tokens_used: Optional[int] = None
    error: Optional[str] = None
    validation: Optional[CitationValidationResult] = None
    warnings: List[str] = Field(default_factory=list)


class DeterministicSummary(BaseModel):
    insights: List[CopilotInsight] = Field(default_factory=list, max_length=7)
    generated_at: datetime


class DraftMessage(BaseModel):
    """Draft note to an action owner; contains no candidate data."""
    channel: MessageChannel
    recipient_role: RecipientRole
    subject: Optional[str] = None
    body: str
    insight_context: str


class ActionItem(BaseModel):
    """Generic actionable record handed to the action-queue collaborator."""
    action_id: str
    title: str
    priority: Severity
    due_in_days: int
    evidence_citation: str
    description: str
    recommended_actions: List[str] = Field(default_factory=list)


# =============================================================================
# Generation Provider Contract
# =============================================================================


class ProviderMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ProviderUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class ProviderErrorInfo(BaseModel):
    code: str
    message: str


class ProviderRequest(BaseModel):
    system_prompt: str
    messages: List[ProviderMessage]
    task_type: str


class ProviderResponse(BaseModel):
    content: str = ""
    model: str = ""
    usage: ProviderUsage = Field(default_factory=ProviderUsage)
    latency_ms: int = 0
    error: Optional[ProviderErrorInfo] = None


# =============================================================================
# API Request Bodies
# =============================================================================


class VelocityDataRequest(BaseModel):
    """Raw records plus filters; as_of defaults to the request time."""
    requisitions: List[Requisition] = Field(default_factory=list)
    candidates: List[Candidate] = Field(default_factory=list)
    events: List[PipelineEvent] = Field(default_factory=list)
    filters: MetricFilters = Field(default_factory=MetricFilters)
    as_of: Optional[datetime] = None


class AIInsightsRequest(VelocityDataRequest):
    fallback_to_deterministic: bool = Field(
        default=False,
        description="Return deterministic insights when the provider call fails",
    )


class CitationValidationRequest(BaseModel):
    citations: List[str]
    fact_pack: VelocityFactPack


class DraftMessageRequest(BaseModel):
    insight: CopilotInsight
    recipient_role: RecipientRole = RecipientRole.HIRING_MANAGER
    channel: MessageChannel = MessageChannel.SLACK
    use_ai: bool = False
