"""
Package initialization file for the Pipeline Velocity models.

Exports all Pydantic schemas and enumerations from schemas.py and enums.py so
other modules can import them from pipeline_velocity.models directly.

Usage:
    from pipeline_velocity.models import (
        Requisition,
        Candidate,
        VelocityFactPack,
        CopilotInsight,
        # ... etc
    )
"""

# =============================================================================
# Enums
# =============================================================================

from pipeline_velocity.models.enums import (
    # Raw record vocabulary
    RequisitionStatus,
    CandidateDisposition,
    CandidateSource,
    EventType,
    CanonicalStage,
    # Gating
    ConfidenceLevel,
    StageTimingCapability,
    # Insights
    Severity,
    InsightType,
    ImpactLevel,
    CorrelationDirection,
    CorrelationStrength,
    MessageChannel,
    RecipientRole,
    ProviderKind,
)

# =============================================================================
# Schemas
# =============================================================================

from pipeline_velocity.models.schemas import (
    FACT_PACK_SCHEMA_VERSION,
    as_utc,
    # Raw records
    Requisition,
    Candidate,
    PipelineEvent,
    DateRange,
    MetricFilters,
    # Gate results
    SafeRateResult,
    DataConfidence,
    StageTimingResult,
    # Analyses
    DecayDataPoint,
    CandidateDecayAnalysis,
    ReqDecayAnalysis,
    CohortStats,
    SuccessFactor,
    CohortComparison,
    LoadBucket,
    LoadCorrelation,
    LoadVsPerformanceResult,
    VelocityInsight,
    VelocityMetrics,
    # Fact pack
    FactDateRange,
    FactMetadata,
    FactSampleSizes,
    FactKpis,
    FactStageTiming,
    DecayBucket,
    GatedDecayBlock,
    FactCohortStats,
    FactCohortFactor,
    CohortComparisonBlock,
    BottleneckStage,
    ContributingReqs,
    MetricDefinitions,
    FactInsight,
    VelocityFactPack,
    # Copilot
    DeepLinkParams,
    CopilotInsight,
    CitationValidationResult,
    CopilotResponse,
    DeterministicSummary,
    DraftMessage,
    ActionItem,
    # Provider envelopes
    ProviderMessage,
    ProviderUsage,
    ProviderErrorInfo,
    ProviderRequest,
    ProviderResponse,
    # API requests
    VelocityDataRequest,
    AIInsightsRequest,
    CitationValidationRequest,
    DraftMessageRequest,
)

__all__ = [
    # Enums
    "RequisitionStatus",
    "CandidateDisposition",
    "CandidateSource",
    "EventType",
    "CanonicalStage",
    "ConfidenceLevel",
    "StageTimingCapability",
    "Severity",
    "InsightType",
    "ImpactLevel",
    "CorrelationDirection",
    "CorrelationStrength",
    "MessageChannel",
    "RecipientRole",
    "ProviderKind",
    # Schemas
    "FACT_PACK_SCHEMA_VERSION",
    "as_utc",
    "Requisition",
    "Candidate",
    "PipelineEvent",
    "DateRange",
    "MetricFilters",
    "SafeRateResult",
    "DataConfidence",
    "StageTimingResult",
    "DecayDataPoint",
    "CandidateDecayAnalysis",
    "ReqDecayAnalysis",
    "CohortStats",
    "SuccessFactor",
    "CohortComparison",
    "LoadBucket",
    "LoadCorrelation",
    "LoadVsPerformanceResult",
    "VelocityInsight",
    "VelocityMetrics",
    "FactDateRange",
    "FactMetadata",
    "FactSampleSizes",
    "FactKpis",
    "FactStageTiming",
    "DecayBucket",
    "GatedDecayBlock",
    "FactCohortStats",
    "FactCohortFactor",
    "CohortComparisonBlock",
    "BottleneckStage",
    "ContributingReqs",
    "MetricDefinitions",
    "FactInsight",
    "VelocityFactPack",
    "DeepLinkParams",
    "CopilotInsight",
    "CitationValidationResult",
    "CopilotResponse",
    "DeterministicSummary",
    "DraftMessage",
    "ActionItem",
    "ProviderMessage",
    "ProviderUsage",
    "ProviderErrorInfo",
    "ProviderRequest",
    "ProviderResponse",
    "VelocityDataRequest",
    "AIInsightsRequest",
    "CitationValidationRequest",
    "DraftMessageRequest",
]
