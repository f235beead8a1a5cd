"""
Pipeline Velocity Services Module

Services:
- confidence_gate: safe rates, sample-size confidence, stage timing capability
- decay_curves: candidate (offer) and requisition decay curves
- cohort_comparison: fastest vs slowest quartile of filled requisitions
- load_performance: recruiter workload vs time-to-fill
- velocity_analysis: filtering, metric assembly, deterministic velocity insights
- redaction: PII scrubbing, safe identifiers, stage normalization
- fact_pack: the redacted VelocityFactPack and its citable paths
- citations: citation resolution and validation
- deterministic_insights: model-free copilot insights, drafts, action items
- generation_provider: HTTP client for the generation provider
- copilot: prompt building, response parsing, grounded generation

Every analysis function is pure and receives its thresholds explicitly.
"""

from pipeline_velocity.services.confidence_gate import (
    safe_rate,
    format_rate,
    calculate_confidence,
    confidence_level,
    has_enough_data,
    detect_stage_timing_capability,
)

from pipeline_velocity.services.decay_curves import (
    calculate_candidate_decay,
    calculate_req_decay,
    estimate_decay,
)

from pipeline_velocity.services.cohort_comparison import (
    calculate_cohort_comparison,
    calculate_cohort_stats,
    classify_impact,
)

from pipeline_velocity.services.load_performance import (
    analyze_load_vs_performance,
    count_concurrent_reqs,
    format_load_vs_performance_summary,
)

from pipeline_velocity.services.velocity_analysis import (
    filter_requisitions,
    calculate_velocity_metrics,
    generate_velocity_insights,
)

from pipeline_velocity.services.redaction import (
    redact_text,
    contains_pii,
    safe_identifier,
    normalize_stage,
)

from pipeline_velocity.services.fact_pack import (
    build_velocity_fact_pack,
    calculate_data_quality,
    calculate_bottleneck_stages,
    get_contributing_req_ids,
    CITABLE_FACT_PATHS,
    OPTIONAL_FACT_PATHS,
)

from pipeline_velocity.services.citations import (
    MISSING,
    resolve_citation,
    is_valid_citation,
    validate_citations,
)

from pipeline_velocity.services.deterministic_insights import (
    generate_deterministic_summary,
    generate_deterministic_draft_message,
    insight_to_action_item,
    action_id_for_title,
)

from pipeline_velocity.services.generation_provider import (
    GenerationProvider,
    GenerationProviderError,
    HttpGenerationProvider,
    build_provider,
)

from pipeline_velocity.services.copilot import (
    build_system_prompt,
    build_user_prompt,
    extract_json_object,
    parse_ai_response,
    generate_ai_insights,
    generate_draft_message,
)

__all__ = [
    # confidence_gate
    "safe_rate",
    "format_rate",
    "calculate_confidence",
    "confidence_level",
    "has_enough_data",
    "detect_stage_timing_capability",
    # decay_curves
    "calculate_candidate_decay",
    "calculate_req_decay",
    "estimate_decay",
    # cohort_comparison
    "calculate_cohort_comparison",
    "calculate_cohort_stats",
    "classify_impact",
    # load_performance
    "analyze_load_vs_performance",
    "count_concurrent_reqs",
    "format_load_vs_performance_summary",
    # velocity_analysis
    "filter_requisitions",
    "calculate_velocity_metrics",
    "generate_velocity_insights",
    # redaction
    "redact_text",
    "contains_pii",
    "safe_identifier",
    "normalize_stage",
    # fact_pack
    "build_velocity_fact_pack",
    "calculate_data_quality",
    "calculate_bottleneck_stages",
    "get_contributing_req_ids",
    "CITABLE_FACT_PATHS",
    "OPTIONAL_FACT_PATHS",
    # citations
    "MISSING",
    "resolve_citation",
    "is_valid_citation",
    "validate_citations",
    # deterministic_insights
    "generate_deterministic_summary",
    "generate_deterministic_draft_message",
    "insight_to_action_item",
    "action_id_for_title",
    # generation_provider
    "GenerationProvider",
    "GenerationProviderError",
    "HttpGenerationProvider",
    "build_provider",
    # copilot
    "build_system_prompt",
    "build_user_prompt",
    "extract_json_object",
    "parse_ai_response",
    "generate_ai_insights",
    "generate_draft_message",
]
