"""
Citation Validator - checks that generated insights only reference facts
that exist in the fact pack they were generated from.

A citation is a dot path such as "kpis.median_ttf_days" or
"bottleneck_stages.0.avg_days". It resolves by walking the decoded fact pack:
dict keys by name, list elements by numeric index. A path is valid when it
resolves to anything, including null; it is invalid when any segment is
absent.
"""

import logging
from typing import Any, List, Sequence, Union

from pipeline_velocity.models.schemas import CitationValidationResult, VelocityFactPack

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel type for an unresolvable citation."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def resolve_citation(path: str, decoded: Any) -> Union[Any, _Missing]:
    """
    Resolve a dot path against a decoded fact pack.

    Args:
        path: Dot separated path, numeric segments index into lists
        decoded: Output of VelocityFactPack.to_citable_dict()

    Returns:
        The value at the path (may be None) or MISSING
    """
    if not path:
        return MISSING

    current = decoded
    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, list):
            if not segment.isdigit():
                return MISSING
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def is_valid_citation(path: str, decoded: Any) -> bool:
    return resolve_citation(path, decoded) is not MISSING


def validate_citations(
    citations: Sequence[str],
    fact_pack: Union[VelocityFactPack, dict],
) -> CitationValidationResult:
    """
    Validate every citation against the fact pack.

    An empty citation list is reported as missing_citations and is never valid.
    """
    if not citations:
        return CitationValidationResult(
            valid=False,
            missing_citations=True,
            error="No citations provided",
        )

    decoded = fact_pack.to_citable_dict() if isinstance(fact_pack, VelocityFactPack) else fact_pack
    invalid: List[str] = [c for c in citations if not is_valid_citation(c, decoded)]

    if invalid:
        logger.info(f"{len(invalid)} of {len(citations)} citations did not resolve: {invalid}")
        return CitationValidationResult(
            valid=False,
            invalid_citations=invalid,
            error=f"Invalid citations: {', '.join(invalid)}",
        )
    return CitationValidationResult(valid=True)
