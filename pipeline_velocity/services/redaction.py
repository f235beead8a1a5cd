"""
Redaction - keeps personal data out of everything that leaves the engine.

The fact pack may only carry numbers, fixed vocabulary and identifiers. This
module provides the three guards the builder relies on:

- normalize_stage: maps a free-text ATS stage label onto a CanonicalStage
  (UNMAPPED when nothing matches), so raw labels never reach the pack
- safe_identifier: passes through plain identifiers and replaces anything
  that is not a safe token, looks like an email or phone number, or contains
  a known personal term with a stable opaque hash token
- redact_text / contains_pii: pattern based scrubbing for free text such as
  generated insight copy and draft messages
"""

import hashlib
import re
from typing import Iterable, List, Optional, Pattern, Tuple

from pipeline_velocity.models.enums import CanonicalStage


REDACTED = "[REDACTED]"

DEFAULT_PATTERNS = {
    "email": r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}",
    "phone": r"\b\+?\d{1,3}[ .\-]?(?:\(\d{2,4}\)|\d{2,4})[ .\-]?\d{3,4}[ .\-]?\d{4}\b",
}

_PII_PATTERNS: List[Pattern[str]] = [re.compile(p) for p in DEFAULT_PATTERNS.values()]

SAFE_TOKEN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-.:]{0,63}$")

# Seven or more digits once separators are ignored, e.g. 212.867.5309 or 415/555/0199
DIGIT_RUN = re.compile(r"\d(?:[ .\-/()]*\d){6,}")

# Minimum length of a personal term checked inside identifiers
MIN_PII_TERM_LENGTH = 3


# =============================================================================
# Free Text
# =============================================================================


def contains_pii(value: Optional[str]) -> bool:
    """
    True when value contains something shaped like an email or phone number,
    including a run of seven or more digits with any separators between them.
    """
    if not value:
        return False
    if DIGIT_RUN.search(value):
        return True
    return any(regex.search(value) for regex in _PII_PATTERNS)


def redact_text(value: Optional[str]) -> str:
    """Replace every email and phone match with [REDACTED]."""
    if value is None:
        return ""
    result = str(value)
    for regex in _PII_PATTERNS:
        result = regex.sub(REDACTED, result)
    return result


# =============================================================================
# Identifiers
# =============================================================================


def pii_terms(values: Iterable[Optional[str]]) -> Tuple[str, ...]:
    """
    Collect lowercase personal terms (whole values and their words) to screen
    identifiers against, e.g. candidate names, emails and phones.

    Words without a letter, such as the digit groups of a phone number, are
    not collected on their own; contains_pii catches whole phone numbers.
    """
    terms = set()
    for value in values:
        if not value:
            continue
        lowered = value.strip().lower()
        if len(lowered) >= MIN_PII_TERM_LENGTH:
            terms.add(lowered)
        for word in re.split(r"[\s,]+", lowered):
            if len(word) >= MIN_PII_TERM_LENGTH and re.search(r"[a-z]", word):
                terms.add(word)
    return tuple(sorted(terms))


def opaque_token(value: str, prefix: str) -> str:
    """Stable, non-reversible stand-in for an unsafe identifier."""
    digest = hashlib.sha1(value.encode("utf-8")).hexdigest()[:10]
    return f"{prefix}_{digest}"


def safe_identifier(value: str, prefix: str = "id", personal_terms: Iterable[str] = ()) -> str:
    """
    Return value unchanged when it is a plain identifier, else an opaque token.

    Args:
        value: Raw identifier from the ingestion layer
        prefix: Token prefix, e.g. "req"
        personal_terms: Lowercase terms (see pii_terms) that must not appear

    Returns:
        The identifier or "<prefix>_<10 hex chars>"
    """
    if not SAFE_TOKEN.match(value) or contains_pii(value):
        return opaque_token(value, prefix)
    lowered = value.lower()
    if any(term in lowered for term in personal_terms):
        return opaque_token(value, prefix)
    return value


# =============================================================================
# Stage Labels
# =============================================================================


_STAGE_PATTERNS: Tuple[Tuple[Pattern[str], CanonicalStage], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), stage)
    for pattern, stage in (
        (r"^lead$", CanonicalStage.LEAD),
        (r"prospect", CanonicalStage.LEAD),
        (r"sourced$", CanonicalStage.LEAD),
        (r"^applied$", CanonicalStage.APPLIED),
        (r"^application", CanonicalStage.APPLIED),
        (r"^new$", CanonicalStage.APPLIED),
        (r"^submitted$", CanonicalStage.APPLIED),
        (r"recruiter.*screen", CanonicalStage.SCREEN),
        (r"phone.*screen", CanonicalStage.SCREEN),
        (r"^screen$", CanonicalStage.SCREEN),
        (r"initial.*screen", CanonicalStage.SCREEN),
        (r"ta.*screen", CanonicalStage.SCREEN),
        (r"hiring.*manager.*screen", CanonicalStage.HM_SCREEN),
        (r"hm.*screen", CanonicalStage.HM_SCREEN),
        (r"manager.*review", CanonicalStage.HM_SCREEN),
        (r"submitted.*to.*hm", CanonicalStage.HM_SCREEN),
        (r"tech.*screen", CanonicalStage.HM_SCREEN),
        (r"onsite", CanonicalStage.ONSITE),
        (r"panel.*interview", CanonicalStage.ONSITE),
        (r"virtual.*onsite", CanonicalStage.ONSITE),
        (r"interview.*loop", CanonicalStage.ONSITE),
        (r"full.*loop", CanonicalStage.ONSITE),
        (r"team.*interview", CanonicalStage.ONSITE),
        (r"^final$", CanonicalStage.FINAL),
        (r"final.*round", CanonicalStage.FINAL),
        (r"exec.*interview", CanonicalStage.FINAL),
        (r"leadership.*interview", CanonicalStage.FINAL),
        (r"debrief", CanonicalStage.FINAL),
        (r"^offer$", CanonicalStage.OFFER),
        (r"offer.*extended", CanonicalStage.OFFER),
        (r"offer.*pending", CanonicalStage.OFFER),
        (r"pending.*offer", CanonicalStage.OFFER),
        (r"^hired$", CanonicalStage.HIRED),
        (r"offer.*accepted", CanonicalStage.HIRED),
        (r"accepted", CanonicalStage.HIRED),
        (r"start.*date", CanonicalStage.HIRED),
        (r"reject", CanonicalStage.REJECTED),
        (r"declined.*by.*company", CanonicalStage.REJECTED),
        (r"not.*selected", CanonicalStage.REJECTED),
        (r"closed.*not.*hired", CanonicalStage.REJECTED),
        (r"withdrew", CanonicalStage.WITHDREW),
        (r"withdrawn", CanonicalStage.WITHDREW),
        (r"candidate.*declined", CanonicalStage.WITHDREW),
        (r"offer.*declined", CanonicalStage.WITHDREW),
        (r"no.*longer.*interested", CanonicalStage.WITHDREW),
    )
)


def normalize_stage(label: Optional[str]) -> CanonicalStage:
    """
    Map a raw ATS stage label to a canonical stage.

    Canonical values are accepted as-is (case-insensitive). Patterns are tried
    in order and the first match wins; unmatched labels become UNMAPPED.
    """
    if not label:
        return CanonicalStage.UNMAPPED
    text = label.strip()
    try:
        return CanonicalStage(text.upper())
    except ValueError:
        pass
    for regex, stage in _STAGE_PATTERNS:
        if regex.search(text):
            return stage
    return CanonicalStage.UNMAPPED
