"""
Pytest Configuration and Shared Fixtures for Pipeline Velocity Tests.

This module provides:
- Record factories (requisitions, candidates, events) anchored to a fixed
  AS_OF timestamp so every duration in the tests is deterministic
- A rich scenario: 24 filled + 2 open requisitions, 15 offers (12 accepted),
  stage change events and feedback events; clears every gate (HIGH quality)
- A sparse scenario: 3 offers, 2 requisitions, no events; clears no gate
  (INSUFFICIENT quality)
- Fact packs built from both scenarios
- FakeProvider, a generation provider double with canned replies

Candidate names, emails and phone numbers in the scenarios are distinctive
so redaction tests can search the serialized fact pack for them.

Dependencies:
- pytest
- pytest-asyncio (async provider and orchestrator tests)
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest

from pipeline_velocity.core.config import VelocityThresholds
from pipeline_velocity.models.enums import (
    CandidateDisposition,
    EventType,
    RequisitionStatus,
)
from pipeline_velocity.models.schemas import (
    Candidate,
    MetricFilters,
    PipelineEvent,
    ProviderErrorInfo,
    ProviderRequest,
    ProviderResponse,
    ProviderUsage,
    Requisition,
    VelocityFactPack,
)
from pipeline_velocity.services.fact_pack import build_velocity_fact_pack
from pipeline_velocity.services.generation_provider import GenerationProvider
from pipeline_velocity.services.velocity_analysis import calculate_velocity_metrics


AS_OF = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)

# Time-to-fill (days) of the 24 filled requisitions in the rich scenario
RICH_TTF_DAYS = [
    10, 12, 14, 16, 18, 20,
    22, 24, 26, 28, 30, 32,
    34, 36, 38, 40, 42, 44,
    60, 65, 70, 75, 80, 85,
]

PEOPLE = [
    ("Zelda Quixote", "zelda.quixote@example.com", "+1 415 555 0134"),
    ("Bartholomew Xenakis", "bart.xenakis@example.org", "(212) 555-0199"),
    ("Ingrid Vasquez-Oyelaran", "ingrid.vo@mail.example.net", "+44 20 7946 0958"),
]

Records = Tuple[List[Requisition], List[Candidate], List[PipelineEvent]]


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - redaction: adversarial PII tests against the fact pack
    - api: tests that exercise the FastAPI surface through TestClient
    """
    config.addinivalue_line(
        'markers',
        'redaction: adversarial PII tests against the serialized fact pack'
    )
    config.addinivalue_line(
        'markers',
        'api: tests that exercise the HTTP surface'
    )


# ============================================================
# RECORD FACTORIES
# ============================================================

def days_ago(days: float) -> datetime:
    return AS_OF - timedelta(days=days)


def make_requisition(
    req_id: str,
    opened_at: Optional[datetime],
    closed_at: Optional[datetime] = None,
    status: Optional[RequisitionStatus] = None,
    recruiter_id: Optional[str] = "rec_a",
    **kwargs,
) -> Requisition:
    """Requisition; status defaults to Closed when closed_at is given, else Open."""
    if status is None:
        status = RequisitionStatus.CLOSED if closed_at is not None else RequisitionStatus.OPEN
    return Requisition(
        req_id=req_id,
        opened_at=opened_at,
        closed_at=closed_at,
        status=status,
        recruiter_id=recruiter_id,
        **kwargs,
    )


def make_candidate(
    candidate_id: str,
    req_id: str,
    person: int = 0,
    **kwargs,
) -> Candidate:
    """Candidate carrying one of the PEOPLE identities."""
    name, email, phone = PEOPLE[person % len(PEOPLE)]
    return Candidate(
        candidate_id=candidate_id,
        req_id=req_id,
        name=name,
        email=email,
        phone=phone,
        **kwargs,
    )


def make_event(
    event_id: str,
    req_id: str,
    event_type: EventType,
    event_at: datetime,
    candidate_id: Optional[str] = None,
    **kwargs,
) -> PipelineEvent:
    return PipelineEvent(
        event_id=event_id,
        req_id=req_id,
        event_type=event_type,
        event_at=event_at,
        candidate_id=candidate_id,
        **kwargs,
    )


# ============================================================
# SCENARIOS
# ============================================================

def build_rich_records() -> Records:
    """
    24 filled requisitions plus one zombie and one stalled open requisition.

    Offers (days from application to offer):
    - 6 accepted at day 5, 3 accepted at day 18, 3 accepted at day 35
    - 3 declined at day 40
    so the 31-45 day bucket accepts at 50% and decay starts on day 31.

    The fastest quartile is all referrals with 12h feedback latency; the
    slowest quartile has no referrals and 72h latency.
    """
    requisitions: List[Requisition] = []
    candidates: List[Candidate] = []
    events: List[PipelineEvent] = []

    offer_days = [5] * 6 + [18] * 3 + [35] * 3

    for i, ttf in enumerate(RICH_TTF_DAYS):
        req_id = f"REQ-{i + 1:03d}"
        opened = days_ago(200 - i)
        closed = opened + timedelta(days=ttf)
        requisitions.append(make_requisition(
            req_id,
            opened_at=opened,
            closed_at=closed,
            recruiter_id="rec_a" if i % 2 == 0 else "rec_b",
            hiring_manager_id="hm_1",
            function="Engineering",
            req_title=f"Backend Engineer reporting to {PEOPLE[0][0]}",
        ))

        candidate_id = f"CAND-{i + 1:03d}"
        applied = opened + timedelta(days=1)
        offer_fields = {}
        if i < len(offer_days):
            offer_at = applied + timedelta(days=offer_days[i])
            offer_fields = {"offer_extended_at": offer_at, "offer_accepted_at": offer_at + timedelta(days=1)}
        candidates.append(make_candidate(
            candidate_id,
            req_id,
            person=i,
            source="Referral" if i < 6 else "LinkedIn",
            applied_at=applied,
            disposition=CandidateDisposition.HIRED,
            hired_at=closed,
            current_stage="Hired",
            **offer_fields,
        ))

        if i < 10:
            events.append(make_event(
                f"EVT-SC-{i}", req_id, EventType.STAGE_CHANGE, opened + timedelta(days=3),
                candidate_id=candidate_id, from_stage="Recruiter Screen", to_stage="HM Screen",
            ))

        if i < 6 or i >= 18:
            interview_at = opened + timedelta(days=5)
            latency = 12 if i < 6 else 72
            events.append(make_event(
                f"EVT-INT-{i}", req_id, EventType.INTERVIEW_COMPLETED, interview_at,
                candidate_id=candidate_id,
            ))
            events.append(make_event(
                f"EVT-FB-{i}", req_id, EventType.FEEDBACK_SUBMITTED,
                interview_at + timedelta(hours=latency),
                candidate_id=candidate_id,
            ))

    # Declined offers on three middle requisitions
    for j, req_index in enumerate((12, 13, 14)):
        req = requisitions[req_index]
        applied = req.opened_at + timedelta(days=2)
        candidates.append(make_candidate(
            f"CAND-D{j + 1}",
            req.req_id,
            person=j + 1,
            applied_at=applied,
            offer_extended_at=applied + timedelta(days=40),
            disposition=CandidateDisposition.WITHDRAWN,
            current_stage="Offer Declined",
        ))

    requisitions.append(make_requisition("REQ-Z01", opened_at=days_ago(90)))
    requisitions.append(make_requisition("REQ-S01", opened_at=days_ago(20)))

    for k in range(3):
        candidates.append(make_candidate(
            f"CAND-ON{k}", "REQ-S01", person=k,
            applied_at=days_ago(18),
            current_stage="Onsite Interview",
            current_stage_entered_at=days_ago(10),
        ))
        candidates.append(make_candidate(
            f"CAND-PS{k}", "REQ-Z01", person=k,
            applied_at=days_ago(60),
            current_stage="Phone Screen",
            current_stage_entered_at=days_ago(40),
        ))

    return requisitions, candidates, events


def build_sparse_records() -> Records:
    """One filled and one open requisition, three offers, no events."""
    opened = days_ago(100)
    requisitions = [
        make_requisition("REQ-A", opened_at=opened, closed_at=opened + timedelta(days=40)),
        make_requisition("REQ-B", opened_at=days_ago(45)),
    ]
    applied = opened + timedelta(days=2)
    offer_at = applied + timedelta(days=10)
    candidates = [
        make_candidate(
            "CAND-1", "REQ-A", person=0, applied_at=applied,
            offer_extended_at=offer_at, offer_accepted_at=offer_at + timedelta(days=2),
            disposition=CandidateDisposition.HIRED, hired_at=opened + timedelta(days=40),
        ),
        make_candidate(
            "CAND-2", "REQ-A", person=1, applied_at=applied,
            offer_extended_at=offer_at, offer_accepted_at=offer_at + timedelta(days=1),
            disposition=CandidateDisposition.REJECTED,
        ),
        make_candidate(
            "CAND-3", "REQ-A", person=2, applied_at=applied,
            offer_extended_at=offer_at, disposition=CandidateDisposition.WITHDRAWN,
        ),
    ]
    return requisitions, candidates, []


def build_fact_pack(
    records: Records,
    thresholds: Optional[VelocityThresholds] = None,
    filters: Optional[MetricFilters] = None,
) -> VelocityFactPack:
    thresholds = thresholds or VelocityThresholds()
    requisitions, candidates, events = records
    metrics = calculate_velocity_metrics(
        candidates, requisitions, events, filters=filters, thresholds=thresholds, as_of=AS_OF
    )
    return build_velocity_fact_pack(
        metrics, requisitions, candidates, events,
        filters=filters, thresholds=thresholds, as_of=AS_OF,
    )


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def thresholds() -> VelocityThresholds:
    return VelocityThresholds()


@pytest.fixture
def rich_records() -> Records:
    return build_rich_records()


@pytest.fixture
def sparse_records() -> Records:
    return build_sparse_records()


@pytest.fixture
def rich_fact_pack(rich_records: Records) -> VelocityFactPack:
    return build_fact_pack(rich_records)


@pytest.fixture
def sparse_fact_pack(sparse_records: Records) -> VelocityFactPack:
    return build_fact_pack(sparse_records)


# ============================================================
# GENERATION PROVIDER DOUBLE
# ============================================================

class FakeProvider(GenerationProvider):
    """Returns fixed content or an error payload, or raises; records every request."""

    def __init__(
        self,
        content: str = "",
        error: Optional[ProviderErrorInfo] = None,
        raises: Optional[Exception] = None,
    ):
        self.model = "fake-model"
        self.content = content
        self.error = error
        self.raises = raises
        self.requests: List[ProviderRequest] = []

    async def complete(self, request: ProviderRequest) -> ProviderResponse:
        self.requests.append(request)
        if self.raises is not None:
            raise self.raises
        return ProviderResponse(
            content=self.content,
            model=self.model,
            usage=ProviderUsage(input_tokens=30, output_tokens=12, total_tokens=42),
            latency_ms=250,
            error=self.error,
        )
