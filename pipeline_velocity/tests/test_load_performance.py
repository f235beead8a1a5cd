"""
Tests for the recruiter workload vs time-to-fill analyzer.
"""

from datetime import timedelta
from typing import List, Tuple

from pipeline_velocity.models.enums import (
    CandidateDisposition,
    ConfidenceLevel,
    CorrelationDirection,
    CorrelationStrength,
    RequisitionStatus,
)
from pipeline_velocity.models.schemas import Candidate, Requisition
from pipeline_velocity.services.load_performance import (
    INSUFFICIENT_INSIGHT,
    analyze_load_vs_performance,
    count_concurrent_reqs,
    format_load_vs_performance_summary,
)
from pipeline_velocity.tests.conftest import days_ago, make_candidate, make_requisition


def _desk(recruiter_id: str, req_count: int, ttf_days: int, opened_days_ago: int = 120) -> Tuple[List[Requisition], List[Candidate]]:
    """A recruiter whose requisitions all open and close together, one hire each."""
    opened = days_ago(opened_days_ago)
    closed = opened + timedelta(days=ttf_days + 5)
    reqs, hires = [], []
    for i in range(req_count):
        req_id = f"{recruiter_id}-{i}"
        reqs.append(make_requisition(req_id, opened_at=opened, closed_at=closed, recruiter_id=recruiter_id))
        hires.append(make_candidate(
            f"{req_id}-hire", req_id,
            disposition=CandidateDisposition.HIRED,
            applied_at=closed - timedelta(days=ttf_days),
            hired_at=closed,
        ))
    return reqs, hires


def _scenario(light_ttf: int, heavy_ttf: int, heavy_reqs: int = 16):
    light_reqs, light_hires = _desk("light", 3, light_ttf)
    heavy_reqs_list, heavy_hires = _desk("heavy", heavy_reqs, heavy_ttf)
    return light_reqs + heavy_reqs_list, light_hires + heavy_hires


class TestCountConcurrentReqs:

    def test_counts_requisitions_open_on_hire_date(self) -> None:
        hire_date = days_ago(30)
        reqs = [
            make_requisition("A", opened_at=days_ago(90), closed_at=days_ago(10), recruiter_id="r1"),
            make_requisition("B", opened_at=days_ago(90), closed_at=days_ago(40), recruiter_id="r1"),
            make_requisition("C", opened_at=days_ago(60), recruiter_id="r1"),
            make_requisition("D", opened_at=days_ago(5), recruiter_id="r1"),
            make_requisition("E", opened_at=days_ago(90), recruiter_id="r2"),
            make_requisition("F", opened_at=None, recruiter_id="r1"),
            make_requisition("G", opened_at=days_ago(90), closed_at=hire_date, recruiter_id="r1"),
        ]
        assert count_concurrent_reqs("r1", hire_date, reqs) == 3

    def test_on_hold_without_close_date_is_not_counted(self) -> None:
        reqs = [make_requisition("A", opened_at=days_ago(90), status=RequisitionStatus.ON_HOLD, recruiter_id="r1")]
        assert count_concurrent_reqs("r1", days_ago(30), reqs) == 0


class TestAnalyzeLoadVsPerformance:

    def test_higher_load_slower_hiring(self) -> None:
        reqs, hires = _scenario(light_ttf=20, heavy_ttf=40)
        result = analyze_load_vs_performance(reqs, hires)

        assert result.sample_size == 19
        assert result.confidence == ConfidenceLevel.LOW
        assert result.correlation.direction == CorrelationDirection.POSITIVE
        assert result.correlation.strength == CorrelationStrength.STRONG
        assert result.correlation.description == "Higher workload correlates with 100% slower hiring"
        assert result.insight == (
            "Data supports the thesis: Recruiters with 1-5 reqs hire in ~20 days, "
            "while those with 16+ reqs take ~40 days (+20 days)."
        )

    def test_bucket_contents(self) -> None:
        reqs, hires = _scenario(light_ttf=20, heavy_ttf=40)
        result = analyze_load_vs_performance(reqs, hires)
        by_label = {b.label: b for b in result.buckets}

        assert [b.label for b in result.buckets] == ["1-5 reqs", "6-10 reqs", "11-15 reqs", "16+ reqs"]
        assert by_label["1-5 reqs"].hire_count == 3
        assert by_label["1-5 reqs"].median_ttf == 20
        assert by_label["16+ reqs"].hire_count == 16
        assert by_label["16+ reqs"].avg_ttf == 40
        assert by_label["6-10 reqs"].median_ttf is None
        assert by_label["16+ reqs"].max_reqs is None

    def test_higher_load_faster_hiring(self) -> None:
        reqs, hires = _scenario(light_ttf=40, heavy_ttf=20)
        result = analyze_load_vs_performance(reqs, hires)

        assert result.correlation.direction == CorrelationDirection.NEGATIVE
        assert result.correlation.strength == CorrelationStrength.MODERATE
        assert result.insight.startswith("Counterintuitively")

    def test_no_significant_difference(self) -> None:
        reqs, hires = _scenario(light_ttf=30, heavy_ttf=33)
        result = analyze_load_vs_performance(reqs, hires)

        assert result.correlation.direction == CorrelationDirection.NONE
        assert result.correlation.strength == CorrelationStrength.WEAK
        assert result.insight.startswith("Workload doesn't significantly impact")

    def test_too_few_hires_is_insufficient(self) -> None:
        reqs, hires = _scenario(light_ttf=20, heavy_ttf=40, heavy_reqs=6)
        result = analyze_load_vs_performance(reqs, hires)

        assert result.sample_size == 9
        assert result.confidence == ConfidenceLevel.INSUFFICIENT
        assert result.correlation.strength == CorrelationStrength.NONE
        assert result.insight == INSUFFICIENT_INSIGHT

    def test_single_populated_bucket_is_insufficient(self) -> None:
        reqs, hires = _desk("heavy", 16, 30)
        result = analyze_load_vs_performance(reqs, hires)
        assert result.sample_size == 16
        assert result.insight == INSUFFICIENT_INSIGHT

    def test_hires_outside_ttf_window_are_dropped(self) -> None:
        reqs, hires = _desk("light", 3, 20)
        hires[0] = hires[0].model_copy(update={"applied_at": hires[0].hired_at - timedelta(days=400)})
        hires[1] = hires[1].model_copy(update={"applied_at": hires[1].hired_at + timedelta(days=2)})
        assert analyze_load_vs_performance(reqs, hires).sample_size == 1

    def test_unknown_requisition_or_recruiter_is_skipped(self) -> None:
        reqs, hires = _desk("light", 3, 20)
        orphan = make_candidate(
            "orphan", "missing-req", disposition=CandidateDisposition.HIRED,
            applied_at=days_ago(50), hired_at=days_ago(20),
        )
        unowned_req = make_requisition("unowned", opened_at=days_ago(60), closed_at=days_ago(20), recruiter_id=None)
        unowned_hire = make_candidate(
            "unowned-hire", "unowned", disposition=CandidateDisposition.HIRED,
            applied_at=days_ago(50), hired_at=days_ago(20),
        )
        result = analyze_load_vs_performance(reqs + [unowned_req], hires + [orphan, unowned_hire])
        assert result.sample_size == 3


class TestSummary:

    def test_markdown_summary(self) -> None:
        reqs, hires = _scenario(light_ttf=20, heavy_ttf=40)
        summary = format_load_vs_performance_summary(analyze_load_vs_performance(reqs, hires))
        lines = summary.split("\n")

        assert lines[0] == "**Analysis: Workload vs. Hiring Speed** (n=19)"
        assert "• 1-5 reqs: 20 days median TTF (3 hires)" in lines
        assert "• 16+ reqs: 40 days median TTF (16 hires)" in lines
        assert not any("6-10 reqs" in line for line in lines)
        assert lines[-1].startswith("**Finding:** Data supports the thesis")

