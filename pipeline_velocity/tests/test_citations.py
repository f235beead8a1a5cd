"""
Tests for citation resolution and validation against a fact pack.
"""

import pytest

from pipeline_velocity.services.citations import (
    MISSING,
    is_valid_citation,
    resolve_citation,
    validate_citations,
)


class TestResolveCitation:

    def test_scalar_path(self, rich_fact_pack) -> None:
        decoded = rich_fact_pack.to_citable_dict()
        assert resolve_citation("kpis.median_ttf_days", decoded) == 34

    def test_list_index_path(self, rich_fact_pack) -> None:
        decoded = rich_fact_pack.to_citable_dict()
        assert resolve_citation("bottleneck_stages.0.stage", decoded) == "SCREEN"
        assert resolve_citation("bottleneck_stages.1.avg_days", decoded) == 10

    def test_null_value_still_resolves(self, sparse_fact_pack) -> None:
        decoded = sparse_fact_pack.to_citable_dict()
        assert resolve_citation("kpis.decay_start_day", decoded) is None
        assert is_valid_citation("kpis.decay_start_day", decoded) is True

    def test_container_paths_resolve(self, rich_fact_pack) -> None:
        decoded = rich_fact_pack.to_citable_dict()
        assert isinstance(resolve_citation("cohort_comparison.fast_hires", decoded), dict)
        assert isinstance(resolve_citation("contributing_reqs.zombie_req_ids", decoded), list)

    @pytest.mark.parametrize(
        "path",
        [
            "",
            "kpis.nonexistent_metric",
            "kpis.median_ttf_days.value",
            "bottleneck_stages.9.stage",
            "bottleneck_stages.first",
            "bottleneck_stages.-1",
            "made_up.section",
        ],
    )
    def test_unresolvable(self, rich_fact_pack, path: str) -> None:
        assert resolve_citation(path, rich_fact_pack.to_citable_dict()) is MISSING

    def test_omitted_optional_key_is_missing(self, rich_fact_pack, sparse_fact_pack) -> None:
        assert resolve_citation("cohort_comparison.gating_reason", rich_fact_pack.to_citable_dict()) is MISSING
        assert resolve_citation("cohort_comparison.factors", sparse_fact_pack.to_citable_dict()) is MISSING

    def test_missing_sentinel_is_falsy(self) -> None:
        assert not MISSING
        assert repr(MISSING) == "MISSING"


class TestValidateCitations:

    def test_all_valid(self, rich_fact_pack) -> None:
        result = validate_citations(["kpis.median_ttf_days", "sample_sizes.total_filled"], rich_fact_pack)
        assert result.valid is True
        assert result.invalid_citations == []
        assert result.missing_citations is False
        assert result.error is None

    def test_reports_every_invalid_citation(self, rich_fact_pack) -> None:
        result = validate_citations(
            ["kpis.median_ttf_days", "kpis.nonexistent_metric", "kpis.made_up"],
            rich_fact_pack,
        )
        assert result.valid is False
        assert result.invalid_citations == ["kpis.nonexistent_metric", "kpis.made_up"]
        assert result.error == "Invalid citations: kpis.nonexistent_metric, kpis.made_up"

    def test_empty_citations_are_missing(self, rich_fact_pack) -> None:
        result = validate_citations([], rich_fact_pack)
        assert result.valid is False
        assert result.missing_citations is True
        assert result.error == "No citations provided"

    def test_accepts_decoded_pack(self, sparse_fact_pack) -> None:
        decoded = sparse_fact_pack.to_citable_dict()
        assert validate_citations(["req_decay.gating_reason"], decoded).valid is True

    def test_invalid_citations_are_logged(self, rich_fact_pack, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level("INFO"):
            validate_citations(["kpis.bogus"], rich_fact_pack)
        assert "kpis.bogus" in caplog.text
