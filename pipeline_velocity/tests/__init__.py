'''
Pipeline Velocity Test Suite

Test Modules:
-------------
- test_confidence_gate.py: safe rates, confidence grades, stage timing detection
- test_decay_curves.py: candidate and requisition decay buckets, decay estimation
- test_cohort_comparison.py: quartile cohorts, factor impact classification
- test_load_performance.py: concurrent load counting, load buckets, correlation
- test_velocity_analysis.py: requisition filters, narrative velocity insights
- test_redaction.py: PII scrubbing, opaque identifiers, stage normalization
- test_fact_pack.py: data quality, gated blocks, citable paths, adversarial PII
- test_citations.py: dot path resolution and citation validation
- test_deterministic_insights.py: rule based insights, drafts, action items
- test_generation_provider.py: httpx provider client against MockTransport
- test_copilot.py: JSON extraction, response parsing, orchestration
- test_api.py: FastAPI routes through TestClient

Running Tests:
--------------
    pip install -e ".[test]"
    pytest -v
    pytest -m redaction     # adversarial PII checks only

Test Dependencies:
------------------
- pytest
- pytest-asyncio

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

# All tests live in the individual test modules
# This file enables pytest discovery of the tests directory

__all__ = []
