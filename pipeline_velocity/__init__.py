"""
Pipeline Velocity Package.

Grounded analytics and citation-validated insight engine for recruiting
pipeline velocity. Computes gated decay curves, fast vs slow hire cohorts and
workload correlations, assembles them into a redacted fact pack, and produces
insights (generated or deterministic) whose citations are checked against it.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration and dependencies
    - models: Pydantic schemas and enums
    - services: Analysis, fact pack, citation and generation services
"""

__version__ = "1.0.0"
