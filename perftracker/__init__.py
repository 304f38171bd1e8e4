"""
Performance Tracker Deep Dive package.

FastAPI service comparing two periods of ad-revenue metrics per
perspective, with Pareto revenue tiering, status transitions, anomaly
severities and entity-level filters.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, warehouse and database access, dependencies
    - models: Enums, pydantic schemas, perspective configs, records
    - services: Aggregation, tiering, summary, teams, metadata
    - sql: Query text generation and literal quoting
"""

__version__ = "1.0.0"
