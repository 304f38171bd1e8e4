'''
Performance Tracker Test Suite

Test Modules:
-------------
- test_tiering.py: Comparative tiering engine
  - Ranking by period-2 revenue with key tie-breaking
  - Cumulative share and A/B/C partition (80% / 95%)
  - new / lost / existing status, display tiers and tier groups
  - Transition advisories and anomaly severities

- test_summary.py: Summary reducer totals and per-tier breakdowns

- test_filter_compiler.py: Literal quoting and predicate compilation
  - BigQuery and ANSI escaping, including seeded adversarial strings
  - Every direct and entity-quantified operator
  - Entity quantifiers executed against in-memory SQLite

- test_schemas.py: Clause union, request parsing, perspective hierarchy

- test_aggregation.py: Two-period outer merge and query text

- test_teams.py: Team mapping store and team rollup

- test_api.py: Deep-dive and metadata endpoints via TestClient

Running Tests:
--------------
    pip install -e ".[test]"
    pytest -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
