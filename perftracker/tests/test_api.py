"""
Test suite for the Performance Tracker API endpoints.

Uses FastAPI's TestClient with the warehouse and team store dependencies
overridden, so no BigQuery or PostgreSQL connection is needed.

Covers:
1. POST /performance-tracker/deep-dive: ranking, tiering, summary, context
2. Drill-down predicates and the team perspective
3. Error mapping: 400 for bad parameters, 422 for bad bodies, 502 for
   data source failures
4. GET /performance-tracker/metadata: options, teams and TTL caching
"""

from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from perftracker.core.dependencies import get_team_store, get_warehouse
from perftracker.main import app
from perftracker.services.metadata import clear_metadata_cache

DEEP_DIVE_URL = '/performance-tracker/deep-dive'
METADATA_URL = '/performance-tracker/metadata'


def _body(perspective: str = 'pid', **overrides: Any) -> Dict[str, Any]:
    body = {
        'perspective': perspective,
        'period1': {'start': '2025-08-01', 'end': '2025-08-31'},
        'period2': {'start': '2025-09-01', 'end': '2025-09-30'},
    }
    body.update(overrides)
    return body


@pytest.fixture(autouse=True)
def reset_state():
    clear_metadata_cache()
    yield
    app.dependency_overrides.clear()
    clear_metadata_cache()


@pytest.fixture
def client_factory(team_query_runner):
    """TestClient wired to the given warehouse and team runner."""
    def build(warehouse, run_query=team_query_runner) -> TestClient:
        app.dependency_overrides[get_warehouse] = lambda: warehouse
        app.dependency_overrides[get_team_store] = lambda: run_query
        return TestClient(app)
    return build


# =============================================================================
# Deep dive
# =============================================================================


class TestDeepDiveEndpoint:
    """POST /performance-tracker/deep-dive"""

    def test_success(self, client_factory, pid_warehouse):
        """Records come back ranked and annotated."""
        response = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=_body())
        assert response.status_code == 200

        payload = response.json()
        assert payload['status'] == 'ok'
        rows = payload['data']
        assert [r['entity_key'] for r in rows] == [101, 102, 104, 103]
        assert [r['display_tier'] for r in rows] == ['A', 'B', 'NEW', 'LOST']
        assert [r['tier_group'] for r in rows] == ['A', 'B', 'NEW-C', 'LOST-C']
        assert rows[0]['media_count'] == 4
        assert rows[0]['warning_severity'] == 'healthy'
        assert rows[1]['warning_severity'] == 'critical'
        assert rows[1]['transition_warning'] == 'Close to tier A (needs 5.0% more)'
        assert rows[3]['lost_revenue'] == 450.0

    def test_summary_and_context(self, client_factory, pid_warehouse):
        payload = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=_body()).json()
        summary = payload['summary']
        assert summary['total_items'] == 4
        assert summary['total_revenue_p1'] == 9500.0
        assert summary['total_revenue_p2'] == 10000.0
        assert summary['tier_counts'] == {'A': 1, 'B': 1, 'C': 0, 'NEW': 1, 'LOST': 1}

        context = payload['context']
        assert context['perspective'] == 'pid'
        assert context['childPerspective'] == 'mid'
        assert context['period2'] == {'start': '2025-09-01', 'end': '2025-09-30'}

    def test_tier_filter(self, client_factory, pid_warehouse):
        """tierFilter narrows records and the summary after tiering."""
        payload = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=_body(tierFilter='NEW')).json()
        assert [r['entity_key'] for r in payload['data']] == [104]
        assert payload['data'][0]['cumulative_revenue_pct'] == pytest.approx(100.0)
        assert payload['summary']['total_items'] == 1
        assert payload['context']['tierFilter'] == 'NEW'

    def test_filters_reach_queries(self, client_factory, pid_warehouse):
        body = _body(
            filters={'pic': ['alice']},
            simplifiedFilter={'clauses': [
                {'field': 'product', 'operator': 'entity_has_all', 'values': ['video', 'banner']},
            ]},
        )
        assert client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=body).status_code == 200
        assert len(pid_warehouse.queries) == 3
        for sql in pid_warehouse.queries:
            assert "pic = 'alice'" in sql
            assert 'HAVING COUNT(DISTINCT product) = 2' in sql

    def test_cross_reference_filter_reaches_queries(self, client_factory, pid_warehouse):
        body = _body(simplifiedFilter={'includeExclude': 'EXCLUDE', 'clauses': [
            {'field': 'zid', 'operator': 'has', 'attributeField': 'product',
             'condition': 'equals', 'value': 'video'},
        ]})
        assert client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=body).status_code == 200
        for sql in pid_warehouse.queries:
            assert "NOT (zid IN (SELECT DISTINCT zid FROM `proj.ds.metrics` WHERE product = 'video'))" in sql

    def test_invalid_cross_reference(self, client_factory, pid_warehouse):
        body = _body(simplifiedFilter={'clauses': [
            {'field': 'zid', 'operator': 'has_all', 'attributeField': 'product',
             'condition': 'contains', 'values': ['vid']},
        ]})
        response = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=body)
        assert response.status_code == 400
        assert response.json()['detail']['field'].startswith('simplifiedFilter.clauses')
        assert pid_warehouse.queries == []

    def test_drill_down(self, client_factory, fake_warehouse_factory):
        warehouse = fake_warehouse_factory()
        body = _body('mid', parentId=101, parentPerspective='pid')
        payload = client_factory(warehouse).post(DEEP_DIVE_URL, json=body).json()
        assert payload['data'] == []
        assert all('pid = 101' in sql for sql in warehouse.queries)
        assert payload['context']['parentPerspective'] == 'pid'

    def test_team_drill_down(self, client_factory, fake_warehouse_factory):
        warehouse = fake_warehouse_factory()
        body = _body('pic', parentId='alpha', parentPerspective='team')
        assert client_factory(warehouse).post(DEEP_DIVE_URL, json=body).status_code == 200
        assert all("pic IN ('alice', 'bob')" in sql for sql in warehouse.queries)

    def test_team_perspective(self, client_factory, fake_warehouse_factory):
        """Teams are rolled up from PIC rows."""
        def pic_row(pic, revenue):
            return {'entity_key': pic, 'name': pic, 'publisher_count': 1,
                    'revenue': revenue, 'requests': 1000, 'paid_requests': 500}

        warehouse = fake_warehouse_factory(period_rows={
            '2025-08-01': [pic_row('alice', 10.0), pic_row('bob', 20.0), pic_row("o'neil", 5.0)],
            '2025-09-01': [pic_row('alice', 30.0), pic_row("o'neil", 10.0), pic_row('nobody', 99.0)],
        })
        payload = client_factory(warehouse).post(DEEP_DIVE_URL, json=_body('team')).json()
        rows = payload['data']
        assert [r['entity_key'] for r in rows] == ['alpha', 'beta']
        assert rows[0]['name'] == 'Team Alpha'
        assert rows[0]['rev_p1'] == 30.0
        assert rows[0]['rev_p2'] == 30.0
        assert rows[0]['pic_count'] == 2
        assert payload['context']['childPerspective'] == 'pic'

    def test_invalid_perspective(self, client_factory, pid_warehouse):
        response = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=_body('country'))
        assert response.status_code == 400
        assert response.json()['detail']['field'] == 'perspective'
        assert pid_warehouse.queries == []

    def test_unordered_period(self, client_factory, pid_warehouse):
        body = _body(period1={'start': '2025-08-31', 'end': '2025-08-01'})
        response = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=body)
        assert response.status_code == 400
        assert response.json()['detail']['field'] == 'period1'

    def test_invalid_filter(self, client_factory, pid_warehouse):
        body = _body(simplifiedFilter={'clauses': [{'field': 'pid', 'operator': 'between', 'values': [1]}]})
        response = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=body)
        assert response.status_code == 400
        assert response.json()['detail']['field'].startswith('simplifiedFilter.clauses')
        assert pid_warehouse.queries == []

    def test_unknown_simple_filter(self, client_factory, pid_warehouse):
        response = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=_body(filters={'country': 'VN'}))
        assert response.status_code == 400
        assert response.json()['detail']['field'] == 'filters.country'

    def test_invalid_drill_down(self, client_factory, pid_warehouse):
        body = _body('zone', parentId=1, parentPerspective='pid')
        response = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=body)
        assert response.status_code == 400
        assert response.json()['detail']['field'] == 'parentPerspective'

    def test_parent_id_without_perspective(self, client_factory, pid_warehouse):
        response = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=_body('mid', parentId=1))
        assert response.status_code == 400
        assert response.json()['detail']['field'] == 'parentPerspective'

    def test_missing_period(self, client_factory, pid_warehouse):
        body = _body()
        del body['period2']
        response = client_factory(pid_warehouse).post(DEEP_DIVE_URL, json=body)
        assert response.status_code == 422

    def test_warehouse_failure(self, client_factory, fake_warehouse_factory):
        warehouse = fake_warehouse_factory(fail_on='SELECT')
        response = client_factory(warehouse).post(DEEP_DIVE_URL, json=_body())
        assert response.status_code == 502
        assert 'bigquery' in response.json()['detail']

    def test_team_store_failure(self, client_factory, pid_warehouse, failing_query_runner):
        response = client_factory(pid_warehouse, failing_query_runner).post(DEEP_DIVE_URL, json=_body('team'))
        assert response.status_code == 502
        assert pid_warehouse.queries == []

    def test_team_store_not_needed(self, client_factory, pid_warehouse, failing_query_runner):
        """Requests without team references never touch the store."""
        response = client_factory(pid_warehouse, failing_query_runner).post(DEEP_DIVE_URL, json=_body())
        assert response.status_code == 200
        failing_query_runner.assert_not_awaited()

    def test_warehouse_not_initialized(self, team_query_runner):
        app.dependency_overrides[get_team_store] = lambda: team_query_runner
        app.state.warehouse = None
        response = TestClient(app).post(DEEP_DIVE_URL, json=_body())
        assert response.status_code == 502


# =============================================================================
# Metadata
# =============================================================================


class TestMetadataEndpoint:
    """GET /performance-tracker/metadata"""

    @pytest.fixture
    def metadata_warehouse(self, fake_warehouse_factory):
        return fake_warehouse_factory(distinct_values={
            'pic': ['alice', 'bob'],
            'month': [1, 12],
            'year': [2025, 2024],
        })

    def test_options(self, client_factory, metadata_warehouse):
        payload = client_factory(metadata_warehouse).get(METADATA_URL).json()
        assert payload['status'] == 'ok'
        assert payload['cached'] is False
        data = payload['data']
        assert data['pics'] == [{'label': 'alice', 'value': 'alice'}, {'label': 'bob', 'value': 'bob'}]
        assert data['months'] == [{'label': 'January', 'value': '1'}, {'label': 'December', 'value': '12'}]
        assert data['years'][0]['value'] == '2025'
        assert data['products'] == []
        assert data['teams'][0] == {'label': 'Team Alpha', 'value': 'alpha'}

    def test_cached(self, client_factory, metadata_warehouse):
        client = client_factory(metadata_warehouse)
        client.get(METADATA_URL)
        query_count = len(metadata_warehouse.queries)
        second = client.get(METADATA_URL).json()
        assert second['cached'] is True
        assert len(metadata_warehouse.queries) == query_count

    def test_teams_degrade(self, client_factory, metadata_warehouse, failing_query_runner):
        payload = client_factory(metadata_warehouse, failing_query_runner).get(METADATA_URL).json()
        assert payload['data']['teams'] == []
        assert payload['data']['pics']

    def test_warehouse_failure(self, client_factory, fake_warehouse_factory):
        response = client_factory(fake_warehouse_factory(fail_on='DISTINCT')).get(METADATA_URL)
        assert response.status_code == 502


def test_health():
    response = TestClient(app).get('/health')
    assert response.status_code == 200
    assert response.json() == {'status': 'healthy'}
