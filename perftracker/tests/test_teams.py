"""
Tests for the team mapping loader and the team perspective rollup.
"""

import pytest

from perftracker.core.database import execute_query
from perftracker.core.exceptions import DataSourceError
from perftracker.models.records import MergedEntityRecord
from perftracker.services.teams import Team, TeamMapping, load_team_mapping, rollup_teams


@pytest.fixture
def mapping() -> TeamMapping:
    return TeamMapping(
        teams=[Team('alpha', 'Team Alpha', 1), Team('beta', 'Team Beta', 2), Team('empty', 'Team Empty', 3)],
        members={'alpha': ['alice', 'bob'], 'beta': ["o'neil"], 'empty': []},
    )


def _pic(name, rev_p1, rev_p2, avg=None, months=None):
    return MergedEntityRecord(
        entity_key=name, name=name, rev_p1=rev_p1, rev_p2=rev_p2,
        req_p1=1000, req_p2=1000, paid_p1=500, paid_p2=500,
        extras={'publisher_count': 2}, avg_monthly_revenue=avg, months_with_data=months,
    )


class TestLoadTeamMapping:
    """Reading the relational store."""

    @pytest.mark.asyncio
    async def test_loads_teams_and_members(self, team_query_runner):
        mapping = await load_team_mapping(team_query_runner)
        assert [t.team_id for t in mapping.teams] == ['alpha', 'beta', 'empty']
        assert mapping.members == {'alpha': ['alice', 'bob'], 'beta': ["o'neil"], 'empty': []}
        assert mapping.team_names()['beta'] == 'Team Beta'
        assert mapping.pic_to_team() == {'alice': 'alpha', 'bob': 'alpha', "o'neil": 'beta'}
        assert team_query_runner.await_count == 2

    @pytest.mark.asyncio
    async def test_unknown_team_ignored(self):
        async def run(query, *args):
            if 'team_configurations' in query:
                return [{'team_id': 'alpha', 'team_name': None, 'display_order': None}]
            return [{'team_id': 'ghost', 'pic_name': 'zed'}, {'team_id': 'alpha', 'pic_name': 'amy'}]

        mapping = await load_team_mapping(run)
        assert mapping.teams[0].team_name == 'alpha'
        assert mapping.members == {'alpha': ['amy']}

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, failing_query_runner):
        with pytest.raises(DataSourceError):
            await load_team_mapping(failing_query_runner)

    @pytest.mark.asyncio
    async def test_execute_query_uses_pool(self, mock_db_pool, monkeypatch):
        """execute_query runs on a pooled connection."""
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetch.return_value = [{'team_id': 'alpha'}]

        async def fake_pool():
            return mock_db_pool

        monkeypatch.setattr('perftracker.core.database.get_db_pool', fake_pool)
        rows = await execute_query('SELECT team_id FROM team_configurations')
        assert rows == [{'team_id': 'alpha'}]
        conn.fetch.assert_awaited_once_with('SELECT team_id FROM team_configurations')


class TestRollupTeams:
    """Team perspective from PIC records."""

    def test_sums_members(self, mapping):
        records = rollup_teams([
            _pic('alice', 100.0, 150.0, avg=90.0, months=6),
            _pic('bob', 50.0, 30.0, avg=40.0, months=4),
            _pic("o'neil", 20.0, 0.0),
            _pic('mallory', 999.0, 999.0),
        ], mapping)
        teams = {r.entity_key: r for r in records}
        assert set(teams) == {'alpha', 'beta'}

        alpha = teams['alpha']
        assert alpha.name == 'Team Alpha'
        assert alpha.rev_p1 == 150.0
        assert alpha.rev_p2 == 180.0
        assert alpha.req_p2 == 2000
        assert alpha.paid_p2 == 1000
        assert alpha.extras == {'pic_count': 2}
        assert alpha.avg_monthly_revenue == 130.0
        assert alpha.months_with_data == 6
        assert alpha.rev_change_pct == pytest.approx(20.0)

    def test_missing_averages_stay_none(self, mapping):
        (beta,) = rollup_teams([_pic("o'neil", 20.0, 0.0)], mapping)
        assert beta.avg_monthly_revenue is None
        assert beta.months_with_data is None

    def test_team_filter(self, mapping):
        records = rollup_teams([_pic('alice', 1.0, 1.0), _pic("o'neil", 1.0, 1.0)], mapping, ['beta'])
        assert [r.entity_key for r in records] == ['beta']

    def test_no_records(self, mapping):
        assert rollup_teams([], mapping) == []

    def test_only_unassigned(self, mapping):
        assert rollup_teams([_pic('mallory', 1.0, 1.0)], mapping) == []
