"""
Team mapping and team perspective rollup.

The warehouse has no team column. Teams are defined in PostgreSQL as a
list of PICs per team; the team perspective is computed by aggregating the
pic perspective and summing each team's PICs.

Key Functions:
- load_team_mapping: read team configuration and PIC assignments (fresh
  on every call, no caching on the tiering path)
- rollup_teams: group PIC records into team records with pandas

Rollup rules:
- PICs without a team are left out.
- Teams with no PIC present in either period are left out.
- `pic_count` counts the team's PICs that have data.
- The six-month monthly average of a team is the sum of its PICs' averages.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pandas as pd

from perftracker.core.dependencies import QueryRunner
from perftracker.models.records import MergedEntityRecord
from perftracker.sql.team_queries import TEAM_CONFIGURATIONS_QUERY, TEAM_PIC_MAPPINGS_QUERY

logger = logging.getLogger(__name__)


@dataclass
class Team:
    team_id: str
    team_name: str
    display_order: int = 0


@dataclass
class TeamMapping:
    """
    Teams and their PICs.

    Attributes:
        teams: Teams in display order.
        members: team_id -> PIC names.
    """
    teams: List[Team] = field(default_factory=list)
    members: Dict[str, List[str]] = field(default_factory=dict)

    def team_names(self) -> Dict[str, str]:
        return {t.team_id: t.team_name for t in self.teams}

    def pic_to_team(self) -> Dict[str, str]:
        lookup: Dict[str, str] = {}
        for team_id, pics in self.members.items():
            for pic in pics:
                lookup.setdefault(pic, team_id)
        return lookup


async def load_team_mapping(run_query: QueryRunner) -> TeamMapping:
    """
    Read the team configuration and PIC assignments.

    Args:
        run_query: Coroutine executing a query on the relational store
            (perftracker.core.database.execute_query in production).

    Returns:
        TeamMapping with every configured team; teams without PICs map to
        an empty member list.

    Raises:
        DataSourceError: If the relational store is unavailable.
    """
    team_rows = await run_query(TEAM_CONFIGURATIONS_QUERY)
    mapping_rows = await run_query(TEAM_PIC_MAPPINGS_QUERY)

    teams = [
        Team(
            team_id=str(row['team_id']),
            team_name=str(row['team_name'] or row['team_id']),
            display_order=int(row['display_order'] or 0),
        )
        for row in team_rows
    ]
    members: Dict[str, List[str]] = {t.team_id: [] for t in teams}
    for row in mapping_rows:
        team_id = str(row['team_id'])
        pic = str(row['pic_name'])
        if team_id not in members:
            logger.warning(f"PIC '{pic}' is mapped to unknown team '{team_id}'")
            continue
        if pic not in members[team_id]:
            members[team_id].append(pic)

    logger.info(f"Loaded {len(teams)} teams with {sum(len(p) for p in members.values())} PIC assignments")
    return TeamMapping(teams=teams, members=members)


def rollup_teams(
    pic_records: Iterable[MergedEntityRecord],
    mapping: TeamMapping,
    team_ids: Optional[Iterable[str]] = None,
) -> List[MergedEntityRecord]:
    """
    Aggregate PIC records into team records.

    Args:
        pic_records: Merged records of the pic perspective.
        mapping: Team mapping.
        team_ids: Restrict the result to these teams (the `team` simple filter).

    Returns:
        One MergedEntityRecord per team with data, keyed by team_id.
    """
    pic_to_team = mapping.pic_to_team()
    rows = [
        {
            'team_id': pic_to_team.get(str(r.entity_key)),
            'pic': str(r.entity_key),
            'rev_p1': r.rev_p1,
            'rev_p2': r.rev_p2,
            'req_p1': r.req_p1,
            'req_p2': r.req_p2,
            'paid_p1': r.paid_p1,
            'paid_p2': r.paid_p2,
            'avg_monthly_revenue': r.avg_monthly_revenue,
            'months_with_data': r.months_with_data,
        }
        for r in pic_records
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    unassigned = int(df['team_id'].isna().sum())
    if unassigned:
        logger.info(f"{unassigned} PICs have no team assignment and are excluded from the team view")
    df = df.dropna(subset=['team_id'])
    for column in ('avg_monthly_revenue', 'months_with_data'):
        df[column] = pd.to_numeric(df[column], errors='coerce')

    if team_ids is not None:
        wanted = {str(t) for t in team_ids}
        df = df[df['team_id'].isin(wanted)]
    if df.empty:
        return []

    grouped = df.groupby('team_id', sort=False).agg(
        rev_p1=('rev_p1', 'sum'),
        rev_p2=('rev_p2', 'sum'),
        req_p1=('req_p1', 'sum'),
        req_p2=('req_p2', 'sum'),
        paid_p1=('paid_p1', 'sum'),
        paid_p2=('paid_p2', 'sum'),
        pic_count=('pic', 'nunique'),
        avg_monthly_revenue=('avg_monthly_revenue', lambda s: s.sum(min_count=1)),
        months_with_data=('months_with_data', 'max'),
    ).reset_index()

    names = mapping.team_names()
    records: List[MergedEntityRecord] = []
    for row in grouped.to_dict('records'):
        avg_monthly = row['avg_monthly_revenue']
        months = row['months_with_data']
        records.append(MergedEntityRecord(
            entity_key=str(row['team_id']),
            name=names.get(row['team_id'], row['team_id']),
            rev_p1=float(row['rev_p1']),
            rev_p2=float(row['rev_p2']),
            req_p1=int(row['req_p1']),
            req_p2=int(row['req_p2']),
            paid_p1=int(row['paid_p1']),
            paid_p2=int(row['paid_p2']),
            extras={'pic_count': int(row['pic_count'])},
            avg_monthly_revenue=None if pd.isna(avg_monthly) else float(avg_monthly),
            months_with_data=None if pd.isna(months) else int(months),
        ))

    logger.info(f"Rolled up {len(df)} PICs into {len(records)} teams")
    return records
