"""
Team mapping queries for the PostgreSQL store.

Tables:
- team_configurations(team_id, team_name, display_order)
- team_pic_mappings(team_id, pic_name)
"""

TEAM_CONFIGURATIONS_QUERY = """
    SELECT team_id, team_name, display_order
    FROM team_configurations
    ORDER BY display_order, team_name
"""

TEAM_PIC_MAPPINGS_QUERY = """
    SELECT team_id, pic_name
    FROM team_pic_mappings
    WHERE pic_name IS NOT NULL
    ORDER BY team_id, pic_name
"""
