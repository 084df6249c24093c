"""
Seed default team members and projects.
Idempotent: existing names are left untouched.

Usage: python seed.py
"""
import logging
import uuid

import config
from database import get_db
from pipeline import format_instant, utc_now

logger = logging.getLogger(__name__)

TEAM_MEMBERS = [
    {"name": "Kenneth", "color": "#3B82F6"},
    {"name": "Shubham", "color": "#22C55E"},
    {"name": "Bhupendra", "color": "#A855F7"},
    {"name": "Saahith", "color": "#EAB308"},
    {"name": "Rishi", "color": "#EF4444"},
    {"name": "Rithika", "color": "#F97316"},
]

PROJECTS = [
    {"name": "Coactive", "color": "#EF4444"},
    {"name": "Treeswift", "color": "#22C55E"},
    {"name": "Preference Model", "color": "#3B82F6"},
    {"name": "AGI Inc", "color": "#8B5CF6"},
    {"name": "Figma", "color": "#EAB308"},
    {"name": "Conde Nast", "color": "#A855F7"},
    {"name": "Causal Labs", "color": "#14B8A6"},
]

FALLBACK_PROJECT_COLOR = "#6B7280"


def seed_db(team_members: list[dict] = TEAM_MEMBERS, projects: list[dict] = PROJECTS) -> None:
    """Insert members and projects by name, always including the fallback project."""
    now = format_instant(utc_now())
    all_projects = list(projects) + [{"name": config.FALLBACK_PROJECT_NAME, "color": FALLBACK_PROJECT_COLOR}]

    with get_db() as conn:
        for member in team_members:
            conn.execute(
                "INSERT OR IGNORE INTO team_members (id, name, color, slack_user_id, created_at) VALUES (?, ?, ?, ?, ?)",
                (str(uuid.uuid4()), member["name"], member["color"], member.get("slack_user_id"), now)
            )
        for project in all_projects:
            conn.execute(
                "INSERT OR IGNORE INTO projects (id, name, color, is_active, created_at) VALUES (?, ?, ?, 1, ?)",
                (str(uuid.uuid4()), project["name"], project["color"], now)
            )
        conn.commit()

    logger.info("Seeded team members: %s", ", ".join(m["name"] for m in team_members))
    logger.info("Seeded projects: %s", ", ".join(p["name"] for p in all_projects))


if __name__ == "__main__":
    from database import init_db

    logging.basicConfig(level=config.LOG_LEVEL)
    init_db()
    seed_db()
