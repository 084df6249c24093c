import sqlite3
import json
import uuid
from typing import Optional
from contextlib import contextmanager

import config
from models import Project, Task, TeamMember, Update
from pipeline import format_instant, utc_now

@contextmanager
def get_db():
    """Context manager for database connections. Uncommitted work is rolled back on close."""
    conn = sqlite3.connect(config.DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )

def _new_id() -> str:
    return str(uuid.uuid4())

def _row_to_member(row) -> TeamMember:
    return TeamMember(
        id=row["id"],
        name=row["name"],
        color=row["color"],
        slack_user_id=row["slack_user_id"],
        created_at=row["created_at"],
    )

def _row_to_project(row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        color=row["color"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
    )

def _row_to_task(row) -> Task:
    """Convert a joined task row to a Task with its member and project attached."""
    user = None
    if row["m_id"] is not None:
        user = TeamMember(
            id=row["m_id"],
            name=row["m_name"],
            color=row["m_color"],
            slack_user_id=row["m_slack_user_id"],
            created_at=row["m_created_at"],
        )
    project = None
    if row["p_id"] is not None:
        project = Project(
            id=row["p_id"],
            name=row["p_name"],
            color=row["p_color"],
            is_active=bool(row["p_is_active"]),
            created_at=row["p_created_at"],
        )
    return Task(
        id=row["id"],
        update_id=row["update_id"],
        user_id=row["user_id"],
        project_id=row["project_id"],
        description=row["description"],
        status=row["status"],
        mentioned_users=row["mentioned_users"] or "[]",
        due_date=row["due_date"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        user=user,
        project=project,
    )

# Tasks joined to their owner and project. Members may have been deleted,
# so both joins are LEFT joins.
TASK_SELECT = """
    SELECT t.*,
        m.id AS m_id, m.name AS m_name, m.color AS m_color,
        m.slack_user_id AS m_slack_user_id, m.created_at AS m_created_at,
        p.id AS p_id, p.name AS p_name, p.color AS p_color,
        p.is_active AS p_is_active, p.created_at AS p_created_at
    FROM tasks t
    LEFT JOIN team_members m ON m.id = t.user_id
    LEFT JOIN projects p ON p.id = t.project_id
"""

# Team member operations
def get_team_members() -> list[TeamMember]:
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM team_members ORDER BY name").fetchall()
        return [_row_to_member(row) for row in rows]

def get_team_member(member_id: str) -> Optional[TeamMember]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM team_members WHERE id = ?", (member_id,)).fetchone()
        return _row_to_member(row) if row else None

def create_team_member_db(name: str, color: str, slack_user_id: Optional[str] = None) -> TeamMember:
    """Create a team member. Raises sqlite3.IntegrityError if the name is taken."""
    member_id = _new_id()
    created_at = format_instant(utc_now())
    with get_db() as conn:
        conn.execute(
            "INSERT INTO team_members (id, name, color, slack_user_id, created_at) VALUES (?, ?, ?, ?, ?)",
            (member_id, name, color, slack_user_id or None, created_at)
        )
        conn.commit()
    return TeamMember(id=member_id, name=name, color=color, slack_user_id=slack_user_id or None, created_at=created_at)

def update_team_member_db(member_id: str, **updates) -> Optional[TeamMember]:
    """Update name, color or slack_user_id. None values are ignored."""
    changes = {k: v for k, v in updates.items() if k in ("name", "color", "slack_user_id") and v is not None}
    with get_db() as conn:
        row = conn.execute("SELECT id FROM team_members WHERE id = ?", (member_id,)).fetchone()
        if not row:
            return None
        if changes:
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            conn.execute(
                f"UPDATE team_members SET {set_clause} WHERE id = ?",
                list(changes.values()) + [member_id]
            )
            conn.commit()
    return get_team_member(member_id)

def delete_team_member_db(member_id: str) -> bool:
    """Delete a member. Their tasks are kept and keep pointing at the old id."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM team_members WHERE id = ?", (member_id,))
        conn.commit()
        return cursor.rowcount > 0

# Project operations
def get_projects(active_only: bool = False) -> list[Project]:
    query = "SELECT * FROM projects"
    if active_only:
        query += " WHERE is_active = 1"
    with get_db() as conn:
        rows = conn.execute(query + " ORDER BY name").fetchall()
        return [_row_to_project(row) for row in rows]

def get_project(project_id: str) -> Optional[Project]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return _row_to_project(row) if row else None

def create_project_db(name: str, color: str, is_active: bool = True) -> Project:
    """Create a project. Raises sqlite3.IntegrityError if the name is taken."""
    project_id = _new_id()
    created_at = format_instant(utc_now())
    with get_db() as conn:
        conn.execute(
            "INSERT INTO projects (id, name, color, is_active, created_at) VALUES (?, ?, ?, ?, ?)",
            (project_id, name, color, int(is_active), created_at)
        )
        conn.commit()
    return Project(id=project_id, name=name, color=color, is_active=is_active, created_at=created_at)

def delete_project_db(project_id: str, reassign_to: Optional[str] = None) -> bool:
    """Delete a project, first moving its tasks to reassign_to in the same transaction."""
    with get_db() as conn:
        if reassign_to is not None:
            conn.execute("UPDATE tasks SET project_id = ? WHERE project_id = ?", (reassign_to, project_id))
        cursor = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        conn.commit()
        return cursor.rowcount > 0

# Task operations
def get_task(task_id: str) -> Optional[Task]:
    with get_db() as conn:
        row = conn.execute(TASK_SELECT + " WHERE t.id = ?", (task_id,)).fetchone()
        return _row_to_task(row) if row else None

def get_tasks_between(start: str, end: str, user_id: Optional[str] = None) -> list[Task]:
    """
    Tasks whose created_at falls in [start, end], newest first.
    Ties on created_at are broken by insertion order, latest first.
    """
    query = TASK_SELECT + " WHERE t.created_at >= ? AND t.created_at <= ?"
    params: list = [start, end]
    if user_id is not None:
        query += " AND t.user_id = ?"
        params.append(user_id)
    query += " ORDER BY t.created_at DESC, t.rowid DESC"
    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
        return [_row_to_task(row) for row in rows]

def get_tasks_since(start: str) -> list[Task]:
    with get_db() as conn:
        rows = conn.execute(
            TASK_SELECT + " WHERE t.created_at >= ? ORDER BY t.created_at DESC, t.rowid DESC",
            (start,)
        ).fetchall()
        return [_row_to_task(row) for row in rows]

def get_task_descriptions(user_id: str, start: str, end: str) -> list[str]:
    """Descriptions already recorded for a member within a day window."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT description FROM tasks WHERE user_id = ? AND created_at >= ? AND created_at <= ?",
            (user_id, start, end)
        ).fetchall()
        return [row["description"] for row in rows]

def _insert_task(conn, update_id: str, user_id: str, project_id: str, description: str,
                 status: str, mentioned_people: list[str], due_date: Optional[str],
                 created_at: str, updated_at: str) -> str:
    task_id = _new_id()
    conn.execute(
        """INSERT INTO tasks
           (id, update_id, user_id, project_id, description, status, mentioned_users, due_date, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (task_id, update_id, user_id, project_id, description, status,
         json.dumps(mentioned_people or []), due_date or None, created_at, updated_at)
    )
    return task_id

def create_update_with_tasks_db(
    user_id: str,
    raw_text: str,
    day_start: str,
    tasks: list[dict]
) -> tuple[Update, list[Task]]:
    """
    Create an update and its tasks in a single transaction.
    Each task dict has project_id, description, status, mentioned_people and due_date.
    Every task is stamped with day_start as created_at so it lands on the target day.
    """
    update_id = _new_id()
    now = format_instant(utc_now())
    task_ids = []
    with get_db() as conn:
        conn.execute(
            "INSERT INTO updates (id, user_id, raw_text, date, created_at) VALUES (?, ?, ?, ?, ?)",
            (update_id, user_id, raw_text, day_start, now)
        )
        for task in tasks:
            task_ids.append(_insert_task(
                conn,
                update_id,
                user_id,
                task["project_id"],
                task["description"],
                task.get("status", "todo"),
                task.get("mentioned_people", []),
                task.get("due_date"),
                day_start,
                now,
            ))
        conn.commit()

    update = Update(id=update_id, user_id=user_id, raw_text=raw_text, date=day_start, created_at=now)
    return update, [get_task(task_id) for task_id in task_ids]

def create_task_db(
    user_id: str,
    project_id: str,
    description: str,
    day_start: str,
    status: str = "todo"
) -> Task:
    """Create a single task, wrapped in its own one-line update."""
    _, tasks = create_update_with_tasks_db(
        user_id,
        description,
        day_start,
        [{"project_id": project_id, "description": description, "status": status}]
    )
    return tasks[0]

def update_task_db(task_id: str, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values; updated_at moves only on change.

    Args:
        task_id: Task ID to update
        **updates: Field names and values (description, status, project_id, due_date)
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return None

        keys = row.keys()

        changes = {}
        for field, new_value in updates.items():
            if field not in keys or field in ("id", "created_at", "updated_at"):
                continue
            if new_value != row[field]:
                changes[field] = new_value

        if changes:
            changes["updated_at"] = format_instant(utc_now())
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id]
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", values)
            conn.commit()

    return get_task(task_id)

def delete_task_db(task_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        conn.commit()
        return cursor.rowcount > 0
