"""
Tests for database.py - members, projects, updates and tasks.
"""
import json
import pytest
import sqlite3
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
from database import (
    create_project_db,
    create_task_db,
    create_team_member_db,
    create_update_with_tasks_db,
    delete_project_db,
    delete_task_db,
    delete_team_member_db,
    get_db,
    get_project,
    get_projects,
    get_task,
    get_task_descriptions,
    get_tasks_between,
    get_tasks_since,
    get_team_member,
    get_team_members,
    update_task_db,
    update_team_member_db,
)
from seed import seed_db

DAY = "2026-10-19T00:00:00.000Z"
DAY_END = "2026-10-19T23:59:59.999Z"
NEXT_DAY = "2026-10-20T00:00:00.000Z"


class TestTeamMembers:
    """Tests for team member CRUD."""

    def test_create_and_get(self, test_db):
        """Created member can be fetched by id."""
        member = create_team_member_db("Ada", "#111111", "U123")
        fetched = get_team_member(member.id)
        assert fetched.name == "Ada"
        assert fetched.slack_user_id == "U123"

    def test_blank_slack_id_stored_as_none(self, test_db):
        """Empty Slack handle is stored as NULL."""
        member = create_team_member_db("Ada", "#111111", "")
        assert get_team_member(member.id).slack_user_id is None

    def test_names_unique(self, test_db):
        """Duplicate names raise IntegrityError."""
        create_team_member_db("Ada", "#111111")
        with pytest.raises(sqlite3.IntegrityError):
            create_team_member_db("Ada", "#222222")

    def test_list_sorted_by_name(self, test_db):
        """Members come back ordered by name."""
        create_team_member_db("Zed", "#111111")
        create_team_member_db("Amy", "#222222")
        assert [m.name for m in get_team_members()] == ["Amy", "Zed"]

    def test_update_ignores_none(self, test_db):
        """Only provided fields change."""
        member = create_team_member_db("Ada", "#111111")
        updated = update_team_member_db(member.id, name=None, color="#333333", slack_user_id=None)
        assert updated.name == "Ada"
        assert updated.color == "#333333"

    def test_update_missing(self, test_db):
        """Updating an unknown member returns None."""
        assert update_team_member_db("nope", color="#333333") is None

    def test_delete_keeps_tasks(self, seeded_db, member, projects):
        """Deleting a member leaves their tasks with a dangling user reference."""
        task = create_task_db(member.id, projects["Figma"].id, "Review mocks", DAY)
        assert delete_team_member_db(member.id) is True

        orphan = get_task(task.id)
        assert orphan is not None
        assert orphan.user_id == member.id
        assert orphan.user is None
        assert orphan.project.name == "Figma"

    def test_delete_missing(self, test_db):
        """Deleting an unknown member returns False."""
        assert delete_team_member_db("nope") is False


class TestProjects:
    """Tests for project CRUD."""

    def test_create_and_get(self, test_db):
        """Created project is active by default."""
        project = create_project_db("Figma", "#EAB308")
        fetched = get_project(project.id)
        assert fetched.name == "Figma"
        assert fetched.is_active is True

    def test_active_only(self, test_db):
        """Inactive projects are excluded when asked."""
        create_project_db("Live", "#111111")
        create_project_db("Old", "#222222", is_active=False)
        assert [p.name for p in get_projects(active_only=True)] == ["Live"]
        assert len(get_projects()) == 2

    def test_delete(self, test_db):
        """Deleted project is gone."""
        project = create_project_db("Figma", "#EAB308")
        assert delete_project_db(project.id) is True
        assert get_project(project.id) is None

    def test_delete_reassigns_tasks(self, test_db):
        """Tasks on a deleted project move to the reassignment target."""
        member = create_team_member_db("Kenneth", "#3B82F6")
        figma = create_project_db("Figma", "#EAB308")
        fallback = create_project_db("Internal/Individual", "#6B7280")
        task = create_task_db(member.id, figma.id, "Redesign onboarding", DAY)

        assert delete_project_db(figma.id, reassign_to=fallback.id) is True
        moved = get_task(task.id)
        assert moved.project_id == fallback.id
        assert moved.project.name == "Internal/Individual"


class TestSeed:
    """Tests for seed.py."""

    def test_seed_includes_fallback(self, test_db):
        """Seeding always creates the fallback project."""
        seed_db()
        names = {p.name for p in get_projects()}
        assert config.FALLBACK_PROJECT_NAME in names
        assert "Figma" in names

    def test_seed_idempotent(self, test_db):
        """Running the seed twice does not duplicate rows."""
        seed_db()
        seed_db()
        assert len(get_team_members()) == 6
        assert len(get_projects()) == 8


class TestUpdatesAndTasks:
    """Tests for creating updates with tasks and querying by day."""

    def test_create_update_with_tasks(self, seeded_db, member, projects):
        """Update and tasks share the day start as their date."""
        update, tasks = create_update_with_tasks_db(member.id, "did things", DAY, [
            {"project_id": projects["Figma"].id, "description": "Fixed login bug", "status": "done",
             "mentioned_people": ["Rishi"], "due_date": None},
            {"project_id": projects["AGI Inc"].id, "description": "Write report", "status": "todo",
             "mentioned_people": [], "due_date": "2026-10-22"},
        ])

        assert update.date == DAY
        assert len(tasks) == 2
        assert all(t.created_at == DAY for t in tasks)
        assert all(t.update_id == update.id for t in tasks)
        assert json.loads(tasks[0].mentioned_users) == ["Rishi"]
        assert tasks[1].due_date == "2026-10-22"
        assert tasks[0].user.name == "Kenneth"
        assert tasks[0].project.name == "Figma"

    def test_create_update_is_atomic(self, seeded_db, member, projects, task_count):
        """A failing task insert leaves no update or tasks behind."""
        with pytest.raises(KeyError):
            create_update_with_tasks_db(member.id, "did things", DAY, [
                {"project_id": projects["Figma"].id, "description": "Good one"},
                {"description": "Missing project"},
            ])

        assert task_count() == 0
        with get_db() as conn:
            assert conn.execute("SELECT COUNT(*) FROM updates").fetchone()[0] == 0

    def test_tasks_between_filters_by_window(self, seeded_db, member, projects):
        """Only tasks inside the window are returned."""
        create_task_db(member.id, projects["Figma"].id, "Today", DAY)
        create_task_db(member.id, projects["Figma"].id, "Tomorrow", NEXT_DAY)

        tasks = get_tasks_between(DAY, DAY_END)
        assert [t.description for t in tasks] == ["Today"]

    def test_tasks_between_newest_first(self, seeded_db, member, projects):
        """Same-day tasks come back in reverse insertion order."""
        create_task_db(member.id, projects["Figma"].id, "First", DAY)
        create_task_db(member.id, projects["Figma"].id, "Second", DAY)

        assert [t.description for t in get_tasks_between(DAY, DAY_END)] == ["Second", "First"]

    def test_tasks_between_by_user(self, seeded_db, member, projects):
        """Filtering by user excludes other members."""
        other = next(m for m in get_team_members() if m.name == "Rishi")
        create_task_db(member.id, projects["Figma"].id, "Mine", DAY)
        create_task_db(other.id, projects["Figma"].id, "Theirs", DAY)

        assert [t.description for t in get_tasks_between(DAY, DAY_END, member.id)] == ["Mine"]

    def test_task_descriptions(self, seeded_db, member, projects):
        """Descriptions are scoped to the member and window."""
        create_task_db(member.id, projects["Figma"].id, "Mine", DAY)
        create_task_db(member.id, projects["Figma"].id, "Later", NEXT_DAY)

        assert get_task_descriptions(member.id, DAY, DAY_END) == ["Mine"]

    def test_tasks_since(self, seeded_db, member, projects):
        """Tasks on or after the instant are returned."""
        create_task_db(member.id, projects["Figma"].id, "Old", "2026-10-01T00:00:00.000Z")
        create_task_db(member.id, projects["Figma"].id, "New", DAY)

        assert [t.description for t in get_tasks_since("2026-10-12T00:00:00.000Z")] == ["New"]


class TestTaskUpdates:
    """Tests for updating and deleting tasks."""

    def test_update_status(self, seeded_db, member, projects):
        """Any status can move to any other status."""
        task = create_task_db(member.id, projects["Figma"].id, "Ship", DAY, "done")
        for status in ("blocked", "todo", "in_progress", "done"):
            assert update_task_db(task.id, status=status).status == status

    def test_update_moves_updated_at_only_on_change(self, seeded_db, member, projects):
        """No-op updates leave updated_at alone; created_at never moves."""
        task = create_task_db(member.id, projects["Figma"].id, "Ship", DAY)
        with get_db() as conn:
            conn.execute("UPDATE tasks SET updated_at = ? WHERE id = ?", ("2000-01-01T00:00:00.000Z", task.id))
            conn.commit()

        unchanged = update_task_db(task.id, status="todo")
        assert unchanged.updated_at == "2000-01-01T00:00:00.000Z"

        changed = update_task_db(task.id, description="Ship it", created_at="2030-01-01T00:00:00.000Z")
        assert changed.description == "Ship it"
        assert changed.created_at == DAY
        assert changed.updated_at > "2000-01-01T00:00:00.000Z"

    def test_clear_due_date(self, seeded_db, member, projects):
        """Setting due_date to None clears it."""
        _, tasks = create_update_with_tasks_db(member.id, "x", DAY, [
            {"project_id": projects["Figma"].id, "description": "Due soon", "due_date": "2026-10-22"},
        ])
        assert update_task_db(tasks[0].id, due_date=None).due_date is None

    def test_update_missing(self, test_db):
        """Updating an unknown task returns None."""
        assert update_task_db("nope", status="done") is None

    def test_delete(self, seeded_db, member, projects):
        """Deleted task is gone; second delete reports False."""
        task = create_task_db(member.id, projects["Figma"].id, "Ship", DAY)
        assert delete_task_db(task.id) is True
        assert get_task(task.id) is None
        assert delete_task_db(task.id) is False
