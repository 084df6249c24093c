"""
Update ingestion pipeline: day windows, project normalization,
duplicate filtering and carry-over of unfinished tasks.

Everything here is a plain function over explicit inputs; the route
layer fetches rows from the database and passes them in.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from models import CandidateTask, Project, Task


class ConfigurationError(Exception):
    """Irrecoverable setup problem, e.g. the fallback project is missing."""


class NoNewTasksError(Exception):
    """Every candidate task already exists for this member and day."""

    def __init__(self, message: str = "All tasks already exist for today"):
        super().__init__(message)
        self.message = message


# Day-Window Resolver

def format_instant(moment: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision.

    Fixed width, so lexical order of stored strings equals time order.
    """
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


def day_window(day: Optional[date] = None, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    Inclusive UTC window [00:00:00.000, 23:59:59.999] for a calendar day.
    Without a day, the calendar day of the current instant is used.
    """
    if day is None:
        day = (now or utc_now()).astimezone(timezone.utc).date()
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return start, end


def day_window_iso(day: Optional[date] = None, now: Optional[datetime] = None) -> tuple[str, str]:
    start, end = day_window(day, now)
    return format_instant(start), format_instant(end)


# Normalizer

def resolve_project_id(name: str, projects: Iterable[Project], fallback_name: str) -> str:
    """
    Map a free-text project name to a project id.
    Case-insensitive exact match; anything else goes to the fallback project.
    """
    projects = list(projects)
    wanted = (name or "").lower()
    for project in projects:
        if project.name.lower() == wanted:
            return project.id
    for project in projects:
        if project.name == fallback_name:
            return project.id
    raise ConfigurationError(f"Fallback project '{fallback_name}' not found")


# Deduplicator

def normalize_description(description: str) -> str:
    """Equality key for duplicate checks: trimmed and lowercased, nothing else."""
    return description.strip().lower()


def partition_candidates(
    existing_descriptions: Iterable[str],
    candidates: list[CandidateTask],
) -> tuple[list[CandidateTask], list[CandidateTask]]:
    """
    Split candidates into (accepted, rejected) against descriptions already
    recorded for the same member and day. Repeats within the batch are
    rejected after their first occurrence.
    """
    seen = {normalize_description(d) for d in existing_descriptions}
    accepted: list[CandidateTask] = []
    rejected: list[CandidateTask] = []
    for candidate in candidates:
        key = normalize_description(candidate.description)
        if key in seen:
            rejected.append(candidate)
            continue
        seen.add(key)
        accepted.append(candidate)
    return accepted, rejected


def filter_new_candidates(
    existing_descriptions: Iterable[str],
    candidates: list[CandidateTask],
) -> tuple[list[CandidateTask], int]:
    """Accepted candidates and the skipped count; raises NoNewTasksError if none survive."""
    accepted, rejected = partition_candidates(existing_descriptions, candidates)
    if not accepted:
        raise NoNewTasksError()
    return accepted, len(rejected)


def dedupe_for_display(tasks: list[Task]) -> list[Task]:
    """
    Keep one task per (member, normalized description).
    Input is ordered newest first, so the first occurrence wins.
    """
    seen = set()
    unique = []
    for task in tasks:
        key = (task.user_id, normalize_description(task.description))
        if key in seen:
            continue
        seen.add(key)
        unique.append(task)
    return unique


# Carry-Over Resolver

def is_next_day(viewed: date, today: date) -> bool:
    return viewed == today + timedelta(days=1)


def resolve_carry_over(viewed: date, today: date, today_tasks: list[Task]) -> list[Task]:
    """Today's unfinished tasks, flagged as carried, when viewing tomorrow."""
    if not is_next_day(viewed, today):
        return []
    return [
        task.model_copy(update={"carried": True})
        for task in today_tasks
        if task.status != "done"
    ]


def merge_carried(day_tasks: list[Task], carried: list[Task]) -> list[Task]:
    """Day tasks followed by carried tasks not already present by id."""
    present = {task.id for task in day_tasks}
    merged = list(day_tasks)
    for task in carried:
        if task.id in present:
            continue
        present.add(task.id)
        merged.append(task)
    return merged
