from contextlib import asynccontextmanager
from fastapi import BackgroundTasks, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import datetime
import logging
import sqlite3
import anthropic

import config
from ai import ParseError, answer_question, parse_update
from models import (
    CandidateTask,
    ChatRequest,
    DayView,
    ParseRequest,
    ParseResponse,
    Project,
    ProjectCreate,
    Task,
    TaskCreate,
    TaskUpdate,
    TeamMember,
    TeamMemberCreate,
    TeamMemberUpdate,
    UpdateCreate,
    UpdateResult,
)
from database import (
    init_db,
    get_team_members,
    get_team_member,
    create_team_member_db,
    update_team_member_db,
    delete_team_member_db,
    get_projects,
    get_project,
    create_project_db,
    delete_project_db,
    get_task,
    get_tasks_between,
    get_tasks_since,
    get_task_descriptions,
    create_update_with_tasks_db,
    create_task_db,
    update_task_db,
    delete_task_db,
)
from notifications import TaskAction, notify_task_change
from pipeline import (
    ConfigurationError,
    NoNewTasksError,
    day_window_iso,
    dedupe_for_display,
    filter_new_candidates,
    format_instant,
    is_next_day,
    merge_carried,
    normalize_description,
    resolve_carry_over,
    resolve_project_id,
    utc_now,
    utc_today,
)

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _duplicates_error(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": message, "duplicates": True})


def _schedule_notification(
    background_tasks: BackgroundTasks,
    task: Task,
    action: TaskAction,
    old_status: Optional[str] = None,
    new_status: Optional[str] = None,
):
    """Queue a Slack DM to the task owner. Runs after the response is sent."""
    if not task.user or not task.user.slack_user_id:
        return
    background_tasks.add_task(
        notify_task_change,
        task.user.slack_user_id,
        action,
        task.description,
        task.project.name if task.project else "",
        old_status,
        new_status,
    )


# Ingestion

@app.post("/parse")
async def parse(parse_request: ParseRequest) -> ParseResponse:
    """Parse a raw update into candidate tasks for the user to confirm."""
    if not parse_request.raw_text.strip():
        raise HTTPException(status_code=400, detail="raw_text is required")

    today = parse_request.date or utc_today()
    try:
        tasks = await parse_update(
            parse_request.raw_text,
            get_team_members(),
            get_projects(active_only=True),
            today,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except ParseError as e:
        logger.warning("Could not parse model response: %s", e.raw)
        raise HTTPException(status_code=500, detail={"error": e.message, "raw": e.raw})
    except anthropic.APIError as e:
        logger.error("Model API error: %s", e)
        raise HTTPException(status_code=502, detail=f"API error: {e}")

    return ParseResponse(tasks=tasks)


@app.post("/updates")
def create_update(update_data: UpdateCreate) -> UpdateResult:
    """Persist confirmed candidate tasks, skipping ones already recorded that day."""
    if not update_data.raw_text.strip() or not update_data.tasks:
        raise HTTPException(status_code=400, detail="user_id, raw_text, and tasks are required")
    if any(not task.description.strip() for task in update_data.tasks):
        raise HTTPException(status_code=400, detail="Every task needs a description")
    if get_team_member(update_data.user_id) is None:
        raise HTTPException(status_code=404, detail="Team member not found")

    start, end = day_window_iso(update_data.date)
    existing = get_task_descriptions(update_data.user_id, start, end)
    try:
        accepted, skipped = filter_new_candidates(existing, update_data.tasks)
    except NoNewTasksError as e:
        raise _duplicates_error(e.message)

    projects = get_projects()
    try:
        rows = [
            {
                "project_id": resolve_project_id(task.project, projects, config.FALLBACK_PROJECT_NAME),
                "description": task.description,
                "status": task.status,
                "mentioned_people": task.mentioned_people,
                "due_date": task.due_date,
            }
            for task in accepted
        ]
    except ConfigurationError as e:
        logger.error("%s", e)
        raise HTTPException(status_code=500, detail=str(e))

    update, tasks = create_update_with_tasks_db(update_data.user_id, update_data.raw_text, start, rows)
    logger.info("Created %d task(s) for %s, skipped %d duplicate(s)", len(tasks), update_data.user_id, skipped)
    return UpdateResult(update=update, tasks=tasks, skipped_duplicates=skipped)


# Tasks

@app.get("/tasks")
def get_tasks(date: datetime.date = Query(...)) -> list[Task]:
    """Tasks for one calendar day, one per member and description, newest first."""
    start, end = day_window_iso(date)
    return dedupe_for_display(get_tasks_between(start, end))


@app.get("/tasks/for-date")
def get_tasks_for_date(date: datetime.date = Query(...)) -> DayView:
    """
    Day view. When the viewed day is tomorrow, today's unfinished tasks
    are appended with carried=True. Recomputed on every request.
    """
    today = utc_today()
    start, end = day_window_iso(date)
    day_tasks = dedupe_for_display(get_tasks_between(start, end))

    carried = []
    if is_next_day(date, today):
        today_start, today_end = day_window_iso(today)
        today_tasks = dedupe_for_display(get_tasks_between(today_start, today_end))
        carried = resolve_carry_over(date, today, today_tasks)

    return DayView(date=date, tasks=merge_carried(day_tasks, carried), carried=carried)


@app.post("/tasks")
def create_task(task_data: TaskCreate, background_tasks: BackgroundTasks) -> Task:
    if not task_data.description.strip():
        raise HTTPException(status_code=400, detail="user_id, project_id, and description are required")
    if get_team_member(task_data.user_id) is None:
        raise HTTPException(status_code=404, detail="Team member not found")
    if get_project(task_data.project_id) is None:
        raise HTTPException(status_code=400, detail="Project not found")

    start, end = day_window_iso(task_data.date)
    existing = get_task_descriptions(task_data.user_id, start, end)
    try:
        filter_new_candidates(existing, [CandidateTask(description=task_data.description, status=task_data.status)])
    except NoNewTasksError:
        raise _duplicates_error("Task already exists for this day")

    task = create_task_db(task_data.user_id, task_data.project_id, task_data.description, start, task_data.status)
    _schedule_notification(background_tasks, task, "created")
    return task


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, task_data: TaskUpdate, background_tasks: BackgroundTasks) -> Task:
    current = get_task(task_id)
    if not current:
        raise HTTPException(status_code=404, detail="Task not found")

    updates = {k: v for k, v in task_data.model_dump(exclude_unset=True).items() if v is not None or k == "due_date"}
    if "due_date" in updates:
        updates["due_date"] = updates["due_date"] or None
    if "description" in updates and not updates["description"].strip():
        raise HTTPException(status_code=400, detail="description cannot be empty")
    if "project_id" in updates and get_project(updates["project_id"]) is None:
        raise HTTPException(status_code=400, detail="Project not found")

    # A new description must not collide with another task of the same member and day
    own_key = normalize_description(current.description)
    if "description" in updates and normalize_description(updates["description"]) != own_key:
        start, end = day_window_iso(datetime.date.fromisoformat(current.created_at[:10]))
        others = [d for d in get_task_descriptions(current.user_id, start, end) if normalize_description(d) != own_key]
        try:
            filter_new_candidates(others, [CandidateTask(description=updates["description"])])
        except NoNewTasksError:
            raise _duplicates_error("Task already exists for this day")

    result = update_task_db(task_id, **updates)
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")

    if result.status != current.status:
        _schedule_notification(background_tasks, result, "status_changed", current.status, result.status)
    elif any(getattr(result, field) != getattr(current, field) for field in updates):
        _schedule_notification(background_tasks, result, "updated")
    return result


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str, background_tasks: BackgroundTasks) -> dict:
    task = get_task(task_id)
    if not task or not delete_task_db(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    _schedule_notification(background_tasks, task, "deleted")
    return {"status": "deleted"}


# Team members

@app.get("/team-members")
def list_team_members() -> list[TeamMember]:
    return get_team_members()


@app.post("/team-members")
def create_team_member(member_data: TeamMemberCreate) -> TeamMember:
    if not member_data.name.strip() or not member_data.color.strip():
        raise HTTPException(status_code=400, detail="name and color are required")
    try:
        return create_team_member_db(member_data.name, member_data.color, member_data.slack_user_id)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Team member name already exists")


@app.patch("/team-members/{member_id}")
def update_team_member(member_id: str, member_data: TeamMemberUpdate) -> TeamMember:
    for field in ("name", "color"):
        value = getattr(member_data, field)
        if value is not None and not value.strip():
            raise HTTPException(status_code=400, detail=f"{field} cannot be empty")
    try:
        result = update_team_member_db(member_id, **member_data.model_dump())
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Team member name already exists")
    if not result:
        raise HTTPException(status_code=404, detail="Team member not found")
    return result


@app.delete("/team-members/{member_id}")
def delete_team_member(member_id: str) -> dict:
    if not delete_team_member_db(member_id):
        raise HTTPException(status_code=404, detail="Team member not found")
    return {"status": "deleted"}


# Projects

@app.get("/projects")
def list_projects(active_only: bool = False) -> list[Project]:
    return get_projects(active_only=active_only)


@app.post("/projects")
def create_project(project_data: ProjectCreate) -> Project:
    if not project_data.name.strip() or not project_data.color.strip():
        raise HTTPException(status_code=400, detail="name and color are required")
    try:
        return create_project_db(project_data.name, project_data.color)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Project name already exists")


@app.delete("/projects/{project_id}")
def delete_project(project_id: str) -> dict:
    project = get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    if project.name == config.FALLBACK_PROJECT_NAME:
        raise HTTPException(status_code=409, detail="The fallback project cannot be deleted")

    # Tasks on the deleted project move to the fallback project
    fallback = next((p for p in get_projects() if p.name == config.FALLBACK_PROJECT_NAME), None)
    if fallback is None:
        logger.error("Fallback project '%s' not found", config.FALLBACK_PROJECT_NAME)
        raise HTTPException(status_code=500, detail=f"Fallback project '{config.FALLBACK_PROJECT_NAME}' not found")
    delete_project_db(project_id, reassign_to=fallback.id)
    return {"status": "deleted", "reassigned_to": fallback.id}


# Q&A

@app.post("/chat")
async def chat(chat_request: ChatRequest) -> dict:
    """Answer a question about the last 7 days of team activity."""
    if not chat_request.question.strip():
        raise HTTPException(status_code=400, detail="question is required")

    since = format_instant(utc_now() - datetime.timedelta(days=7))
    try:
        answer = await answer_question(
            chat_request.question,
            get_team_members(),
            get_projects(),
            get_tasks_since(since),
            utc_today(),
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except anthropic.APIError as e:
        logger.error("Model API error: %s", e)
        raise HTTPException(status_code=502, detail=f"API error: {e}")

    return {"answer": answer}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
