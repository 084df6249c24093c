import datetime
from pydantic import BaseModel, Field
from typing import Literal, Optional

TaskStatus = Literal["todo", "in_progress", "done", "blocked"]

class TeamMember(BaseModel):
    id: str
    name: str
    color: str
    slack_user_id: Optional[str] = None
    created_at: str  # ISO format datetime string

class Project(BaseModel):
    id: str
    name: str
    color: str
    is_active: bool = True
    created_at: str

class Update(BaseModel):
    id: str
    user_id: str
    raw_text: str
    date: str  # Start-of-day instant of the target day
    created_at: str

class Task(BaseModel):
    id: str
    update_id: str
    user_id: str
    project_id: str
    description: str
    status: TaskStatus = "todo"
    mentioned_users: str = "[]"  # JSON-encoded list of names
    due_date: Optional[str] = None
    created_at: str  # Day key: start-of-day instant of the day the task belongs to
    updated_at: str
    user: Optional[TeamMember] = None  # None when the owning member was deleted
    project: Optional[Project] = None
    carried: bool = False  # True for yesterday's unfinished tasks shown on tomorrow's view

class CandidateTask(BaseModel):
    """A task proposed by the parser, not yet persisted."""
    description: str = Field(min_length=1)
    project: str = ""
    status: TaskStatus = "todo"
    mentioned_people: list[str] = Field(default_factory=list)
    due_date: Optional[str] = None

class ParseRequest(BaseModel):
    raw_text: str
    date: Optional[datetime.date] = None

class ParseResponse(BaseModel):
    tasks: list[CandidateTask]

class UpdateCreate(BaseModel):
    user_id: str
    raw_text: str
    tasks: list[CandidateTask]
    date: Optional[datetime.date] = None

class UpdateResult(BaseModel):
    update: Update
    tasks: list[Task]
    skipped_duplicates: int

class TaskCreate(BaseModel):
    user_id: str
    project_id: str
    description: str
    status: TaskStatus = "todo"
    date: Optional[datetime.date] = None

class TaskUpdate(BaseModel):
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    project_id: Optional[str] = None
    due_date: Optional[str] = None  # Empty string clears the due date

class DayView(BaseModel):
    date: datetime.date
    tasks: list[Task]  # Day tasks merged with carried tasks
    carried: list[Task]

class TeamMemberCreate(BaseModel):
    name: str
    color: str
    slack_user_id: Optional[str] = None

class TeamMemberUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    slack_user_id: Optional[str] = None

class ProjectCreate(BaseModel):
    name: str
    color: str

class ChatRequest(BaseModel):
    question: str
