"""Calls to the hosted language model: update parsing and team Q&A."""
import json
import logging
import re
from collections import defaultdict
from datetime import date, timedelta

import anthropic
from pydantic import ValidationError

import config
from models import CandidateTask, Project, Task, TeamMember
from pipeline import ConfigurationError
from prompts import CHAT_SYSTEM_PROMPT, PARSE_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

client = anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY)


class ParseError(Exception):
    """The model response could not be turned into a task list."""

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.message = message
        self.raw = raw


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


def extract_json_object(text: str) -> dict:
    """
    Parse a JSON object out of a model response.
    Tries the whole text first, then the first balanced {...} that decodes.
    """
    cleaned = _strip_code_fence(text)
    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", cleaned):
        try:
            obj, _ = decoder.raw_decode(cleaned, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj

    raise ParseError("Failed to parse AI response as JSON", text)


def parse_candidates(text: str) -> list[CandidateTask]:
    """Validate the {"tasks": [...]} shape of a model response."""
    parsed = extract_json_object(text)
    tasks = parsed.get("tasks")
    if not isinstance(tasks, list):
        raise ParseError("Invalid response structure", text)
    try:
        candidates = [CandidateTask.model_validate(task) for task in tasks]
    except ValidationError as e:
        logger.warning("Parsed tasks failed validation: %s", e)
        raise ParseError("Invalid response structure", text) from e
    if any(not c.description.strip() for c in candidates):
        logger.warning("Parsed tasks include a blank description")
        raise ParseError("Invalid response structure", text)
    return candidates


def _response_text(response) -> str | None:
    if not response.content:
        return None
    block = response.content[0]
    if getattr(block, "type", "text") != "text":
        return None
    return block.text


async def parse_update(
    raw_text: str,
    members: list[TeamMember],
    projects: list[Project],
    today: date,
) -> list[CandidateTask]:
    """Turn one raw update into candidate tasks via the model."""
    if not config.api_key_configured():
        raise ConfigurationError("API key not configured")

    system_prompt = PARSE_SYSTEM_PROMPT.format(
        team_members=", ".join(m.name for m in members),
        projects=", ".join(p.name for p in projects),
        fallback_project=config.FALLBACK_PROJECT_NAME,
        today=today.isoformat(),
    )

    response = await client.messages.create(
        model=config.ANTHROPIC_MODEL,
        max_tokens=2048,
        temperature=0.1,
        system=system_prompt,
        messages=[{"role": "user", "content": raw_text}],
    )

    text = _response_text(response)
    if not text:
        raise ParseError("No response from AI model", "")
    logger.debug("Parse response: %s", text)

    return parse_candidates(text)


def build_task_summary(
    members: list[TeamMember],
    projects: list[Project],
    tasks: list[Task],
    today: date,
) -> str:
    """Plain-text digest of recent tasks grouped by day, then by member."""
    today_str = today.isoformat()
    yesterday_str = (today - timedelta(days=1)).isoformat()

    by_date: dict[str, list[Task]] = defaultdict(list)
    for task in tasks:
        by_date[task.created_at[:10]].append(task)

    sections = []
    for date_key in sorted(by_date, reverse=True):
        if date_key == today_str:
            label = "TODAY"
        elif date_key == yesterday_str:
            label = "YESTERDAY"
        else:
            label = date_key

        by_user: dict[str, list[Task]] = defaultdict(list)
        for task in by_date[date_key]:
            by_user[task.user.name if task.user else "Unknown"].append(task)

        lines = [f"[{label}]"]
        for user_name, user_tasks in by_user.items():
            counts = {status: sum(1 for t in user_tasks if t.status == status)
                      for status in ("done", "in_progress", "todo", "blocked")}
            lines.append(
                f"{user_name}: {len(user_tasks)} tasks ({counts['done']} done, "
                f"{counts['in_progress']} in progress, {counts['todo']} todo, {counts['blocked']} blocked)"
            )
            listed = "; ".join(
                f'"{t.description}" [{t.status}] ({t.project.name if t.project else "Unknown"})'
                for t in user_tasks
            )
            lines.append(f"  Tasks: {listed}")
        sections.append("\n".join(lines))

    return "\n".join([
        f"TEAM MEMBERS: {', '.join(m.name for m in members)}",
        "",
        f"PROJECTS: {', '.join(p.name for p in projects)}",
        "",
        f"TODAY'S DATE: {today_str}",
        f"YESTERDAY'S DATE: {yesterday_str}",
        "",
        "TASKS DATA (last 7 days):",
        "\n\n".join(sections),
    ]).strip()


async def answer_question(
    question: str,
    members: list[TeamMember],
    projects: list[Project],
    tasks: list[Task],
    today: date,
) -> str:
    if not config.api_key_configured():
        raise ConfigurationError("API key not configured")

    summary = build_task_summary(members, projects, tasks, today)
    response = await client.messages.create(
        model=config.ANTHROPIC_MODEL,
        max_tokens=500,
        temperature=0.3,
        system=CHAT_SYSTEM_PROMPT.format(data_summary=summary),
        messages=[{"role": "user", "content": question}],
    )
    return _response_text(response) or "Sorry, I couldn't process that question."
