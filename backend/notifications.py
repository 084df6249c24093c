"""Slack direct messages about task changes. Failures are logged, never raised."""
import logging
from typing import Literal, Optional

from slack_sdk import WebClient

import config

logger = logging.getLogger(__name__)

slack: Optional[WebClient] = WebClient(token=config.SLACK_BOT_TOKEN) if config.SLACK_BOT_TOKEN else None

TaskAction = Literal["created", "updated", "status_changed", "deleted"]

STATUS_LABELS = {
    "todo": "Todo",
    "in_progress": "In Progress",
    "done": "Done",
    "blocked": "Blocked",
}


def send_slack_dm(slack_user_id: Optional[str], message: str) -> bool:
    """Send a DM. Returns False when skipped or failed."""
    if slack is None:
        logger.debug("No Slack client configured, skipping DM")
        return False
    if not slack_user_id:
        return False

    try:
        slack.chat_postMessage(channel=slack_user_id, text=message)
    except Exception:
        logger.exception("Failed to send Slack DM to %s", slack_user_id)
        return False
    return True


def format_task_message(
    action: TaskAction,
    task_description: str,
    project_name: str,
    old_status: Optional[str] = None,
    new_status: Optional[str] = None,
) -> str:
    if action == "created":
        return f"*New task assigned to you:*\n{task_description}\n_Project: {project_name}_"
    if action == "updated":
        return f"*Task updated:*\n{task_description}\n_Project: {project_name}_"
    if action == "status_changed":
        old_label = STATUS_LABELS.get(old_status or "", old_status)
        new_label = STATUS_LABELS.get(new_status or "", new_status)
        return f"*Task status changed:* {old_label} -> {new_label}\n{task_description}"
    return f"*Task deleted:*\n{task_description}"


def notify_task_change(
    slack_user_id: Optional[str],
    action: TaskAction,
    task_description: str,
    project_name: str,
    old_status: Optional[str] = None,
    new_status: Optional[str] = None,
) -> bool:
    """Tell a member about a change to one of their tasks, if they have a Slack handle."""
    if not slack_user_id:
        return False
    message = format_task_message(action, task_description, project_name, old_status, new_status)
    return send_slack_dm(slack_user_id, message)
