import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_PATH = os.getenv("DATABASE_PATH", "updates.db")

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")

# Slack notifications are skipped entirely when no bot token is set
SLACK_BOT_TOKEN = os.getenv("SLACK_BOT_TOKEN")

# Catch-all project for parsed tasks whose project name matches nothing
FALLBACK_PROJECT_NAME = os.getenv("FALLBACK_PROJECT_NAME", "Internal/Individual")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def api_key_configured() -> bool:
    return bool(ANTHROPIC_API_KEY) and ANTHROPIC_API_KEY != "your-api-key-here"
