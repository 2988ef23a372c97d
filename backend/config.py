import os
from dotenv import load_dotenv

load_dotenv()

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-5")
CLAUDE_MAX_TOKENS = int(os.getenv("CLAUDE_MAX_TOKENS", "2000"))

DATABASE_PATH = os.getenv("DATABASE_PATH", "inoot.db")

APP_ENV = os.getenv("APP_ENV", "development")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]


def api_key_configured() -> bool:
    """True when a real Anthropic key is present (not the .env placeholder)."""
    return bool(ANTHROPIC_API_KEY) and ANTHROPIC_API_KEY != "your-api-key-here"


def is_production() -> bool:
    return APP_ENV.lower() == "production"
