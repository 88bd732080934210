import os

from dotenv import load_dotenv

load_dotenv()

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL = os.getenv("NEXUS_MODEL", "claude-sonnet-4-5")

DATABASE_PATH = os.getenv("NEXUS_DATABASE_PATH", "nexus.db")

# Stand-in for the browser's local storage: oversized media lives here only
LOCAL_CACHE_DIR = os.getenv("NEXUS_LOCAL_CACHE_DIR", ".nexus_cache")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("NEXUS_CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("NEXUS_LOG_LEVEL", "INFO").upper()
