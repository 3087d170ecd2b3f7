"""
Runtime configuration for the SEO Scanner.
Values come from environment variables (optionally loaded from a .env file).
"""
import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# --- Logging / API ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]

# --- Page fetching ---
FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", 10))  # seconds
FETCH_MAX_REDIRECTS = int(os.getenv("FETCH_MAX_REDIRECTS", 5))
PROBE_TIMEOUT = float(os.getenv("PROBE_TIMEOUT", 5))  # robots.txt / sitemap.xml
USER_AGENT = os.getenv(
    "USER_AGENT",
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
)

# --- SERP API (rank checks) ---
SERP_API_KEY = os.getenv("SERP_API_KEY")
SERP_API_URL = os.getenv("SERP_API_URL", "https://serpapi.com/search.json")
SERP_RESULTS_LIMIT = int(os.getenv("SERP_RESULTS_LIMIT", 100))
RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", 100))  # requests per window
RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", 60))  # seconds

# --- LLM ---
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")

# --- Storage ---
DATA_DIR = Path(os.getenv("DATA_DIR", "data"))
RESULTS_DIR = Path(os.getenv("RESULTS_DIR", "results"))
CACHE_DIR = Path(os.getenv("CACHE_DIR", "cache"))
CACHE_DURATION = timedelta(hours=int(os.getenv("CACHE_DURATION_HOURS", 24)))
RANK_HISTORY_LIMIT = int(os.getenv("RANK_HISTORY_LIMIT", 1000))

# --- Analysis ---
# 'substring' counts tokens that contain the keyword, 'word' needs whole-word matches
KEYWORD_MATCH_MODE = os.getenv("KEYWORD_MATCH_MODE", "substring").lower()

# --- Email reports ---
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
REPORT_FROM_EMAIL = os.getenv("REPORT_FROM_EMAIL", SMTP_USER or "reports@seoscanner.local")
ENABLE_REPORT_SCHEDULER = _get_bool("ENABLE_REPORT_SCHEDULER", False)
REPORT_CHECK_INTERVAL = int(os.getenv("REPORT_CHECK_INTERVAL", 3600))  # seconds
