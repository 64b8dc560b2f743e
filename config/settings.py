"""Centralized configuration management."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent
SRC_DIR = BASE_DIR / "src"
DATA_DIR = BASE_DIR / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)
SCREENSHOT_DIR = Path(os.getenv("SCREENSHOT_DIR", str(DATA_DIR / "screenshots")))

# AI Providers
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
PERPLEXITY_API_KEY = os.getenv("PERPLEXITY_API_KEY")
PERPLEXITY_MODEL = os.getenv("PERPLEXITY_MODEL", "sonar-pro")
PERPLEXITY_BASE_URL = os.getenv("PERPLEXITY_BASE_URL", "https://api.perplexity.ai")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
AI_QUOTA_COOLDOWN_SECONDS = int(os.getenv("AI_QUOTA_COOLDOWN_SECONDS", "3600"))

# Browser
BROWSER_HEADLESS = os.getenv("BROWSER_HEADLESS", "true").lower() == "true"
NAVIGATION_TIMEOUT_MS = int(os.getenv("NAVIGATION_TIMEOUT_MS", "30000"))
SETTLE_DELAY_MS = int(os.getenv("SETTLE_DELAY_MS", "2000"))

# Queue
QUEUE_NAME = os.getenv("QUEUE_NAME", "job-applications")
QUEUE_MAX_ATTEMPTS = int(os.getenv("QUEUE_MAX_ATTEMPTS", "3"))
QUEUE_BACKOFF_MS = int(os.getenv("QUEUE_BACKOFF_MS", "60000"))
QUEUE_KEEP_COMPLETED = int(os.getenv("QUEUE_KEEP_COMPLETED", "100"))
QUEUE_KEEP_FAILED = int(os.getenv("QUEUE_KEEP_FAILED", "200"))
QUEUE_LEASE_SECONDS = int(os.getenv("QUEUE_LEASE_SECONDS", "300"))
QUEUE_POLL_INTERVAL = float(os.getenv("QUEUE_POLL_INTERVAL", "1.0"))
QUEUE_ERROR_LOG_WINDOW = int(os.getenv("QUEUE_ERROR_LOG_WINDOW", "60"))
QUEUE_RECONNECT_ATTEMPTS = int(os.getenv("QUEUE_RECONNECT_ATTEMPTS", "3"))
QUEUE_STATS_INTERVAL = int(os.getenv("QUEUE_STATS_INTERVAL", "30"))

# Apply API
APPLY_DELAY_MS = int(os.getenv("APPLY_DELAY_MS", "5000"))
APPLY_PRIORITY = int(os.getenv("APPLY_PRIORITY", "1"))
BULK_PRIORITY = int(os.getenv("BULK_PRIORITY", "10"))
BULK_STAGGER_MS = int(os.getenv("BULK_STAGGER_MS", "2000"))
MAX_APPLICATIONS_PER_DAY = int(os.getenv("MAX_APPLICATIONS_PER_DAY", "20"))

# Flask Settings
FLASK_PORT = int(os.getenv("FLASK_PORT", "8002"))
FLASK_DEBUG = os.getenv("FLASK_DEBUG", "false").lower() == "true"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Tracing
MLFLOW_TRACING_ENABLED = os.getenv("MLFLOW_TRACING_ENABLED", "false").lower() == "true"
MLFLOW_EXPERIMENT = os.getenv("MLFLOW_EXPERIMENT", "job-applications")

# Database
DEFAULT_DB_PATH = DATA_DIR / "applications.db"
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}")
