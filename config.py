"""Global configuration for the Event Finder client services."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Supabase (storage buckets for event images and avatars)
SUPABASE_URL = (os.getenv("SUPABASE_URL") or "").rstrip("/") or None
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Event Finder backend API
BACKEND_URL = os.getenv("EVENTFINDER_BACKEND_URL") or os.getenv("BACKEND_URL")

# Local state (reminder handles, etc.)
DATA_DIR = Path(os.getenv("EVENTFINDER_DATA_DIR", Path(os.getenv("LOCALAPPDATA", ".")) / "eventfinder"))

# Logging
LOG_DIR = DATA_DIR / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)
LOG_LEVEL = os.getenv("EVENTFINDER_LOG_LEVEL", "INFO").upper()
