"""
Common Constants — Centralized magic numbers and thresholds.
All tunable defaults in one place; config/agent_config.yaml overrides most of them.
"""

# ── Timing Constants ──────────────────────────────────────────────────
CONFIRMATION_TIMEOUT_SECS = 30.0
ACTION_DELAY_SECS = 0.1
ACTION_TIMEOUT_SECS = 5.0
MOUSE_PAUSE_SECS = 0.1

# ── Rate Limiting ────────────────────────────────────────────────────
RATE_WINDOW_SECS = 60.0
HOURLY_WINDOW_SECS = 3600.0
MAX_ACTIONS_PER_MINUTE = 20
MAX_ACTIONS_PER_HOUR = 500

# ── Burst Heuristic ──────────────────────────────────────────────────
BURST_ACTION_THRESHOLD = 10
BURST_WINDOW_SECS = 5.0

# ── Plans / History ──────────────────────────────────────────────────
MAX_STEPS_PER_PLAN = 10
PLANNER_STEP_HINT = 5
HISTORY_CAPACITY = 100
RECENT_ACTIONS_FOR_CONTEXT = 3
MAX_COORDINATE = 10000
DESCRIPTION_TEXT_LIMIT = 50

# ── Command Parsing ──────────────────────────────────────────────────
CONFIDENCE_THRESHOLD = 0.6
DEFAULT_INTENT_CONFIDENCE = 0.7
SCREENSHOT_INTENT_CONFIDENCE = 0.9
GENERIC_INTENT_CONFIDENCE = 0.5
UNPARSEABLE_PLAN_CONFIDENCE = 0.3
DEFAULT_PLAN_CONFIDENCE = 0.5

# ── Vision / Ollama ──────────────────────────────────────────────────
VISION_BASE_URL = "http://localhost:11434"
VISION_MODEL = "llava:7b"
VISION_REQUEST_TIMEOUT_SECS = 60
VISION_TEMPERATURE = 0.2
VISION_MAX_TOKENS = 1000

# ── Screen Capture ───────────────────────────────────────────────────
SCREENSHOT_MAX_WIDTH = 2000

# ── Paths ────────────────────────────────────────────────────────────
CONFIG_PATH = "config/agent_config.yaml"
LOG_DIR = "data/logs"

# ── Logging ──────────────────────────────────────────────────────────
LOG_FILE_PATH = f"{LOG_DIR}/agent.log"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 3
