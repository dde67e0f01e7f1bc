"""
Project-wide constants for prompt analysis
"""  # noqa: D200, D212, D415

# ==============================================================================
# Token Estimation and Batching
# ==============================================================================

CHARS_PER_TOKEN = 4
SYSTEM_OVERHEAD_TOKENS = 2_000  # instruction template plus response headroom

OLLAMA_TOKEN_BUDGET = 30_000
ANTHROPIC_TOKEN_BUDGET = 100_000
GOOGLE_TOKEN_BUDGET = 500_000

# ==============================================================================
# Retry and Rate Limiting
# ==============================================================================

MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds
RETRY_MAX_DELAY = 30.0  # seconds

DEFAULT_REQUESTS_PER_MINUTE = 50
RATE_LIMIT_WINDOW = 60  # seconds

# ==============================================================================
# Timeouts
# ==============================================================================

AVAILABILITY_TIMEOUT = 5.0  # seconds, enforced by the selector
OLLAMA_AVAILABILITY_TIMEOUT = 3.0  # seconds
CLOUD_AVAILABILITY_TIMEOUT = 5.0  # seconds
ANALYZE_TIMEOUT = 60.0  # seconds

# ==============================================================================
# Provider Defaults
# ==============================================================================

DEFAULT_OLLAMA_MODEL = "llama3.2"
DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_ANTHROPIC_MODEL = "claude-3-5-haiku-latest"
DEFAULT_GOOGLE_MODEL = "gemini-2.0-flash"

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"
ANTHROPIC_MAX_TOKENS = 4096

OLLAMA_TEMPERATURE = 0.3

# ==============================================================================
# Result Shape
# ==============================================================================

MAX_PATTERNS = 5
MAX_EXAMPLES = 3
FREQUENCY_PRECISION = 4
SCORE_PRECISION = 2
NO_ISSUES_SUGGESTION = "No issues found"

# ==============================================================================
# Cache
# ==============================================================================

CACHE_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days
CACHE_METADATA_FILE = ".metadata.json"
