# Scoring
PASS_SCORE_THRESHOLD = 75  # overall percent at or above which an interview counts as passed
MIN_SCORE = 0.0
MAX_SCORE = 10.0

# Answers shorter than this (after trimming) are scored zero without an LLM call
MIN_ANSWER_LENGTH = 10
MAX_ANSWER_LENGTH = 10000

# Evaluator gateway retry configuration
DEFAULT_LLM_MAX_RETRIES = 2
DEFAULT_LLM_BASE_DELAY = 0.5  # seconds, doubled on every retry
DEFAULT_LLM_MAX_DELAY = 4.0
DEFAULT_LLM_TIMEOUT = 30.0

# Session store optimistic concurrency
DEFAULT_MAX_CONFLICT_RETRIES = 3

# History pagination
DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 100

# Dashboard
RECENT_INTERVIEWS_LIMIT = 5
WEEKLY_PERFORMANCE_DAYS = 7

# Defaults
DEFAULT_DATABASE_URL = "sqlite:///interview_coach.db"
DEFAULT_MODEL_ID = "openai:gpt-4o-mini"
DEFAULT_QUESTION_CATEGORY = "General"

# CLI User
CLI_USER_ID = "cli-user"
