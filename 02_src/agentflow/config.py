"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "agentflow.db"
DEFAULT_LOG_PATH = LOGS_DIR / "agentflow.log"

DEFAULT_STEP_TIMEOUT = 30.0
DEFAULT_MAX_CONCURRENCY = 5
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_MODEL = "claude-3-5-sonnet-20241022"


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


@dataclass
class Settings:
    """Runtime settings resolved from the environment."""

    log_level: str = "INFO"
    log_file: str = str(DEFAULT_LOG_PATH)
    log_format: str = "json"
    database_url: PathLike = DEFAULT_DB_PATH
    step_timeout: float = DEFAULT_STEP_TIMEOUT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY
    anthropic_model: str = DEFAULT_MODEL
    api_host: str = "localhost"
    api_port: int = 8000
    trace_retention_days: float | None = None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    return _env_float(name, 0.0)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_settings(env_file: PathLike | None = None) -> Settings:
    """
    Load settings from the environment.

    Args:
        env_file: Optional .env file. Defaults to PROJECT_ROOT/.env when present.
                  Variables already set in the process environment win.

    Returns:
        Settings instance
    """
    load_dotenv(env_file or PROJECT_ROOT / ".env")

    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_file=os.getenv("LOG_FILE", str(DEFAULT_LOG_PATH)),
        log_format=os.getenv("LOG_FORMAT", "json"),
        database_url=resolve_db_path(os.getenv("DATABASE_URL")),
        step_timeout=_env_float("AGENTFLOW_STEP_TIMEOUT", DEFAULT_STEP_TIMEOUT),
        max_concurrency=_env_int("AGENTFLOW_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY),
        retry_attempts=_env_int("AGENTFLOW_RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS),
        retry_delay=_env_float("AGENTFLOW_RETRY_DELAY", DEFAULT_RETRY_DELAY),
        anthropic_model=os.getenv("ANTHROPIC_MODEL", DEFAULT_MODEL),
        api_host=os.getenv("API_HOST", "localhost"),
        api_port=_env_int("API_PORT", 8000),
        trace_retention_days=_env_optional_float("AGENTFLOW_TRACE_RETENTION_DAYS"),
    )
