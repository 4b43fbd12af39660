"""
Configuration constants and Pydantic models for dialogue-eval.
"""

import os
from pathlib import Path
from typing import Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS
# ─────────────────────────────────────────────────────────────────────

DEFAULT_THRESHOLD: float = 0.7
DEFAULT_MAX_CONCURRENCY: int = 5
DEFAULT_OUTPUT_FORMAT: str = "markdown"
DEFAULT_TIMEOUT_SECONDS: int = 60
DEFAULT_TEMPERATURE: float = 0.0  # Deterministic for evals
DEFAULT_TRANSCRIPT_EXTENSIONS: tuple[str, ...] = (".txt",)
DEFAULT_AGENT_BASE_URL: str = "http://localhost:1234/v1"

OUTPUT_FORMATS: tuple[str, ...] = ("markdown", "json", "text")


# ─────────────────────────────────────────────────────────────────────
# INTERNAL CONSTANTS
# ─────────────────────────────────────────────────────────────────────

REPORT_DIVIDER: str = "\n\n" + "=" * 80 + "\n\n"


# ─────────────────────────────────────────────────────────────────────
# EVALUATION SETTINGS - overridable via .env
# ─────────────────────────────────────────────────────────────────────

def get_threshold() -> float:
    """
    Get pass/fail score threshold from environment or default.

    Set EVAL_THRESHOLD in .env (default: 0.7). Values outside [0, 1]
    fall back to the default.
    """
    try:
        value = float(os.environ.get("EVAL_THRESHOLD", str(DEFAULT_THRESHOLD)))
    except ValueError:
        return DEFAULT_THRESHOLD
    if not 0.0 <= value <= 1.0:
        return DEFAULT_THRESHOLD
    return value


def get_max_concurrency() -> int:
    """
    Get max concurrent test case executions.

    Set EVAL_MAX_CONCURRENCY in .env (default: 5).
    """
    try:
        value = int(os.environ.get("EVAL_MAX_CONCURRENCY", str(DEFAULT_MAX_CONCURRENCY)))
    except ValueError:
        return DEFAULT_MAX_CONCURRENCY
    return value if value >= 1 else DEFAULT_MAX_CONCURRENCY


# ─────────────────────────────────────────────────────────────────────
# RETRY CONFIGURATION - For transient agent errors
# ─────────────────────────────────────────────────────────────────────

def get_retry_attempts() -> int:
    """
    Get max retry attempts from environment or default.

    Set AGENT_RETRY_ATTEMPTS in .env (default: 3).
    """
    try:
        return int(os.environ.get("AGENT_RETRY_ATTEMPTS", "3"))
    except ValueError:
        return 3


def get_retry_min_wait() -> int:
    """
    Get minimum wait between retries in seconds.

    Set AGENT_RETRY_MIN_WAIT in .env (default: 1).
    """
    try:
        return int(os.environ.get("AGENT_RETRY_MIN_WAIT", "1"))
    except ValueError:
        return 1


def get_retry_max_wait() -> int:
    """
    Get maximum wait between retries in seconds.

    Set AGENT_RETRY_MAX_WAIT in .env (default: 30).
    """
    try:
        return int(os.environ.get("AGENT_RETRY_MAX_WAIT", "30"))
    except ValueError:
        return 30


# ─────────────────────────────────────────────────────────────────────
# AGENT ENDPOINT
# ─────────────────────────────────────────────────────────────────────

def get_agent_base_url() -> str:
    """Get OpenAI-compatible agent base URL (AGENT_BASE_URL)."""
    return os.environ.get("AGENT_BASE_URL", "").strip() or DEFAULT_AGENT_BASE_URL


def get_agent_api_key() -> str | None:
    """Get agent API key from environment (AGENT_API_KEY)."""
    return os.environ.get("AGENT_API_KEY") or None


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

class EvaluationConfig(BaseModel):
    """Settings for an evaluation run."""
    threshold: float = Field(default_factory=get_threshold, ge=0.0, le=1.0)
    max_concurrency: int = Field(default_factory=get_max_concurrency, ge=1)
    output_format: Literal["markdown", "json", "text"] = DEFAULT_OUTPUT_FORMAT


def load_config(file_path: Optional[Union[str, Path]] = None) -> EvaluationConfig:
    """
    Load evaluation config from a YAML file, over environment defaults.

    A missing file (or no path) yields the defaults.

    Raises:
        ValueError: If the YAML is malformed or a value is invalid
    """
    data: dict = {}
    if file_path:
        path = Path(file_path)
        if path.exists():
            try:
                loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in config file {path}: {e}") from e
            if loaded is not None and not isinstance(loaded, dict):
                raise ValueError(f"Config file {path} must contain a mapping")
            data = loaded or {}

    try:
        return EvaluationConfig(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid evaluation config: {e}") from e
