"""Configuration for the study material generator."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"

DEFAULT_MAX_FILE_SIZE_MB = 25
DEFAULT_MIN_WORD_COUNT = 500
DEFAULT_MAX_WORD_COUNT = 50000
DEFAULT_TRANSCRIPT_WORD_THRESHOLD = 15000
DEFAULT_RATE_LIMIT_PER_MINUTE = 10
DEFAULT_REQUEST_TIMEOUT = 120
DEFAULT_JOB_TTL = 86400

DEFAULT_DIFFICULTY = 3
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
SUPPORTED_LANGUAGES = {"en", "fr"}

# (temperature, max_tokens) per operation
GENERATION_POLICY = {
    "analyze": (0.5, 2048),
    "flashcard-batch": (0.9, 4096),
    "mcq-batch": (0.7, 4096),
}

# Chars per token is roughly 4 for English; anything beyond the largest
# max_tokens cannot have come from a single completion.
MAX_RESPONSE_CHARS = max(tokens for _, tokens in GENERATION_POLICY.values()) * 8

PDF_JOB_PREFIX = "pdf-job"
PDF_MIME_TYPE = "application/pdf"
PDF_SIGNATURE = b"%PDF-"

SENSITIVE_KEYS = ("key", "token", "password", "secret", "credential")


def safe_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    model: Optional[str]
    api_key: Optional[str]
    base_url: str
    max_file_size_mb: int
    min_word_count: int
    max_word_count: int
    transcript_word_threshold: int
    rate_limit_per_minute: int
    request_timeout: int
    redis_url: Optional[str]
    job_ttl: int

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


def load_settings(environ: Optional[Dict[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    return Settings(
        model=(env.get("OPENAI_MODEL") or "").strip() or None,
        api_key=(env.get("OPENAI_API_KEY") or "").strip() or None,
        base_url=(env.get("OPENAI_BASE_URL") or "").strip() or DEFAULT_BASE_URL,
        max_file_size_mb=safe_int(env.get("MAX_FILE_SIZE_MB"), DEFAULT_MAX_FILE_SIZE_MB),
        min_word_count=safe_int(env.get("MIN_WORD_COUNT"), DEFAULT_MIN_WORD_COUNT),
        max_word_count=safe_int(env.get("MAX_WORD_COUNT"), DEFAULT_MAX_WORD_COUNT),
        transcript_word_threshold=safe_int(
            env.get("TRANSCRIPT_WORD_THRESHOLD"), DEFAULT_TRANSCRIPT_WORD_THRESHOLD
        ),
        rate_limit_per_minute=safe_int(
            env.get("RATE_LIMIT_REQUESTS_PER_MINUTE"), DEFAULT_RATE_LIMIT_PER_MINUTE
        ),
        request_timeout=safe_int(env.get("REQUEST_TIMEOUT"), DEFAULT_REQUEST_TIMEOUT),
        redis_url=(env.get("REDIS_URL") or "").strip() or None,
        job_ttl=safe_int(env.get("JOB_TTL_SECONDS"), DEFAULT_JOB_TTL),
    )


def _redact(data: Any) -> Any:
    if isinstance(data, dict):
        redacted = {}
        for key, value in data.items():
            if any(marker in key.lower() for marker in SENSITIVE_KEYS):
                redacted[key] = "[REDACTED]" if value else value
            else:
                redacted[key] = _redact(value)
        return redacted
    return data


def redacted_settings(settings: Settings) -> Dict[str, Any]:
    """Settings as a dict with credentials masked.

    ``redis_url`` may carry a password, so it is reduced to host information.
    """
    data = _redact(asdict(settings))
    if data.get("redis_url"):
        data["redis_url"] = data["redis_url"].rsplit("@", 1)[-1]
    return data


def log_configuration(name: str, settings: Settings) -> None:
    logger.info("Configuration loaded: %s %s", name, redacted_settings(settings))
