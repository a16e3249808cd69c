"""Environment-variable-based configuration."""

import os
from pathlib import Path


def get_db_path() -> Path:
    """Return the database file path from HD_DB_PATH."""
    raw = os.environ.get("HD_DB_PATH", "~/.local/share/helpdesk_rag/helpdesk.db")
    return Path(raw).expanduser()


def get_ollama_url() -> str:
    """Return the Ollama API URL from HD_OLLAMA_URL."""
    return os.environ.get("HD_OLLAMA_URL", "http://localhost:11434")


def get_embedding_model() -> str:
    """Return the embedding model name from HD_EMBEDDING_MODEL."""
    return os.environ.get("HD_EMBEDDING_MODEL", "qwen3-embedding:0.6b")


def get_completion_provider() -> str:
    """Return the completion provider name from HD_COMPLETION_PROVIDER."""
    return os.environ.get("HD_COMPLETION_PROVIDER", "ollama").lower()


def get_completion_model() -> str:
    """Return the Ollama completion model from HD_COMPLETION_MODEL."""
    return os.environ.get("HD_COMPLETION_MODEL", "qwen3:4b")


def get_anthropic_model() -> str:
    """Return the Anthropic model ID from HD_ANTHROPIC_MODEL."""
    return os.environ.get("HD_ANTHROPIC_MODEL", "claude-haiku-4-5")


def get_provider_timeout() -> float:
    """Return the per-call provider timeout in seconds from HD_PROVIDER_TIMEOUT."""
    return float(os.environ.get("HD_PROVIDER_TIMEOUT", "30.0"))


def get_retry_attempts() -> int:
    """Return the provider retry budget from HD_RETRY_ATTEMPTS."""
    return int(os.environ.get("HD_RETRY_ATTEMPTS", "2"))


def get_retry_base_delay() -> float:
    """Return the first backoff delay in seconds from HD_RETRY_BASE_DELAY."""
    return float(os.environ.get("HD_RETRY_BASE_DELAY", "0.5"))


def get_cache_threshold() -> float:
    """Return the semantic cache similarity threshold from HD_CACHE_THRESHOLD."""
    return float(os.environ.get("HD_CACHE_THRESHOLD", "0.92"))


def get_cache_capacity() -> int:
    """Return the maximum number of cached answers from HD_CACHE_CAPACITY."""
    return int(os.environ.get("HD_CACHE_CAPACITY", "200"))


def get_cache_max_age_hours() -> float:
    """Return the cached answer lifetime in hours from HD_CACHE_MAX_AGE_HOURS."""
    return float(os.environ.get("HD_CACHE_MAX_AGE_HOURS", "24"))


def get_boost_factor() -> float:
    """Return the per-validation score boost from HD_BOOST_FACTOR."""
    return float(os.environ.get("HD_BOOST_FACTOR", "0.05"))


def get_context_budget_chars() -> int:
    """Return the overall prompt context budget in characters from HD_CONTEXT_BUDGET_CHARS."""
    return int(os.environ.get("HD_CONTEXT_BUDGET_CHARS", "96000"))


def get_keyword_threshold() -> int:
    """Return the occurrences needed to auto-apply a keyword from HD_KEYWORD_THRESHOLD."""
    return int(os.environ.get("HD_KEYWORD_THRESHOLD", "3"))


def get_failure_threshold() -> int:
    """Return the failures needed to alert on a pattern from HD_FAILURE_THRESHOLD."""
    return int(os.environ.get("HD_FAILURE_THRESHOLD", "5"))


def get_confidence_floor() -> float:
    """Return the score above which an answer counts as high-confidence from HD_CONFIDENCE_FLOOR."""
    return float(os.environ.get("HD_CONFIDENCE_FLOOR", "0.65"))


def get_ticket_prefixes() -> list[str]:
    """Return the ticket project prefixes from HD_TICKET_PREFIXES (comma-separated)."""
    raw = os.environ.get("HD_TICKET_PREFIXES", "MT,MTT,IT,HELP,SD,INC,REQ,SR")
    return [p.strip().upper() for p in raw.split(",") if p.strip()]


def get_log_level() -> str:
    """Return the logging level from HD_LOG_LEVEL."""
    return os.environ.get("HD_LOG_LEVEL", "WARNING")


def get_erp_mappings_path() -> Path | None:
    """Return the ERP position/role/transaction table path from HD_ERP_MAPPINGS, if set."""
    raw = os.environ.get("HD_ERP_MAPPINGS")
    return Path(raw).expanduser() if raw else None


def get_flush_interval() -> float:
    """Return the seconds between state flushes to SQLite from HD_FLUSH_INTERVAL_SECONDS."""
    return float(os.environ.get("HD_FLUSH_INTERVAL_SECONDS", "300"))
