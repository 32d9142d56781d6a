"""Structured logging setup for tweetrater."""

import structlog
from pathlib import Path
from typing import Any, ContextManager, Optional
import os


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
DEFAULT_LOG_DIR = Path.home() / ".cache" / "tweetrater" / "logs"


def resolve_log_level(level: Optional[str] = None) -> str:
    """Pick the log level: explicit argument, then TWEETRATER_LOG_LEVEL, then INFO."""
    candidate = (level or os.environ.get("TWEETRATER_LOG_LEVEL") or "INFO").upper()
    return candidate if candidate in LOG_LEVELS else "INFO"


def configure_logging(level: Optional[str] = None, log_dir: Optional[Path] = None) -> Path:
    """
    Configure structlog for JSON logging to ~/.cache/tweetrater/logs/tweetrater.log.

    Log levels:
    - DEBUG: Request payloads, raw SSE lines, partial ratings
    - INFO: Item scheduling, attempt start/finish, cache writes
    - WARNING: Retry attempts, malformed stream lines, stream timeouts
    - ERROR: Terminal rating failures, persistence failures

    Example:
        # Enable debug logging
        export TWEETRATER_LOG_LEVEL=DEBUG
        tweetrater rate items.jsonl

        # Or per invocation:
        tweetrater --log-level debug rate items.jsonl

        # View logs with jq for readability:
        tail -f ~/.cache/tweetrater/logs/tweetrater.log | jq .

    Args:
        level: Overrides TWEETRATER_LOG_LEVEL when given
        log_dir: Directory for the log file (created if missing)

    Returns:
        Path of the log file
    """
    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tweetrater.log"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolve_log_level(level)),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=open(log_file, "a")),
        cache_logger_on_first_use=True,
    )
    return log_file


def log_context(**values: Any) -> ContextManager:
    """
    Bind values to every log line emitted inside the block.

    Bindings live in context variables, so each asyncio task sees only
    its own.

    Example:
        >>> with log_context(item_id="123"):
        ...     logger.info("stream_timed_out")  # carries item_id="123"
    """
    return structlog.contextvars.bound_contextvars(**values)


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Structured logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("rating_attempt_started", item_id="123", attempt=1)
    """
    return structlog.get_logger(name)
