"""
canvassiq Logging Utilities - Session-Scoped Debug & Audit Logging

Overview:
---------
Centralised logging configuration for the query pipeline.  Provides
session-based file logging with unique identifiers, configurable verbosity,
and structured output for debugging query interpretation, filter fallbacks
and answer-guard substitutions.

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
attached once by the CLI through :func:`setup_logging`.

Log Location:
-------------
- Default: ~/.canvassiq/logs/
- Each CLI run creates a timestamped log file with session ID
- A symlink 'canvassiq.log' always points to the latest session
- Can be overridden via CANVASSIQ_LOG_DIR environment variable

Log Levels:
-----------
- DEBUG: Extracted parameters, per-filter counts, prompts and raw answers
- INFO: Pipeline flow, relaxed-match recoveries, guard substitutions
- WARNING: Unknown metrics, generation failures and timeouts
- ERROR: Unexpected failures inside the deterministic fallback

Usage:
------
    from canvassiq.utils.logging import get_logger, setup_logging

    log_file = setup_logging(level="DEBUG")
    logger = get_logger(__name__)
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

# ============================================================================
# Constants
# ============================================================================

DEFAULT_LOG_DIR = Path.home() / ".canvassiq" / "logs"
DEFAULT_LOG_LEVEL = "INFO"
SYMLINK_NAME = "canvassiq.log"
ROOT_LOGGER_NAME = "canvassiq"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(session_id)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Detailed format for file logging (includes line numbers)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(session_id)s | %(name)s:%(lineno)d | %(message)s"

_log_file_path: Optional[Path] = None
_session_id: Optional[str] = None


# ============================================================================
# Filters & Formatters
# ============================================================================

class SessionIdFilter(logging.Filter):
    """Add session_id to all log records."""

    def __init__(self, session_id: str):
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self.session_id  # type: ignore[attr-defined]
        return True


class SessionFormatter(logging.Formatter):
    """Formatter that adds session_id, defaulting to 'N/A' if not present."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "session_id"):
            record.session_id = _session_id or "N/A"  # type: ignore[attr-defined]
        return super().format(record)


# ============================================================================
# Setup Functions
# ============================================================================

def generate_session_id() -> str:
    """Generate a short unique session ID (6 characters)."""
    return uuid.uuid4().hex[:6]


def get_log_directory() -> Path:
    """Get the log directory, respecting CANVASSIQ_LOG_DIR."""
    env_log_dir = os.getenv("CANVASSIQ_LOG_DIR")
    if env_log_dir:
        return Path(env_log_dir)
    return DEFAULT_LOG_DIR


def generate_log_filename(session_id: str) -> str:
    """Generate a timestamped log filename with session ID."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"canvassiq_{timestamp}_{session_id}.log"


def setup_logging(
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    console_output: bool = False,
    quiet: bool = False,
) -> Path:
    """
    Initialise canvassiq logging with a per-session file and optional console output.

    Parameters
    ----------
    level : str, optional
        Log level: DEBUG, INFO, WARNING, ERROR. Defaults to INFO.
        Can also be set via CANVASSIQ_LOG_LEVEL environment variable.
    log_dir : Path, optional
        Directory for log files. Defaults to ~/.canvassiq/logs/
    console_output : bool
        If True, also log to stderr.
    quiet : bool
        If True, suppress console output entirely.

    Returns
    -------
    Path
        Path to the log file being written to.
    """
    global _log_file_path, _session_id

    _session_id = generate_session_id()

    if level is None:
        level = os.getenv("CANVASSIQ_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_dir is None:
        log_dir = get_log_directory()
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / generate_log_filename(_session_id)
    _log_file_path = log_file

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.handlers.clear()
    for f in root.filters[:]:
        root.removeFilter(f)
    root.setLevel(log_level)
    root.addFilter(SessionIdFilter(_session_id))

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(SessionFormatter(FILE_LOG_FORMAT, LOG_DATE_FORMAT))
    root.addHandler(file_handler)

    if console_output and not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(SessionFormatter(LOG_FORMAT, LOG_DATE_FORMAT))
        root.addHandler(console_handler)

    root.propagate = False

    symlink_path = log_dir / SYMLINK_NAME
    try:
        if symlink_path.is_symlink() or symlink_path.exists():
            symlink_path.unlink()
        symlink_path.symlink_to(log_file.name)
    except OSError:
        # Symlinks may be unavailable (e.g. Windows without admin)
        pass

    root.info("=" * 80)
    root.info("canvassiq logging session started")
    root.info(f"  Session ID: {_session_id}")
    root.info(f"  Log file: {log_file}")
    root.info(f"  Log level: {level.upper()}")
    root.info("=" * 80)

    return log_file


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the ``canvassiq`` namespace."""
    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def get_current_log_file() -> Optional[Path]:
    """Return the path to the current log file, if logging is initialised."""
    return _log_file_path


def get_session_id() -> Optional[str]:
    """Return the current session ID, if logging is initialised."""
    return _session_id


# ============================================================================
# Structured helpers
# ============================================================================

def log_prompt(
    logger: logging.Logger,
    prompt_type: str,
    prompt_content: str,
    truncate_at: int = 2000,
) -> None:
    """Log a prompt being sent to the LLM, truncated to ``truncate_at`` chars."""
    if len(prompt_content) > truncate_at:
        display_content = prompt_content[:truncate_at] + f"... [TRUNCATED, {len(prompt_content)} chars total]"
    else:
        display_content = prompt_content
    logger.debug(f"PROMPT ({prompt_type}):\n{display_content}")


def log_llm_response(
    logger: logging.Logger,
    response_type: str,
    response_content: str,
    truncate_at: int = 2000,
) -> None:
    """Log an LLM response, truncated to ``truncate_at`` chars."""
    if len(response_content) > truncate_at:
        display_content = response_content[:truncate_at] + f"... [TRUNCATED, {len(response_content)} chars total]"
    else:
        display_content = response_content
    logger.debug(f"LLM RESPONSE ({response_type}):\n{display_content}")
