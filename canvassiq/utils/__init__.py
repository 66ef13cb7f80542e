"""
canvassiq Utilities Package - Cross-Cutting Helpers

Helpers reused by the CLI and the query pipeline without importing heavier
dependencies at package load time.
"""

from .logging import (
    setup_logging,
    get_logger,
    get_current_log_file,
    get_session_id,
    log_prompt,
    log_llm_response,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "get_current_log_file",
    "get_session_id",
    "log_prompt",
    "log_llm_response",
]
