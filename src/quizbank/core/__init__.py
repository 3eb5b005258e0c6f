"""Core shared helpers for quizbank commands."""

from __future__ import annotations

from .config import (
    ConfigError,
    QuizBankConfig,
    load_config,
    write_template,
)
from .files import read_jsonl, read_text_file, write_jsonl
from .logging import JsonLogFormatter, configure_logger
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)

__all__ = [
    "ConfigError",
    "QuizBankConfig",
    "load_config",
    "write_template",
    "read_jsonl",
    "read_text_file",
    "write_jsonl",
    "configure_logger",
    "JsonLogFormatter",
    "ensure_workspace",
    "WorkspaceLayout",
    "WorkspaceError",
    "WORKSPACE_ENV",
]
