"""TOML configuration for quiz-bank commands.

The config file is optional: missing files resolve to the defaults below.
Unknown keys are rejected so typos surface instead of being silently ignored.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

try:  # Python >= 3.11 ships ``tomllib`` in the stdlib.
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - defensive guard
    raise RuntimeError("Python 3.11+ is required for tomllib support.") from exc

from . import workspace

__all__ = [
    "CONFIG_PATH_ENV",
    "ConfigError",
    "StoreConfig",
    "SessionConfig",
    "LoggingConfig",
    "QuizBankConfig",
    "load_config",
    "resolve_config_path",
    "config_template",
    "write_template",
]

CONFIG_PATH_ENV = "QUIZBANK_CONFIG"
CONFIG_FILENAME = "quizbank.toml"
STORE_BACKENDS = ("supabase", "local")


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class StoreConfig:
    backend: str
    table: str
    timeout_seconds: int
    url_env: str
    key_env: str
    local_file: str


@dataclass(frozen=True)
class SessionConfig:
    exam_size: int
    show_explanations: bool
    all_label: str


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizBankConfig:
    data_home_override: Optional[Path]
    store: StoreConfig
    session: SessionConfig
    logging: LoggingConfig

    def workspace(self, *, create: bool = True) -> workspace.WorkspaceLayout:
        return workspace.ensure_workspace(
            path=self.data_home_override, create=create
        )


def _merge_dict(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        if isinstance(base[key], MutableMapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    f"Expected table for '{dotted}', found "
                    f"{type(value).__name__}."
                )
            _merge_dict(base[key], value, path=f"{dotted}.")
        else:
            base[key] = value


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _build_store(section: Mapping[str, Any]) -> StoreConfig:
    backend = _require_string(
        section.get("backend"), field="store.backend"
    ).lower()
    if backend not in STORE_BACKENDS:
        raise ConfigError(
            "store.backend must be one of: " + ", ".join(STORE_BACKENDS)
        )
    return StoreConfig(
        backend=backend,
        table=_require_string(section.get("table"), field="store.table"),
        timeout_seconds=_require_positive_int(
            section.get("timeout_seconds"), field="store.timeout_seconds"
        ),
        url_env=_require_string(section.get("url_env"), field="store.url_env"),
        key_env=_require_string(section.get("key_env"), field="store.key_env"),
        local_file=_require_string(
            section.get("local_file"), field="store.local_file"
        ),
    )


def _build_session(section: Mapping[str, Any]) -> SessionConfig:
    return SessionConfig(
        exam_size=_require_positive_int(
            section.get("exam_size"), field="session.exam_size"
        ),
        show_explanations=_require_bool(
            section.get("show_explanations"),
            field="session.show_explanations",
        ),
        all_label=_require_string(
            section.get("all_label"), field="session.all_label"
        ),
    )


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(section.get("level"), field="logging.level").upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigError(
            "logging.level must be one of "
            "DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(tree: Mapping[str, Any]) -> QuizBankConfig:
    raw_home = tree["paths"].get("data_home")
    if raw_home is not None and (
        not isinstance(raw_home, str) or not raw_home.strip()
    ):
        raise ConfigError("'paths.data_home' must be a non-empty string.")
    return QuizBankConfig(
        data_home_override=(
            Path(raw_home).expanduser().absolute() if raw_home else None
        ),
        store=_build_store(tree["store"]),
        session=_build_session(tree["session"]),
        logging=_build_logging(tree["logging"]),
    )


def resolve_config_path(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> Path:
    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return explicit_path.expanduser().absolute()
    override = (env_map.get(CONFIG_PATH_ENV) or "").strip()
    if override:
        return Path(override).expanduser().absolute()
    layout = workspace.ensure_workspace(env=env_map, create=False)
    return layout.path_for("config") / CONFIG_FILENAME


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> QuizBankConfig:
    """Load the TOML config, applying defaults and validation.

    An explicitly requested file must exist; the implicit location may be
    absent, in which case the defaults apply.
    """

    path = resolve_config_path(explicit_path=explicit_path, env=env)
    tree = default_tree()
    if path.exists() or explicit_path is not None:
        try:
            with path.open("rb") as fh:
                data = tomllib.load(fh)
        except FileNotFoundError as exc:
            raise ConfigError(f"Config file not found: {path}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Failed to parse config TOML: {exc}") from exc
        _merge_dict(tree, data)
    return _build_config(tree)


def default_tree() -> Dict[str, Any]:
    return copy.deepcopy(_DEFAULTS)


def config_template() -> str:
    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(
    path: Path, *, overwrite: bool = False, mode: int = 0o600
) -> Path:
    """Write the default template to ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    path.write_text(config_template(), encoding="utf-8")
    try:
        path.chmod(mode)
    except PermissionError:
        pass
    return path


_DEFAULTS: Dict[str, Any] = {
    "paths": {
        "data_home": None,
    },
    "store": {
        "backend": "supabase",
        "table": "questions",
        "timeout_seconds": 10,
        "url_env": "SUPABASE_URL",
        "key_env": "SUPABASE_ANON_KEY",
        "local_file": "questions.jsonl",
    },
    "session": {
        "exam_size": 25,
        "show_explanations": True,
        "all_label": "all",
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# quiz-bank configuration

[paths]
# Override the workspace directory (~/.quizbank-data)
# data_home = "~/my-quiz-data"

[store]
# "supabase" talks to the hosted questions table, "local" keeps a JSONL file
backend = "supabase"
table = "questions"
timeout_seconds = 10
# Environment variables (or .env entries) holding the project credentials
url_env = "SUPABASE_URL"
key_env = "SUPABASE_ANON_KEY"
# File name under <workspace>/bank used by the local backend
local_file = "questions.jsonl"

[session]
# Maximum number of questions drawn for an exam
exam_size = 25
show_explanations = true
# Category label recorded for exams started without a category
all_label = "all"

[logging]
level = "INFO"
verbose = false
"""
