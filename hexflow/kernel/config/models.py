"""Configuration data models for hexflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from hexflow.kernel.exceptions import ValidationError

DEFAULT_STATE_DIR = "~/.hexflow"
DEFAULT_CONTEXT_ID = "default"


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Logging configuration for hexflow.

    Attributes
    ----------
    level : str, default="INFO"
        Log level (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)
    format : str, default="structured"
        Output format (console, json, structured, rich)
    output_file : str | None, default=None
        Optional file path to write JSON logs to
    use_color : bool, default=True
        Use ANSI color codes (auto-disabled for non-TTY)
    include_timestamp : bool, default=True
        Include timestamp in log output
    use_rich : bool, default=False
        Use Rich for console output
    backtrace : bool, default=True
        Extended tracebacks
    diagnose : bool, default=True
        Show variable values in tracebacks (disable in production)

    Examples
    --------
    TOML configuration:

    ```toml
    [tool.hexflow.logging]
    level = "DEBUG"
    format = "rich"
    ```

    Environment variable overrides:

    ```bash
    export HEXFLOW_LOG_LEVEL=DEBUG
    export HEXFLOW_LOG_FORMAT=json
    export HEXFLOW_LOG_FILE=/var/log/hexflow/app.log
    ```
    """

    level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "structured", "rich"] = "structured"
    output_file: str | None = None
    use_color: bool = True
    include_timestamp: bool = True
    use_rich: bool = False
    backtrace: bool = True
    diagnose: bool = True


@dataclass(frozen=True, slots=True)
class StoreConfig:
    """Node store settings.

    Attributes
    ----------
    backend : str, default="file"
        ``file`` for the on-disk store, ``memory`` for tests and dry runs
    base_path : str, default="~/.hexflow"
        State directory of the file store; ``~`` is expanded
    fsync : bool, default=True
        fsync node blobs and event appends
    """

    backend: Literal["file", "memory"] = "file"
    base_path: str = DEFAULT_STATE_DIR
    fsync: bool = True

    def __post_init__(self) -> None:
        if self.backend not in ("file", "memory"):
            raise ValidationError("store.backend", "must be 'file' or 'memory'", self.backend)
        if not self.base_path:
            raise ValidationError("store.base_path", "cannot be empty")

    @property
    def resolved_path(self) -> Path:
        return Path(self.base_path).expanduser()


@dataclass(frozen=True, slots=True)
class GraphConfig:
    """Graph layer settings.

    Attributes
    ----------
    immutable_types : tuple[str, ...]
        Node types that can be created but never overwritten
    """

    immutable_types: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ExecutorConfig:
    """Pipeline executor and action layer settings.

    Attributes
    ----------
    enforce_timeouts : bool, default=True
        Apply stage and action ``timeout_ms``
    """

    enforce_timeouts: bool = True


@dataclass(frozen=True, slots=True)
class HexFlowConfig:
    """Complete hexflow configuration.

    Examples
    --------
    TOML configuration in pyproject.toml:

    ```toml
    [tool.hexflow]
    context_id = "ctx-growth"

    [tool.hexflow.store]
    backend = "file"
    base_path = "./.hexflow"

    [tool.hexflow.graph]
    immutable_types = ["domain:MetricSnapshot"]
    ```

    YAML configuration:

    ```yaml
    kind: Config
    spec:
      context_id: ctx-growth
      store:
        base_path: ${HEXFLOW_HOME}/state
    ```
    """

    context_id: str = DEFAULT_CONTEXT_ID
    store: StoreConfig = field(default_factory=StoreConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        if not self.context_id:
            raise ValidationError("context_id", "cannot be empty")
