"""Configuration loader for hexflow.

Parses configuration into kernel config models. Supports two config sources:

1. **kind: Config YAML** - loaded via explicit path or the
   ``HEXFLOW_CONFIG_PATH`` env var.
2. **pyproject.toml [tool.hexflow]** - auto-discovery fallback.

Environment overrides are applied on top of whatever was loaded, including
the defaults used when no file is found.
"""

from __future__ import annotations

import os
import re
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, cast

import yaml

from hexflow.kernel.config.models import (
    DEFAULT_CONTEXT_ID,
    DEFAULT_STATE_DIR,
    ExecutorConfig,
    GraphConfig,
    HexFlowConfig,
    LoggingConfig,
    StoreConfig,
)
from hexflow.kernel.exceptions import ConfigurationError, ValidationError
from hexflow.kernel.logging import get_logger

_TRUTHY_VALUES = frozenset({"true", "1", "yes", "on", "enabled"})
_FALSY_VALUES = frozenset({"false", "0", "no", "off", "disabled"})

logger = get_logger(__name__)


def _parse_bool_env(value: str) -> bool:
    """Parse boolean from environment variable value.

    Raises
    ------
    ValueError
        If value is not a recognized boolean string
    """
    normalized = value.lower().strip()
    if normalized in _TRUTHY_VALUES:
        return True
    if normalized in _FALSY_VALUES:
        return False
    expected = sorted(_TRUTHY_VALUES | _FALSY_VALUES)
    raise ValueError(f"Invalid boolean value: {value!r}. Expected one of: {expected}")


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(name, f"expected a mapping, got {type(value).__name__}")
    return value


@lru_cache(maxsize=32)
def _read_raw_cached(path_str: str) -> dict[str, Any]:
    """Cached read of the raw (unsubstituted) config mapping."""
    return ConfigLoader()._read_raw(Path(path_str))


class ConfigLoader:
    """Loads and processes hexflow configuration files.

    Supports two config sources:

    1. ``kind: Config`` YAML manifests (explicit path or env var)
    2. ``pyproject.toml [tool.hexflow]`` (auto-discovery)
    """

    ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

    def load_config_file(self, path: str | Path | None = None) -> HexFlowConfig:
        """Load configuration from YAML or pyproject.toml.

        Parameters
        ----------
        path : str | Path | None
            Path to config file. If None, searches using discovery order.

        Returns
        -------
        HexFlowConfig
            Parsed configuration with environment variables substituted

        Raises
        ------
        FileNotFoundError
            If no configuration file is found
        ConfigurationError
            If the file is not a valid hexflow configuration
        """
        config_path = self._find_config_file(path)
        raw = _read_raw_cached(str(config_path.absolute()))
        return self._parse_config(self._substitute_env_vars(raw))

    def _read_raw(self, config_path: Path) -> dict[str, Any]:
        logger.info("Loading configuration from {path}", path=config_path)
        if config_path.suffix in (".yaml", ".yml"):
            return self._read_yaml_config(config_path)
        return self._read_toml_config(config_path)

    def _read_yaml_config(self, config_path: Path) -> dict[str, Any]:
        """Read a kind: Config YAML file and return its ``spec`` mapping."""
        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(config_path.name, f"invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                config_path.name, f"expected a mapping, got {type(data).__name__}"
            )

        kind = data.get("kind")
        if kind != "Config":
            raise ConfigurationError(
                config_path.name,
                f"YAML config file must use 'kind: Config' manifest format, got 'kind: {kind}'",
            )

        spec = data.get("spec") or {}
        if not isinstance(spec, dict):
            raise ConfigurationError(config_path.name, "'spec' field must be a mapping")
        return spec

    def _read_toml_config(self, config_path: Path) -> dict[str, Any]:
        """Read the ``[tool.hexflow]`` table (or a flat TOML file)."""
        try:
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(config_path.name, f"invalid TOML: {e}") from e

        if config_path.name == "pyproject.toml":
            hexflow_data = data.get("tool", {}).get("hexflow", {})
            if not hexflow_data:
                logger.warning("No [tool.hexflow] section found in pyproject.toml, using defaults")
            return hexflow_data

        # Direct TOML file: either [tool.hexflow] or flat
        if "tool" in data and "hexflow" in data.get("tool", {}):
            return data["tool"]["hexflow"]
        return data

    def _find_config_file(self, path: str | Path | None) -> Path:
        """Find configuration file.

        Discovery order:
        1. Explicit path argument
        2. ``HEXFLOW_CONFIG_PATH`` env var
        3. ``pyproject.toml`` in CWD
        4. ``pyproject.toml`` in parent directories (with ``[tool.hexflow]``)

        Raises
        ------
        FileNotFoundError
            If no configuration file is found
        """
        if path:
            config_path = Path(path)
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return config_path

        if env_path := os.getenv("HEXFLOW_CONFIG_PATH"):
            config_path = Path(env_path)
            if config_path.exists():
                logger.debug("Using config from HEXFLOW_CONFIG_PATH: {}", config_path)
                return config_path
            logger.warning("HEXFLOW_CONFIG_PATH set but file not found: {}", config_path)

        if Path("pyproject.toml").exists():
            return Path("pyproject.toml")

        current = Path.cwd().parent
        while current != current.parent:
            pyproject = current / "pyproject.toml"
            if pyproject.exists():
                with pyproject.open("rb") as f:
                    data = tomllib.load(f)
                if "hexflow" in data.get("tool", {}):
                    return pyproject
            current = current.parent

        raise FileNotFoundError(
            "No configuration file found. Provide a kind: Config YAML path, "
            "set HEXFLOW_CONFIG_PATH, or add [tool.hexflow] to pyproject.toml"
        )

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute ``${VAR}`` placeholders from the environment.

        Unknown variables keep their placeholder.
        """
        if isinstance(data, str):

            def replacer(match: re.Match[str]) -> str:
                var_name = match.group(1)
                value = os.environ.get(var_name)
                if value is None:
                    logger.debug(
                        "Environment variable ${{{var_name}}} not found, keeping placeholder",
                        var_name=var_name,
                    )
                    return match.group(0)
                return value

            return self.ENV_VAR_PATTERN.sub(replacer, data)

        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}

        if isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]

        return data

    def _parse_config(self, data: dict[str, Any]) -> HexFlowConfig:
        """Parse configuration data into HexFlowConfig.

        Environment variables take precedence over file values:
        - HEXFLOW_CONTEXT_ID: Default context id
        - HEXFLOW_STATE_DIR: File store base path
        - HEXFLOW_STORE_BACKEND: ``file`` or ``memory``
        - HEXFLOW_LOG_*: see :meth:`_parse_logging_config`
        """
        context_id = data.get("context_id", DEFAULT_CONTEXT_ID)
        if env_context := os.getenv("HEXFLOW_CONTEXT_ID"):
            context_id = env_context
            logger.debug("Overriding context_id from env: {}", context_id)

        try:
            return HexFlowConfig(
                context_id=str(context_id),
                store=self._parse_store_config(_section(data, "store")),
                graph=self._parse_graph_config(_section(data, "graph")),
                executor=self._parse_executor_config(_section(data, "executor")),
                logging=self._parse_logging_config(_section(data, "logging")),
            )
        except ValidationError as e:
            raise ConfigurationError(e.field, e.constraint) from e

    def _parse_store_config(self, store_data: dict[str, Any]) -> StoreConfig:
        backend = store_data.get("backend", "file")
        base_path = store_data.get("base_path", DEFAULT_STATE_DIR)
        fsync = store_data.get("fsync", True)

        if env_backend := os.getenv("HEXFLOW_STORE_BACKEND"):
            backend = env_backend.lower()
            logger.debug("Overriding store backend from env: {}", backend)

        if env_state_dir := os.getenv("HEXFLOW_STATE_DIR"):
            base_path = env_state_dir
            logger.debug("Overriding state dir from env: {}", base_path)

        return StoreConfig(
            backend=cast("Literal['file', 'memory']", backend),
            base_path=str(base_path),
            fsync=bool(fsync),
        )

    def _parse_graph_config(self, graph_data: dict[str, Any]) -> GraphConfig:
        immutable_types = graph_data.get("immutable_types") or ()
        if isinstance(immutable_types, str):
            immutable_types = (immutable_types,)
        return GraphConfig(immutable_types=tuple(immutable_types))

    def _parse_executor_config(self, executor_data: dict[str, Any]) -> ExecutorConfig:
        return ExecutorConfig(
            enforce_timeouts=bool(executor_data.get("enforce_timeouts", True)),
        )

    def _parse_logging_config(self, logging_data: dict[str, Any]) -> LoggingConfig:
        """Parse logging configuration with environment variable overrides.

        - HEXFLOW_LOG_LEVEL: Log level
        - HEXFLOW_LOG_FORMAT: Output format (console, json, structured, rich)
        - HEXFLOW_LOG_FILE: Optional file path for log output
        - HEXFLOW_LOG_COLOR: Use color output (true/false)
        - HEXFLOW_LOG_RICH: Use Rich for console output (true/false)
        """
        level = str(logging_data.get("level", "INFO")).upper()
        format_type = str(logging_data.get("format", "structured")).lower()
        output_file = logging_data.get("output_file")
        use_color = logging_data.get("use_color", True)
        include_timestamp = logging_data.get("include_timestamp", True)
        use_rich = logging_data.get("use_rich", False)
        backtrace = logging_data.get("backtrace", True)
        diagnose = logging_data.get("diagnose", True)

        if env_level := os.getenv("HEXFLOW_LOG_LEVEL"):
            level = env_level.upper()
            logger.debug("Overriding log level from env: {}", level)

        if env_format := os.getenv("HEXFLOW_LOG_FORMAT"):
            format_type = env_format.lower()
            logger.debug("Overriding log format from env: {}", format_type)

        if env_file := os.getenv("HEXFLOW_LOG_FILE"):
            output_file = env_file
            logger.debug("Overriding log file from env: {}", output_file)

        if env_color := os.getenv("HEXFLOW_LOG_COLOR"):
            try:
                use_color = _parse_bool_env(env_color)
            except ValueError as e:
                logger.warning("Invalid HEXFLOW_LOG_COLOR value: {}", e)

        if env_rich := os.getenv("HEXFLOW_LOG_RICH"):
            try:
                use_rich = _parse_bool_env(env_rich)
            except ValueError as e:
                logger.warning("Invalid HEXFLOW_LOG_RICH value: {}", e)

        return LoggingConfig(
            level=cast("Literal['TRACE', 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']", level),
            format=cast("Literal['console', 'json', 'structured', 'rich']", format_type),
            output_file=output_file,
            use_color=use_color,
            include_timestamp=include_timestamp,
            use_rich=use_rich,
            backtrace=backtrace,
            diagnose=diagnose,
        )


def load_config(path: str | Path | None = None) -> HexFlowConfig:
    """Load configuration from file or return defaults.

    Parameters
    ----------
    path : str | Path | None
        Path to configuration file or None to search

    Returns
    -------
    HexFlowConfig
        Loaded configuration, or defaults (with env overrides) if no file found
    """
    loader = ConfigLoader()
    try:
        return loader.load_config_file(path)
    except FileNotFoundError:
        if path:
            raise
        logger.info("No configuration file found, using defaults")
        return get_default_config()


def clear_config_cache() -> None:
    """Clear the configuration file cache.

    Useful for testing or when configuration files have been modified.
    """
    _read_raw_cached.cache_clear()


def get_default_config() -> HexFlowConfig:
    """Default configuration with environment overrides applied."""
    return ConfigLoader()._parse_config({})
