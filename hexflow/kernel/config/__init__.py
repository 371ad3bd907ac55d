"""Configuration loading and management for hexflow."""

from hexflow.kernel.config.models import (
    ExecutorConfig,
    GraphConfig,
    HexFlowConfig,
    LoggingConfig,
    StoreConfig,
)


def __getattr__(name: str) -> object:
    """Lazy imports for config loader symbols (live in hexflow.compiler.config_loader)."""
    _loader_names = {
        "ConfigLoader",
        "clear_config_cache",
        "get_default_config",
        "load_config",
    }
    if name in _loader_names:
        from hexflow.compiler import config_loader

        return getattr(config_loader, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "ExecutorConfig",
    "GraphConfig",
    "HexFlowConfig",
    "LoggingConfig",
    "StoreConfig",
]
