"""Userspace loaders: configuration files and pipeline manifests."""

from hexflow.compiler.config_loader import (
    ConfigLoader,
    clear_config_cache,
    get_default_config,
    load_config,
)
from hexflow.compiler.pipeline_loader import (
    load_pipeline_definitions,
    load_pipeline_manifests,
    parse_pipeline_manifest,
)

__all__ = [
    "ConfigLoader",
    "clear_config_cache",
    "get_default_config",
    "load_config",
    "load_pipeline_definitions",
    "load_pipeline_manifests",
    "parse_pipeline_manifest",
]
