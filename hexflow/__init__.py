"""hexflow - auditable entity graph and pipeline runtime.

Nodes live in a persistent store; every mutation, pipeline stage transition
and action execution is appended to an event log before subscribers see it.
"""

from typing import Any

# Version is defined in pyproject.toml and read dynamically
try:
    from importlib.metadata import version

    __version__ = version("hexflow")
except Exception:
    __version__ = "0.0.0.dev0"  # Fallback for source checkouts

from hexflow.compiler import load_config, load_pipeline_definitions
from hexflow.drivers.node_store import FileNodeStore, InMemoryNodeStore
from hexflow.kernel.config import HexFlowConfig
from hexflow.kernel.domain import (
    Action,
    ActionResult,
    GraphQuery,
    Node,
    PipelineDefinition,
    PipelineResult,
    PipelineStage,
    RunStatus,
    StageContext,
    StageResult,
    StageStatus,
)
from hexflow.kernel.exceptions import (
    ConfigurationError,
    DefinitionError,
    HexFlowError,
    ImmutableNodeError,
    PipelineNotFoundError,
    StorageError,
    ValidationError,
)
from hexflow.kernel.graph import SemanticGraph
from hexflow.kernel.logging import configure_logging, get_logger
from hexflow.kernel.orchestration import ActionExecutionLayer, PipelineExecutor
from hexflow.kernel.orchestration.events import (
    Event,
    EventEmitter,
    EventFamily,
    EventPublisher,
    GraphUpdateEvent,
    PipelineStageEvent,
    RuntimeExecutionEvent,
)
from hexflow.runtime import Runtime, create_runtime


def __getattr__(name: str) -> Any:
    """Lazy import for the CLI app, which pulls in typer."""
    if name == "cli_app":
        from hexflow.cli.main import app

        return app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    # Runtime
    "Runtime",
    "create_runtime",
    "load_config",
    "load_pipeline_definitions",
    "HexFlowConfig",
    # Components
    "ActionExecutionLayer",
    "EventEmitter",
    "EventPublisher",
    "FileNodeStore",
    "InMemoryNodeStore",
    "PipelineExecutor",
    "SemanticGraph",
    # Domain
    "Action",
    "ActionResult",
    "GraphQuery",
    "Node",
    "PipelineDefinition",
    "PipelineResult",
    "PipelineStage",
    "RunStatus",
    "StageContext",
    "StageResult",
    "StageStatus",
    # Events
    "Event",
    "EventFamily",
    "GraphUpdateEvent",
    "PipelineStageEvent",
    "RuntimeExecutionEvent",
    # Errors
    "ConfigurationError",
    "DefinitionError",
    "HexFlowError",
    "ImmutableNodeError",
    "PipelineNotFoundError",
    "StorageError",
    "ValidationError",
    # Logging
    "configure_logging",
    "get_logger",
]
