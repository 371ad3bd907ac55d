"""Runtime factory - wires store, graph, executor and action layer together.

One :class:`Runtime` serves one context. Nothing here is process-global, so
several runtimes (one per test, one per tenant) can coexist.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from hexflow.compiler.config_loader import load_config
from hexflow.compiler.pipeline_loader import load_pipeline_definitions
from hexflow.drivers.node_store import FileNodeStore, InMemoryNodeStore
from hexflow.kernel.config.models import HexFlowConfig
from hexflow.kernel.exceptions import ConfigurationError
from hexflow.kernel.graph import SemanticGraph
from hexflow.kernel.logging import configure_logging, get_logger
from hexflow.kernel.orchestration.action_layer import ActionExecutionLayer
from hexflow.kernel.orchestration.events.emitter import EventEmitter, EventPublisher
from hexflow.kernel.orchestration.pipeline_executor import PipelineExecutor
from hexflow.kernel.ports.node_store import NodeStore

logger = get_logger(__name__)


@dataclass(slots=True)
class Runtime:
    """Every component of one context, sharing one store and one emitter."""

    config: HexFlowConfig
    store: NodeStore
    emitter: EventEmitter
    publisher: EventPublisher
    graph: SemanticGraph
    executor: PipelineExecutor
    actions: ActionExecutionLayer

    @property
    def context_id(self) -> str:
        return self.emitter.context_id

    def load_pipelines(self, path: str | Path) -> list[str]:
        """Register every pipeline manifest found at ``path``.

        Returns
        -------
        list[str]
            Registered pipeline ids
        """
        definitions = load_pipeline_definitions(path)
        for definition in definitions:
            self.executor.register_pipeline(definition)
        return [d.pipeline_id for d in definitions]


def create_store(config: HexFlowConfig) -> NodeStore:
    """Instantiate the node store selected by ``config.store.backend``."""
    store_config = config.store
    if store_config.backend == "memory":
        return InMemoryNodeStore()
    if store_config.backend == "file":
        return FileNodeStore(store_config.resolved_path, fsync=store_config.fsync)
    raise ConfigurationError("store", f"unknown backend '{store_config.backend}'")


def create_runtime(
    config: HexFlowConfig | None = None,
    *,
    store: NodeStore | None = None,
    configure_logs: bool = True,
) -> Runtime:
    """Build a runtime for one context.

    Parameters
    ----------
    config : HexFlowConfig | None
        Configuration; loaded via :func:`load_config` when None
    store : NodeStore | None
        Pre-built store overriding ``config.store``
    configure_logs : bool, default=True
        Apply ``config.logging`` to the global loguru logger

    Examples
    --------
    Example usage::

        runtime = create_runtime()
        runtime.executor.register_stage_handler("draft", draft)
        result = await runtime.executor.run("content-factory", {"topic": "launch"})
    """
    config = config or load_config()

    if configure_logs:
        log_config = config.logging
        configure_logging(
            level=log_config.level,
            format=log_config.format,
            output_file=log_config.output_file,
            use_color=log_config.use_color,
            include_timestamp=log_config.include_timestamp,
            use_rich=log_config.use_rich,
            backtrace=log_config.backtrace,
            diagnose=log_config.diagnose,
        )

    if store is None:
        store = create_store(config)
    emitter = EventEmitter(config.context_id)
    publisher = EventPublisher(store, emitter)
    enforce_timeouts = config.executor.enforce_timeouts

    runtime = Runtime(
        config=config,
        store=store,
        emitter=emitter,
        publisher=publisher,
        graph=SemanticGraph(store, publisher, immutable_types=config.graph.immutable_types),
        executor=PipelineExecutor(publisher, enforce_timeouts=enforce_timeouts),
        actions=ActionExecutionLayer(publisher, enforce_timeouts=enforce_timeouts),
    )
    logger.debug(
        "Created runtime for context '{context}' ({backend} store)",
        context=config.context_id,
        backend=type(store).__name__,
    )
    return runtime
