"""Domain models: nodes, pipelines, actions."""

from hexflow.kernel.domain.action import Action, ActionHandler, ActionResult, ExecutionKind
from hexflow.kernel.domain.node import GraphQuery, Node, NodeKey
from hexflow.kernel.domain.pipeline import (
    PipelineDefinition,
    PipelineResult,
    PipelineStage,
    RunStatus,
    StageContext,
    StageHandler,
    StageResult,
    StageStatus,
)

__all__ = [
    "Action",
    "ActionHandler",
    "ActionResult",
    "ExecutionKind",
    "GraphQuery",
    "Node",
    "NodeKey",
    "PipelineDefinition",
    "PipelineResult",
    "PipelineStage",
    "RunStatus",
    "StageContext",
    "StageHandler",
    "StageResult",
    "StageStatus",
]
