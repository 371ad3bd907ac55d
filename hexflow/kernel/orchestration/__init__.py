"""Orchestration: pipeline runs, single actions and their event trail."""

from hexflow.kernel.orchestration.action_layer import ActionExecutionLayer
from hexflow.kernel.orchestration.pipeline_executor import PipelineExecutor

__all__ = ["ActionExecutionLayer", "PipelineExecutor"]
