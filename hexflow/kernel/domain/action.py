"""Single-action requests and results for the action execution layer."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ExecutionKind = Literal["agent", "tool", "llm", "worker", "external"]

ActionHandler = Callable[[dict[str, Any]], Awaitable[Any] | Any]


class Action(BaseModel):
    """What to execute: a handler is resolved by ``action_type``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    action_type: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    timeout_ms: int | None = Field(default=None, gt=0)
    execution_kind: ExecutionKind = "tool"
    executor_role: str | None = None


@dataclass(slots=True)
class ActionResult:
    """What happened. Failures are values, never exceptions."""

    success: bool
    duration_ms: float
    execution_id: str
    data: Any = None
    error: str | None = None
