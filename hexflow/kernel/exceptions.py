"""Core exception hierarchy for hexflow.

Only identifier-resolution failures (:class:`DefinitionError`) and storage
failures (:class:`StorageError`) escape the executor and action layer as
exceptions. Handler failures are converted into result values; the
``Handler*`` classes below exist so that conversion has a typed source.
"""

from __future__ import annotations

# ============================================================================
# Base Exception
# ============================================================================


class HexFlowError(Exception):
    """Base exception for all hexflow errors.

    Catch this to handle all hexflow-specific errors.
    """

    pass


# ============================================================================
# Configuration & Validation Errors
# ============================================================================


class ConfigurationError(HexFlowError):
    """Raised when configuration is invalid or missing.

    Examples
    --------
    Example usage::

        raise ConfigurationError("store", "unknown backend 'redis'")
    """

    def __init__(self, component: str, reason: str) -> None:
        """Initialize configuration error.

        Args
        ----
            component: Name of the component with invalid configuration
            reason: Explanation of what's wrong
        """
        super().__init__(f"Configuration error in '{component}': {reason}")
        self.component = component
        self.reason = reason


class ValidationError(HexFlowError):
    """Raised when a definition or record fails validation.

    Examples
    --------
    Example usage::

        raise ValidationError("stages", "duplicate stage_id", value="draft")
    """

    def __init__(self, field: str, constraint: str, value: object = None) -> None:
        """Initialize validation error.

        Args
        ----
            field: Name of the field that failed validation
            constraint: Description of the validation constraint
            value: The invalid value (optional)
        """
        if value is not None:
            msg = f"Validation failed for '{field}': {constraint} (got {value!r})"
        else:
            msg = f"Validation failed for '{field}': {constraint}"
        super().__init__(msg)
        self.field = field
        self.constraint = constraint
        self.value = value


# ============================================================================
# Definition Errors (raised at the call boundary)
# ============================================================================


class DefinitionError(HexFlowError):
    """Raised when an identifier is unknown at call time.

    The call is rejected before any event is produced.
    """

    pass


class PipelineNotFoundError(DefinitionError):
    """Raised by ``PipelineExecutor.run`` for an unregistered pipeline.

    Examples
    --------
    Example usage::

        raise PipelineNotFoundError("weekly-brief", ["content-factory"])
    """

    def __init__(self, pipeline_id: str, available: list[str] | None = None) -> None:
        msg = f"Pipeline not found: '{pipeline_id}'"
        if available:
            msg += f". Available: {', '.join(available[:5])}"
            if len(available) > 5:
                msg += f" ... and {len(available) - 5} more"
        super().__init__(msg)
        self.pipeline_id = pipeline_id
        self.available = available


# ============================================================================
# Handler Errors (converted into failed results)
# ============================================================================


class HandlerMissingError(HexFlowError):
    """No handler is registered for a stage or action.

    Never escapes ``run``/``execute``; it becomes a failed result.
    """

    def __init__(self, kind: str, identifier: str) -> None:
        """Initialize handler missing error.

        Args
        ----
            kind: "stage" or "action"
            identifier: The stage_id or action_type without a handler
        """
        if kind == "stage":
            msg = f"No handler for stage: {identifier}"
        else:
            msg = f"No handler registered for action type: {identifier}"
        super().__init__(msg)
        self.kind = kind
        self.identifier = identifier


class HandlerExecutionError(HexFlowError):
    """A handler raised or its awaitable was rejected.

    ``message`` is the stringified original error; it is what ends up in the
    result's ``error`` field.
    """

    def __init__(self, identifier: str, original_error: BaseException) -> None:
        self.identifier = identifier
        self.original_error = original_error
        self.message = describe_error(original_error)
        super().__init__(self.message)


class StageTimeoutError(HandlerExecutionError):
    """A stage or action handler exceeded its ``timeout_ms``."""

    def __init__(
        self,
        identifier: str,
        timeout_ms: int,
        original_error: TimeoutError,
        kind: str = "stage",
    ) -> None:
        super().__init__(identifier, original_error)
        self.timeout_ms = timeout_ms
        self.kind = kind
        self.message = f"{kind.title()} '{identifier}' timed out after {timeout_ms} ms"
        self.args = (self.message,)


# ============================================================================
# Store Errors
# ============================================================================


class StorageError(HexFlowError):
    """Raised when the node store cannot read or write durable state.

    Propagates unmodified to callers; the store never retries.

    Examples
    --------
    Example usage::

        raise StorageError("put", "domain:ContentAsset/42", "disk full")
    """

    def __init__(self, operation: str, target: str, reason: str) -> None:
        """Initialize storage error.

        Args
        ----
            operation: Store operation that failed (put, get, append_event, ...)
            target: Key or path the operation touched
            reason: Underlying cause
        """
        super().__init__(f"Storage {operation} failed for '{target}': {reason}")
        self.operation = operation
        self.target = target
        self.reason = reason


class ImmutableNodeError(HexFlowError):
    """Raised when a put would overwrite a node of an immutable type."""

    def __init__(self, node_type: str, node_id: str) -> None:
        super().__init__(
            f"{node_type} is immutable: cannot update existing node '{node_id}'"
        )
        self.node_type = node_type
        self.node_id = node_id


def describe_error(error: BaseException) -> str:
    """Stringify an error for a result's ``error`` field.

    Falls back to the exception class name when the message is empty.
    """
    if isinstance(error, HandlerExecutionError):
        return error.message
    return str(error) or type(error).__name__
