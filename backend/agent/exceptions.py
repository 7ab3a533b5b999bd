"""Error taxonomy for the routing and resilience layer."""


class OrchestrationError(Exception):
    """Base class for orchestration errors."""


class ConfigurationError(OrchestrationError):
    """An unsupported engine kind or invalid setup was requested."""


class TransientExecutionError(OrchestrationError):
    """A retryable engine failure.

    AgentHandle treats any exception raised by an engine's execute/chat as
    transient; engines may raise this one to make the intent explicit.
    """


class SwapFailure(OrchestrationError):
    """A strategy swap failed and the previous engine was restored."""

    def __init__(self, target_kind: str, cause: BaseException | None = None):
        self.target_kind = target_kind
        self.cause = cause
        detail = str(cause) if cause is not None else "unknown error"
        super().__init__(f"Strategy switch to '{target_kind}' failed: {detail}")


class NoSuitableAgent(OrchestrationError):
    """No active agent is registered to handle the query."""


class PartialMemoryTransferFailure(OrchestrationError):
    """A single memory item could not be converted or replayed during a swap."""


class ToolNotFound(KeyError):
    """Requested tool is not registered with the engine."""
