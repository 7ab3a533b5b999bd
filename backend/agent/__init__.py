"""Agent module: Strategies, AgentHandle, Orchestrator, Ledger, Memory transfer."""

from .exceptions import (
    ConfigurationError,
    NoSuitableAgent,
    OrchestrationError,
    PartialMemoryTransferFailure,
    SwapFailure,
    ToolNotFound,
    TransientExecutionError,
)
from .handle import AgentHandle, HandleConfig
from .orchestrator import CapabilityDescriptor, Orchestrator, OrchestratorConfig
from .presets import create_default_orchestrator
from .profiler import KeywordQueryProfiler, QueryProfile, QueryProfiler

__all__ = [
    "AgentHandle",
    "HandleConfig",
    "Orchestrator",
    "OrchestratorConfig",
    "CapabilityDescriptor",
    "create_default_orchestrator",
    "QueryProfiler",
    "KeywordQueryProfiler",
    "QueryProfile",
    "OrchestrationError",
    "ConfigurationError",
    "TransientExecutionError",
    "SwapFailure",
    "NoSuitableAgent",
    "PartialMemoryTransferFailure",
    "ToolNotFound",
]
