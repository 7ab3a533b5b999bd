"""Execution engines implementing the Strategy contract."""

from .base import (
    EngineKind,
    ExecutionContext,
    ExecutionResult,
    HealthReport,
    SearchResultSummary,
    Strategy,
    StrategyConfig,
    default_strategy_config,
)
from .custom_strategy import CustomStrategy
from .factory import create_strategy, list_engines, resolve_kind
from .langchain_strategy import LangChainStrategy
from .simple_strategy import SimpleStrategy

__all__ = [
    "CustomStrategy",
    "EngineKind",
    "ExecutionContext",
    "ExecutionResult",
    "HealthReport",
    "LangChainStrategy",
    "SearchResultSummary",
    "SimpleStrategy",
    "Strategy",
    "StrategyConfig",
    "create_strategy",
    "default_strategy_config",
    "list_engines",
    "resolve_kind",
]
