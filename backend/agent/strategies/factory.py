"""Engine factory keyed by EngineKind."""

from typing import Dict, Type

from agent.exceptions import ConfigurationError
from agent.tools import ToolRegistry
from core.llm import BaseLLM

from .base import EngineKind, Strategy, StrategyConfig
from .custom_strategy import CustomStrategy
from .langchain_strategy import LangChainStrategy
from .simple_strategy import SimpleStrategy

_ENGINES: Dict[EngineKind, Type[Strategy]] = {
    EngineKind.LANGCHAIN: LangChainStrategy,
    EngineKind.CUSTOM: CustomStrategy,
    EngineKind.SIMPLE: SimpleStrategy,
}


def resolve_kind(kind: EngineKind | str) -> EngineKind:
    """Coerce a kind name to EngineKind, rejecting unsupported ones."""
    try:
        return EngineKind(kind)
    except ValueError:
        raise ConfigurationError(
            f"Unsupported engine kind: {kind}. Available: {[k.value for k in _ENGINES]}"
        ) from None


def create_strategy(
    kind: EngineKind | str,
    config: StrategyConfig | None = None,
    llm: BaseLLM | None = None,
    tools: ToolRegistry | None = None,
) -> Strategy:
    """Build a fresh, uninitialized engine of the given kind."""
    engine_cls = _ENGINES.get(resolve_kind(kind))
    if engine_cls is None:
        raise ConfigurationError(f"No engine registered for kind: {kind}")
    return engine_cls(config=config, llm=llm, tools=tools)


def list_engines() -> list[str]:
    return [k.value for k in _ENGINES]
