"""AgentHandle: keeps one logical agent's execution engine healthy."""

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from agent.exceptions import SwapFailure
from agent.ledger import ProgressCallback, StepCallback, TaskType, ThoughtCallback
from agent.memory_transfer import MemoryTransferReport, transfer_memory
from agent.strategies import (
    EngineKind,
    ExecutionContext,
    ExecutionResult,
    Strategy,
    StrategyConfig,
    create_strategy,
    default_strategy_config,
    resolve_kind,
)
from agent.tools import ToolRegistry
from config.settings import settings
from core.llm import BaseLLM

logger = logging.getLogger(__name__)

T = TypeVar("T")

StrategyFactory = Callable[..., Strategy]

# Alternatives tried, in order, when the active engine degrades
FALLBACK_ORDER: dict[EngineKind, tuple[EngineKind, ...]] = {
    EngineKind.LANGCHAIN: (EngineKind.CUSTOM, EngineKind.SIMPLE),
    EngineKind.CUSTOM: (EngineKind.LANGCHAIN, EngineKind.SIMPLE),
    EngineKind.SIMPLE: (EngineKind.LANGCHAIN, EngineKind.CUSTOM),
}


@dataclass
class HandleConfig:
    engine: EngineKind | str = field(default_factory=lambda: settings.agent_default_engine)
    strategy: StrategyConfig = field(default_factory=default_strategy_config)
    auto_fallback: bool = field(default_factory=lambda: settings.agent_auto_fallback)
    retry_attempts: int = field(default_factory=lambda: settings.agent_retry_attempts)
    chat_retry_attempts: int = field(default_factory=lambda: settings.agent_chat_retry_attempts)
    retry_backoff_ms: int = field(default_factory=lambda: settings.agent_retry_backoff_ms)
    health_check_interval: float = field(
        default_factory=lambda: settings.agent_health_check_interval_seconds
    )


class AgentHandle:
    """Owns exactly one active Strategy and keeps it healthy.

    healthy -> (probe fails or execute/chat raises) -> degraded ->
    attempt_fallback() -> healthy, or stays degraded if no alternative
    engine reports healthy.
    """

    def __init__(
        self,
        config: HandleConfig | None = None,
        llm: BaseLLM | None = None,
        tools: ToolRegistry | None = None,
        strategy_factory: StrategyFactory = create_strategy,
    ):
        self.config = config or HandleConfig()
        self._llm = llm
        self._tools = tools
        self._factory = strategy_factory
        self._kind = resolve_kind(self.config.engine)
        self._strategy = self._build(self._kind)
        self._swap_lock = asyncio.Lock()
        self._probe_task: asyncio.Task | None = None
        self.is_healthy = True
        self.last_health_check = time.time()

    # ---- Factory constructors ----

    @classmethod
    def for_research(cls, **kwargs) -> "AgentHandle":
        return cls._preset(
            dict(engine=EngineKind.LANGCHAIN, retry_attempts=2),
            dict(temperature=0.1, max_iterations=15, timeout_seconds=60.0, parallel_processing=True),
            **kwargs,
        )

    @classmethod
    def for_chat(cls, **kwargs) -> "AgentHandle":
        return cls._preset(
            dict(engine=EngineKind.CUSTOM, retry_attempts=2),
            dict(temperature=0.3, max_iterations=5, timeout_seconds=30.0, enable_progress=False),
            **kwargs,
        )

    @classmethod
    def for_analysis(cls, **kwargs) -> "AgentHandle":
        return cls._preset(
            dict(engine=EngineKind.LANGCHAIN, retry_attempts=3),
            dict(temperature=0.05, max_iterations=20, timeout_seconds=120.0, parallel_processing=True),
            **kwargs,
        )

    @classmethod
    def from_params(cls, **kwargs) -> "AgentHandle":
        """Build a handle from flat keyword params, split into handle and engine settings by name."""
        return cls._preset({}, {}, **kwargs)

    @classmethod
    def _preset(cls, handle_defaults: dict, strategy_defaults: dict, **kwargs) -> "AgentHandle":
        """Build a handle from preset defaults; kwargs override either level."""
        llm = kwargs.pop("llm", None)
        tools = kwargs.pop("tools", None)
        factory = kwargs.pop("strategy_factory", create_strategy)
        handle_fields = {f.name for f in dataclasses.fields(HandleConfig)} - {"strategy"}
        handle_kwargs = {**handle_defaults, **{k: v for k, v in kwargs.items() if k in handle_fields}}
        strategy_kwargs = {**strategy_defaults, **{k: v for k, v in kwargs.items() if k not in handle_fields}}
        config = HandleConfig(strategy=default_strategy_config(**strategy_kwargs), **handle_kwargs)
        return cls(config=config, llm=llm, tools=tools, strategy_factory=factory)

    # ---- Lifecycle ----

    def _build(self, kind: EngineKind) -> Strategy:
        return self._factory(kind, config=self.config.strategy, llm=self._llm, tools=self._tools)

    async def initialize(self) -> None:
        await self._strategy.initialize()
        self.start_health_checks()

    def start_health_checks(self) -> None:
        """Start the periodic probe task; needs a running event loop."""
        if self.config.health_check_interval <= 0:
            return
        if self._probe_task is not None and not self._probe_task.done():
            return
        self._probe_task = asyncio.create_task(self._probe_loop())

    async def _probe_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.health_check_interval)
            await self.check_health()

    async def cleanup(self) -> None:
        if self._probe_task is not None:
            self._probe_task.cancel()
            try:
                await self._probe_task
            except asyncio.CancelledError:
                pass
            self._probe_task = None
        await self._strategy.cleanup()
        self.is_healthy = False

    # ---- Health & fallback ----

    async def check_health(self) -> bool:
        """Probe the active engine; degrade and fall back when it is unhealthy."""
        strategy = self._strategy
        try:
            report = await strategy.health()
            healthy = report.healthy
            if not healthy:
                logger.warning("Agent health check failed (%s): %s", strategy.kind.value, report.to_dict())
        except Exception as e:
            logger.error("Health check error (%s): %s", strategy.kind.value, e)
            healthy = False
        self.last_health_check = time.time()

        if strategy is not self._strategy:
            # Swapped while probing; the verdict is about a retired engine.
            return self.is_healthy
        self.is_healthy = healthy
        if not healthy and self.config.auto_fallback:
            await self.attempt_fallback(failed=strategy)
        return self.is_healthy

    async def attempt_fallback(self, failed: Strategy | None = None) -> bool:
        """Swap to the first alternative engine whose fresh probe is healthy.

        ``failed`` is the engine instance the caller saw fail. If it has
        already been replaced, nothing is swapped. Conversation memory is
        carried over best-effort. Returns False and leaves the handle
        degraded when every alternative fails.
        """
        async with self._swap_lock:
            if failed is not None and failed is not self._strategy:
                return True
            if failed is None and self.is_healthy:
                # Another caller already recovered while we waited.
                return True
            logger.info("Attempting fallback from %s strategy...", self._kind.value)
            for kind in FALLBACK_ORDER[self._kind]:
                candidate = None
                try:
                    candidate = self._build(kind)
                    await candidate.initialize()
                    report = await candidate.health()
                    if not report.healthy:
                        logger.warning("Fallback candidate %s is %s", kind.value, report.status)
                        await candidate.cleanup()
                        continue
                except Exception as e:
                    logger.warning("Fallback to %s failed: %s", kind.value, e)
                    if candidate is not None:
                        await self._dispose(candidate)
                    continue

                await self._migrate_memory(self._strategy, candidate)
                await self._activate(kind, candidate)
                self.is_healthy = True
                logger.info("Fallback successful: switched to %s strategy", kind.value)
                return True

            logger.error("All fallback strategies failed; %s stays degraded", self._kind.value)
            return False

    async def switch_strategy(
        self, kind: EngineKind | str, preserve_memory: bool = True
    ) -> MemoryTransferReport | None:
        """Explicitly replace the active engine.

        All-or-nothing at the engine level: if the new engine cannot be built
        or initialized, the previous one stays active and SwapFailure is
        raised. Memory items that fail to replay are only counted.
        """
        target = resolve_kind(kind)
        if target == self._kind:
            return None

        async with self._swap_lock:
            logger.info("Switching from %s to %s strategy", self._kind.value, target.value)
            snapshot: list[Any] = []
            if preserve_memory:
                try:
                    snapshot = self._strategy.get_memory()
                    logger.info("Captured %d memory items for transfer", len(snapshot))
                except Exception as e:
                    logger.warning("Failed to capture memory from current strategy: %s", e)

            candidate = None
            try:
                candidate = self._build(target)
                await candidate.initialize()
            except Exception as e:
                logger.error("Failed to switch to %s strategy: %s", target.value, e)
                if candidate is not None:
                    await self._dispose(candidate)
                raise SwapFailure(target.value, e) from e

            report = None
            if preserve_memory and snapshot:
                report = await transfer_memory(snapshot, candidate)

            await self._activate(target, candidate)
            self.is_healthy = True
            logger.info("Successfully switched to %s strategy", target.value)
            return report

    async def _migrate_memory(self, source: Strategy, target: Strategy) -> None:
        try:
            snapshot = source.get_memory()
        except Exception as e:
            logger.warning("Could not read memory of degraded strategy: %s", e)
            return
        if snapshot:
            await transfer_memory(snapshot, target)

    async def _activate(self, kind: EngineKind, strategy: Strategy) -> None:
        previous = self._strategy
        self._strategy = strategy
        self._kind = kind
        self.config.engine = kind
        await self._dispose(previous)

    @staticmethod
    async def _dispose(strategy: Strategy) -> None:
        try:
            await strategy.cleanup()
        except Exception as e:
            logger.warning("Cleanup of %s strategy failed: %s", strategy.kind.value, e)

    async def health(self) -> dict:
        """Handle breaker state merged with the engine's own report."""
        try:
            engine = (await self._strategy.health()).to_dict()
        except Exception as e:
            engine = {"status": "unavailable", "tools": {}, "memory": False, "agent": False, "error": str(e)}
        return {
            "status": "healthy" if self.is_healthy else "degraded",
            "strategy": self._kind.value,
            "is_healthy": self.is_healthy,
            "last_health_check": self.last_health_check,
            "engine_status": engine.pop("status"),
            **engine,
        }

    # ---- Execution ----

    async def execute(
        self,
        query: str,
        task_type: TaskType | str = TaskType.RESEARCH,
        on_step: StepCallback | None = None,
        on_thought: ThoughtCallback | None = None,
        on_progress: ProgressCallback | None = None,
        retry_attempts: int | None = None,
        options: dict | None = None,
    ) -> ExecutionResult:
        context = ExecutionContext(
            query=query,
            task_type=TaskType(task_type),
            options=dict(options or {}),
            on_step=on_step,
            on_thought=on_thought,
            on_progress=on_progress,
        )
        attempts = retry_attempts if retry_attempts is not None else self.config.retry_attempts
        return await self._with_retry(lambda s: s.execute(context), attempts, "Execution")

    async def chat(
        self,
        message: str,
        on_step: StepCallback | None = None,
        retry_attempts: int | None = None,
    ) -> str:
        attempts = retry_attempts if retry_attempts is not None else self.config.chat_retry_attempts
        return await self._with_retry(lambda s: s.chat(message, on_step), attempts, "Chat")

    async def _with_retry(
        self, call: Callable[[Strategy], Awaitable[T]], attempts: int, label: str
    ) -> T:
        attempts = max(1, attempts)
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            strategy = self._strategy
            try:
                if not self.is_healthy:
                    await self.check_health()
                    strategy = self._strategy
                return await call(strategy)
            except Exception as e:
                last_error = e
                # A late failure from a replaced engine says nothing about the current one.
                if strategy is self._strategy:
                    self.is_healthy = False
                logger.warning("%s attempt %d/%d failed (%s): %s", label, attempt, attempts, strategy.kind.value, e)

                if attempt < attempts:
                    if self.config.auto_fallback:
                        await self.attempt_fallback(failed=strategy)
                    await asyncio.sleep(attempt * self.config.retry_backoff_ms / 1000)

        logger.error("%s failed after %d attempts", label, attempts)
        raise last_error

    # ---- Delegation ----

    @property
    def strategy(self) -> Strategy:
        return self._strategy

    def get_current_strategy(self) -> EngineKind:
        return self._kind

    def get_config(self) -> HandleConfig:
        return dataclasses.replace(self.config, strategy=dataclasses.replace(self.config.strategy))

    def update_config(self, **changes) -> None:
        """Update handle settings and push engine settings to the live engine."""
        handle_fields = {f.name for f in dataclasses.fields(HandleConfig)} - {"strategy", "engine"}
        for key in list(changes):
            if key in handle_fields:
                setattr(self.config, key, changes.pop(key))
        if changes:
            self.config.strategy = self.config.strategy.merged(**changes)
            self._strategy.update_config(**changes)

    def get_memory(self) -> list[Any]:
        return self._strategy.get_memory()

    def clear_memory(self) -> None:
        self._strategy.clear_memory()

    def get_available_tools(self) -> list[str]:
        return self._strategy.get_available_tools()

    async def get_tool_capabilities(self, tool_name: str) -> dict:
        return await self._strategy.get_tool_capabilities(tool_name)
