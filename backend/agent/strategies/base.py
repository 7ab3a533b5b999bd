"""Strategy contract shared by every execution engine."""

import dataclasses
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from agent.exceptions import ToolNotFound
from agent.ledger import (
    ExecutionLedger,
    ExecutionStep,
    ProgressCallback,
    StepCallback,
    StepStatus,
    TaskType,
    ThoughtCallback,
)
from agent.tools import ToolRegistry
from config.settings import settings
from core.llm import BaseLLM, create_llm

logger = logging.getLogger(__name__)

SEARCH_TOOL = "web_search"


class EngineKind(str, Enum):
    """Available execution engine kinds."""
    LANGCHAIN = "langchain"
    CUSTOM = "custom"
    SIMPLE = "simple"


@dataclass
class StrategyConfig:
    """Engine settings that can change without rebuilding the engine."""
    temperature: float = 0.1
    max_iterations: int = 10
    timeout_seconds: float = 30.0
    enable_memory: bool = True
    enable_progress: bool = True
    parallel_processing: bool = False
    history_window: int = 6
    llm_provider: str | None = None
    llm_model: str | None = None

    def merged(self, **changes) -> "StrategyConfig":
        known = {f.name for f in dataclasses.fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown strategy config fields: {sorted(unknown)}")
        return dataclasses.replace(self, **changes)


@dataclass
class ExecutionContext:
    """Everything an engine needs for one execute() call."""
    query: str
    task_type: TaskType = TaskType.RESEARCH
    options: dict = field(default_factory=dict)
    on_step: StepCallback | None = None
    on_thought: ThoughtCallback | None = None
    on_progress: ProgressCallback | None = None


@dataclass
class SearchResultSummary:
    id: str
    title: str
    url: str
    description: str | None = None
    snippet: str | None = None
    domain: str | None = None


@dataclass
class ExecutionResult:
    """Outcome of one execution; soft failures carry success=False."""
    query: str
    findings: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    synthesis: str = ""
    confidence: float | None = None
    steps: list[ExecutionStep] = field(default_factory=list)
    search_results: list[SearchResultSummary] | None = None
    execution_time_ms: int = 0
    success: bool = True
    error: str | None = None
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "findings": self.findings,
            "sources": self.sources,
            "synthesis": self.synthesis,
            "confidence": self.confidence,
            "steps": [s.to_dict() for s in self.steps],
            "search_results": (
                [dataclasses.asdict(r) for r in self.search_results]
                if self.search_results is not None else None
            ),
            "execution_time_ms": self.execution_time_ms,
            "success": self.success,
            "error": self.error,
            "metadata": self.metadata,
        }


@dataclass
class HealthReport:
    status: str
    tools: dict[str, bool] = field(default_factory=dict)
    memory: bool = True
    agent: bool = True

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"

    def to_dict(self) -> dict:
        return {"status": self.status, "tools": self.tools, "memory": self.memory, "agent": self.agent}


TaskBody = Callable[[ExecutionContext, ExecutionLedger], Awaitable[ExecutionResult]]


class Strategy(ABC):
    """Uniform surface of an execution engine.

    Routine tool failures are folded into the result (``success=False``);
    only unrecoverable errors, such as an unreachable LLM, are raised so
    the owning AgentHandle can retry or fall back.
    """

    kind: EngineKind

    def __init__(
        self,
        config: StrategyConfig | None = None,
        llm: BaseLLM | None = None,
        tools: ToolRegistry | None = None,
    ):
        self.config = config or StrategyConfig()
        self.tools = tools if tools is not None else ToolRegistry()
        self._llm = llm
        self._owns_llm = llm is None
        self._initialized = False

    @property
    def llm(self) -> BaseLLM:
        if self._llm is None:
            self._llm = create_llm(
                provider=self.config.llm_provider,
                model=self.config.llm_model,
                temperature=self.config.temperature,
                timeout=self.config.timeout_seconds,
            )
        return self._llm

    # ---- Lifecycle ----

    async def initialize(self) -> None:
        self._initialized = True

    async def cleanup(self) -> None:
        self.clear_memory()
        if self._owns_llm and self._llm is not None:
            await self._llm.close()
            self._llm = None
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    # ---- Execution ----

    @abstractmethod
    async def execute(self, context: ExecutionContext) -> ExecutionResult:
        ...

    @abstractmethod
    async def chat(self, message: str, on_step: StepCallback | None = None) -> str:
        ...

    async def _run_task(self, context: ExecutionContext, body: TaskBody) -> ExecutionResult:
        """Run ``body`` inside a fresh ledger and fold its steps into the result."""
        await self._ensure_initialized()
        started = time.monotonic()
        ledger = ExecutionLedger(
            task_type=context.task_type,
            query=context.query,
            on_step=context.on_step,
            on_thought=context.on_thought,
            on_progress=context.on_progress if self.config.enable_progress else None,
        )
        task = ledger.start()
        ledger.add_step(
            "task_start",
            f"Starting {self.kind.value} execution",
            data={"task_id": task.id, "task_type": task.task_type.value, "query": task.query},
        )

        try:
            result = await body(context, ledger)
        except Exception as e:
            ledger.fail(e)
            ledger.add_step("task_error", f"{self.kind.value} execution failed", StepStatus.ERROR, {"error": str(e)})
            logger.warning("%s engine failed on task %s: %s", self.kind.value, task.id, e)
            raise

        ledger.complete()
        ledger.add_step("task_complete", f"{self.kind.value} execution completed", StepStatus.COMPLETED)
        result.steps = ledger.drain()
        result.execution_time_ms = int((time.monotonic() - started) * 1000)
        result.metadata.setdefault("strategy", self.kind.value)
        result.metadata.setdefault("task_type", task.task_type.value)
        result.metadata.setdefault("task_id", task.id)
        return result

    async def _ask(self, prompt: str, system: str | None = None, **kwargs) -> str:
        response = await self.llm.generate(
            prompt=prompt,
            system=system,
            temperature=kwargs.pop("temperature", self.config.temperature),
            **kwargs,
        )
        return response.content.strip()

    async def _search(
        self, query: str, ledger: ExecutionLedger
    ) -> tuple[list[str], list[str], list[SearchResultSummary]]:
        """Run the registered web search tool, if any.

        Returns (findings, sources, summaries); a failed search yields empty lists.
        """
        if not self.tools.has(SEARCH_TOOL):
            return [], [], []

        ledger.add_step("web_search", f"Searching the web for: {query}")
        result = await self.tools.execute(SEARCH_TOOL, query=query)
        if not result.success:
            ledger.add_step("web_search", f"Search failed: {result.error}", StepStatus.ERROR)
            return [], [], []

        findings, sources, summaries = [], [], []
        for i, hit in enumerate(result.data or []):
            url = hit.get("url", "")
            snippet = hit.get("snippet") or hit.get("description") or ""
            if snippet:
                findings.append(snippet)
            if url:
                sources.append(url)
            summaries.append(SearchResultSummary(
                id=str(hit.get("id", i)),
                title=hit.get("title", ""),
                url=url,
                description=hit.get("description"),
                snippet=hit.get("snippet"),
                domain=hit.get("domain"),
            ))
        ledger.add_step(
            "web_search", f"Found {len(summaries)} results", StepStatus.COMPLETED,
            data={"count": len(summaries)},
        )
        return findings, sources, summaries

    # ---- Health ----

    async def health(self) -> HealthReport:
        tools = await self.tools.health()
        agent_ok = await self.llm.health()
        memory_ok = self.memory_healthy()
        ok = agent_ok and memory_ok and all(tools.values())
        return HealthReport(
            status="healthy" if ok else "degraded",
            tools=tools,
            memory=memory_ok,
            agent=agent_ok,
        )

    def memory_healthy(self) -> bool:
        return True

    # ---- Memory ----

    @abstractmethod
    def get_memory(self) -> list[Any]:
        """Return a copy of the engine's native memory items."""
        ...

    @abstractmethod
    def clear_memory(self) -> None:
        ...

    @abstractmethod
    async def load_standardized_memory(self, item) -> None:
        """Replay one StandardizedMemoryItem into the engine's native format."""
        ...

    # ---- Tools ----

    def get_available_tools(self) -> list[str]:
        return self.tools.names()

    async def get_tool_capabilities(self, tool_name: str) -> dict:
        tool = self.tools.get_tool(tool_name)
        if tool is None:
            raise ToolNotFound(f"Tool not found: {tool_name}")
        capabilities = tool.get_definition().to_schema()
        capabilities["strategy"] = self.kind.value
        return capabilities

    # ---- Config ----

    def update_config(self, **changes) -> None:
        self.config = self.config.merged(**changes)

    def get_config(self) -> StrategyConfig:
        return dataclasses.replace(self.config)


def default_strategy_config(**overrides) -> StrategyConfig:
    """StrategyConfig seeded from settings."""
    base = StrategyConfig(temperature=settings.llm_temperature)
    return base.merged(**overrides) if overrides else base
