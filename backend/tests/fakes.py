"""Shared fakes for the agent test suites (no network, no real LLM)."""

import asyncio

from agent.handle import AgentHandle, HandleConfig
from agent.strategies import EngineKind, create_strategy
from agent.tools import BaseTool, ToolDefinition, ToolParameter, ToolRegistry, ToolResult
from core.llm import BaseLLM, LLMResponse


class MockLLM(BaseLLM):
    """Mock LLM that returns predictable responses.

    ``fail_times`` makes the next N generate() calls raise ConnectionError;
    ``delay`` suspends every call for that many seconds first.
    """

    provider_name = "mock"

    def __init__(
        self,
        response_text: str = "Mock response",
        responses: list[str] | None = None,
        fail_times: int = 0,
        healthy: bool = True,
        delay: float = 0.0,
    ):
        super().__init__(model="mock-model")
        self.response_text = response_text
        self.responses = list(responses or [])
        self.fail_times = fail_times
        self.healthy = healthy
        self.delay = delay
        self.call_count = 0
        self.prompts: list[str] = []
        self.closed = False

    async def generate(self, prompt, system=None, temperature=None, max_tokens=None, **kwargs):
        self.call_count += 1
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("LLM endpoint unreachable")
        content = self.responses.pop(0) if self.responses else self.response_text
        return LLMResponse(content=content, model=self.model, provider=self.provider_name)

    async def health(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


class FakeSearchTool(BaseTool):
    """web_search stand-in returning canned hits, or raising when ``broken``."""

    def __init__(self, hits: list[dict] | None = None, broken: bool = False, healthy: bool = True):
        self.hits = hits if hits is not None else [
            {"id": "1", "title": "Sleep study", "url": "https://example.org/sleep",
             "snippet": "Caffeine delays sleep onset.", "domain": "example.org"},
            {"id": "2", "title": "Review", "url": "https://example.org/review",
             "description": "Half-life of caffeine is about five hours."},
        ]
        self.broken = broken
        self.healthy = healthy
        self.queries: list[str] = []

    def get_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="web_search",
            description="Search the web",
            parameters=[ToolParameter(name="query", description="Search query")],
            category="search",
        )

    async def execute(self, **kwargs) -> ToolResult:
        self.queries.append(kwargs["query"])
        if self.broken:
            raise TimeoutError("search backend timed out")
        return ToolResult.ok(self.hits)

    async def health(self) -> bool:
        return self.healthy


def search_registry(**kwargs) -> ToolRegistry:
    return ToolRegistry([FakeSearchTool(**kwargs)])


def per_kind_factory(llms: dict[EngineKind, BaseLLM]):
    """Strategy factory that gives each engine kind its own LLM."""
    def factory(kind, config=None, llm=None, tools=None):
        return create_strategy(kind, config=config, llm=llms[EngineKind(kind)], tools=tools)
    return factory


def failing_init_factory(failing_kind: EngineKind):
    """Strategy factory whose engines of ``failing_kind`` cannot initialize."""
    def factory(kind, config=None, llm=None, tools=None):
        strategy = create_strategy(kind, config=config, llm=llm, tools=tools)
        if EngineKind(kind) == failing_kind:
            async def broken_initialize():
                raise RuntimeError("engine bootstrap failed")
            strategy.initialize = broken_initialize
        return strategy
    return factory


def make_handle(llm: BaseLLM, engine: str = "simple", **overrides) -> AgentHandle:
    """Handle with no probe task, no backoff and a single attempt by default."""
    params = dict(
        engine=engine,
        retry_attempts=1,
        chat_retry_attempts=1,
        retry_backoff_ms=0,
        health_check_interval=0,
        auto_fallback=False,
    )
    params.update(overrides)
    return AgentHandle(config=HandleConfig(**params), llm=llm)
