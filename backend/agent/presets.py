"""Static agent definitions registered at startup."""

import logging
from dataclasses import dataclass, field
from typing import Callable

from agent.handle import AgentHandle, StrategyFactory
from agent.ledger import TaskType
from agent.orchestrator import CapabilityDescriptor, Orchestrator, OrchestratorConfig
from agent.profiler import Complexity, QueryProfiler
from agent.strategies import EngineKind, create_strategy
from agent.tools import ToolRegistry
from core.llm import BaseLLM

logger = logging.getLogger(__name__)

HandleBuilder = Callable[..., AgentHandle]


@dataclass
class AgentDefinition:
    id: str
    name: str
    build: HandleBuilder
    capabilities: list[CapabilityDescriptor]
    params: dict = field(default_factory=dict)
    task_type: TaskType | None = None


DEFAULT_AGENTS: list[AgentDefinition] = [
    AgentDefinition(
        id="research",
        name="Research Agent",
        build=AgentHandle.for_research,
        params=dict(temperature=0.1, max_iterations=15, enable_memory=True, enable_progress=True),
        task_type=TaskType.RESEARCH,
        capabilities=[
            CapabilityDescriptor(
                name="deep_research",
                description="Comprehensive research and analysis",
                domains=("academic", "scientific", "technical", "business"),
                complexity=Complexity.COMPLEX,
                priority=1,
            ),
            CapabilityDescriptor(
                name="fact_checking",
                description="Verify information accuracy",
                domains=("verification", "validation"),
                complexity=Complexity.MEDIUM,
                priority=2,
            ),
        ],
    ),
    AgentDefinition(
        id="analysis",
        name="Analysis Agent",
        build=AgentHandle.for_analysis,
        params=dict(temperature=0.05, max_iterations=10, enable_memory=True, parallel_processing=True),
        task_type=TaskType.ANALYSIS,
        capabilities=[
            CapabilityDescriptor(
                name="data_analysis",
                description="Analyze structured and unstructured data",
                domains=("data", "statistics", "trends"),
                complexity=Complexity.COMPLEX,
                priority=1,
            ),
            CapabilityDescriptor(
                name="pattern_recognition",
                description="Identify patterns and insights",
                domains=("patterns", "insights", "correlations"),
                complexity=Complexity.MEDIUM,
                priority=2,
            ),
        ],
    ),
    AgentDefinition(
        id="creative",
        name="Creative Agent",
        build=AgentHandle.from_params,
        params=dict(
            engine=EngineKind.LANGCHAIN,
            temperature=0.8, max_iterations=8, enable_memory=True, enable_progress=False,
        ),
        task_type=TaskType.SYNTHESIS,
        capabilities=[
            CapabilityDescriptor(
                name="content_creation",
                description="Generate creative content",
                domains=("writing", "brainstorming", "ideation"),
                complexity=Complexity.MEDIUM,
                priority=1,
            ),
            CapabilityDescriptor(
                name="creative_problem_solving",
                description="Approach problems creatively",
                domains=("innovation", "alternatives", "solutions"),
                complexity=Complexity.MEDIUM,
                priority=2,
            ),
        ],
    ),
    AgentDefinition(
        id="technical",
        name="Technical Agent",
        build=AgentHandle.from_params,
        params=dict(
            engine=EngineKind.LANGCHAIN,
            temperature=0.2, max_iterations=12, enable_memory=True, enable_progress=True,
        ),
        capabilities=[
            CapabilityDescriptor(
                name="code_analysis",
                description="Analyze and debug code",
                domains=("programming", "debugging", "architecture"),
                complexity=Complexity.COMPLEX,
                priority=1,
            ),
            CapabilityDescriptor(
                name="technical_documentation",
                description="Create technical documentation",
                domains=("documentation", "specifications"),
                complexity=Complexity.MEDIUM,
                priority=2,
            ),
        ],
    ),
    AgentDefinition(
        id="conversational",
        name="Conversational Agent",
        build=AgentHandle.for_chat,
        params=dict(temperature=0.6, max_iterations=5, enable_memory=True, enable_progress=False),
        capabilities=[
            CapabilityDescriptor(
                name="natural_dialogue",
                description="Engage in natural conversation",
                domains=("conversation", "qa", "support"),
                complexity=Complexity.SIMPLE,
                priority=1,
            ),
            CapabilityDescriptor(
                name="quick_answers",
                description="Provide quick factual answers",
                domains=("facts", "definitions", "explanations"),
                complexity=Complexity.SIMPLE,
                priority=2,
            ),
        ],
    ),
]


def create_default_orchestrator(
    config: OrchestratorConfig | None = None,
    profiler: QueryProfiler | None = None,
    llm: BaseLLM | None = None,
    tools: ToolRegistry | None = None,
    strategy_factory: StrategyFactory = create_strategy,
    definitions: list[AgentDefinition] | None = None,
    **handle_overrides,
) -> Orchestrator:
    """Build an Orchestrator with the standard agent roster registered.

    ``handle_overrides`` (e.g. ``retry_backoff_ms=0``) are applied to every
    handle on top of its definition's parameters.
    """
    orchestrator = Orchestrator(config=config, profiler=profiler)
    for definition in definitions or DEFAULT_AGENTS:
        handle = definition.build(
            llm=llm,
            tools=tools,
            strategy_factory=strategy_factory,
            **{**definition.params, **handle_overrides},
        )
        orchestrator.register_agent(
            definition.id,
            definition.name,
            handle,
            definition.capabilities,
            task_type=definition.task_type,
        )
    logger.info("Default orchestrator ready with %d agents", len(orchestrator.get_agents()))
    return orchestrator
