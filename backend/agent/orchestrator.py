"""Multi-agent orchestrator: capability/performance routing with fallback and telemetry."""

import logging
import time
import uuid
from dataclasses import dataclass, field

from agent.exceptions import NoSuitableAgent
from agent.handle import AgentHandle
from agent.ledger import ProgressCallback, StepCallback, TaskType, ThoughtCallback
from agent.profiler import Complexity, KeywordQueryProfiler, QueryProfile, QueryProfiler
from agent.strategies import ExecutionResult
from config.settings import settings

logger = logging.getLogger(__name__)

COLLABORATION_SEPARATOR = "\n\n--- Agent Perspective ---\n\n"

# Scoring constants
DOMAIN_MATCH_POINTS = 10
COMPLEXITY_MATCH_POINTS = 5
FLAG_MATCH_POINTS = 15
PERFORMANCE_SCALE = 20
LATENCY_CEILING_MS = 10_000
LOAD_CEILING = 10


@dataclass
class CapabilityDescriptor:
    name: str
    description: str = ""
    domains: tuple[str, ...] = ()
    complexity: Complexity = Complexity.MEDIUM
    priority: int = 1


@dataclass
class PerformanceStats:
    """Live per-agent telemetry, maintained as online incremental means."""
    success_rate: float = 1.0
    average_response_time_ms: float = 0.0
    total_queries: int = 0
    last_used: float = field(default_factory=time.time)
    error_count: int = 0

    def record(self, success: bool, response_time_ms: float) -> None:
        self.total_queries += 1
        n = self.total_queries
        outcome = 1.0 if success else 0.0
        self.success_rate = (self.success_rate * (n - 1) + outcome) / n
        self.average_response_time_ms = (self.average_response_time_ms * (n - 1) + response_time_ms) / n
        if not success:
            self.error_count += 1
        self.last_used = time.time()


@dataclass
class AgentRecord:
    id: str
    name: str
    handle: AgentHandle
    capabilities: list[CapabilityDescriptor]
    performance: PerformanceStats = field(default_factory=PerformanceStats)
    is_active: bool = True
    load_factor: int = 0
    task_type: TaskType | None = None  # fixed task type; None derives it from the query
    index: int = 0  # registration order, used to break score ties


@dataclass
class ActiveQueryRecord:
    query_id: str
    agent_id: str
    started_at: float = field(default_factory=time.time)


@dataclass
class QueryHistoryEntry:
    query: str
    agent_id: str
    success: bool
    response_time_ms: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class PerformanceWeights:
    success: float = field(default_factory=lambda: settings.orchestrator_weight_success)
    latency: float = field(default_factory=lambda: settings.orchestrator_weight_latency)
    load: float = field(default_factory=lambda: settings.orchestrator_weight_load)

    def __post_init__(self):
        for name in ("success", "latency", "load"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Weight '{name}' must be within [0, 1], got {value}")


@dataclass
class OrchestratorConfig:
    enable_fallback: bool = field(default_factory=lambda: settings.orchestrator_enable_fallback)
    enable_collaboration: bool = field(default_factory=lambda: settings.orchestrator_enable_collaboration)
    routing_strategy: str = field(default_factory=lambda: settings.orchestrator_routing_strategy)
    weights: PerformanceWeights = field(default_factory=PerformanceWeights)
    fallback_agent: str = field(default_factory=lambda: settings.orchestrator_fallback_agent)
    history_max: int = field(default_factory=lambda: settings.orchestrator_history_max)
    history_keep: int = field(default_factory=lambda: settings.orchestrator_history_keep)
    max_concurrent_agents: int = field(default_factory=lambda: settings.orchestrator_max_concurrent_agents)

    def __post_init__(self):
        if self.routing_strategy not in ("capability", "performance", "hybrid"):
            raise ValueError(f"Unknown routing strategy: {self.routing_strategy}")
        if self.history_keep > self.history_max:
            raise ValueError("history_keep must not exceed history_max")


def _new_query_id() -> str:
    return f"query_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _determine_task_type(query: str, record: AgentRecord) -> TaskType:
    if record.task_type is not None:
        return record.task_type
    q = query.lower()
    if "research" in q:
        return TaskType.RESEARCH
    if "analyze" in q or "analysis" in q:
        return TaskType.ANALYSIS
    if "create" in q or "creative" in q:
        return TaskType.SYNTHESIS
    return TaskType.CHAT


class Orchestrator:
    """Registry of named agents that routes each query to the best-scoring one.

    One instance is built at startup and shared by reference; the registry,
    in-flight query table and history buffer are all owned by it.
    """

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        profiler: QueryProfiler | None = None,
    ):
        self.config = config or OrchestratorConfig()
        self.profiler = profiler or KeywordQueryProfiler()
        self._agents: dict[str, AgentRecord] = {}
        self._active_queries: dict[str, ActiveQueryRecord] = {}
        self._history: list[QueryHistoryEntry] = []
        self._next_index = 0

    # ---- Registry ----

    def register_agent(
        self,
        agent_id: str,
        name: str,
        handle: AgentHandle,
        capabilities: list[CapabilityDescriptor],
        active: bool = True,
        task_type: TaskType | None = None,
    ) -> AgentRecord:
        if agent_id in self._agents:
            raise ValueError(f"Agent already registered: {agent_id}")
        record = AgentRecord(
            id=agent_id,
            name=name,
            handle=handle,
            capabilities=list(capabilities),
            is_active=active,
            task_type=task_type,
            index=self._next_index,
        )
        self._next_index += 1
        self._agents[agent_id] = record
        logger.info("Registered agent '%s' (%s) with %d capabilities", agent_id, name, len(capabilities))
        return record

    def get_agents(self) -> list[AgentRecord]:
        return sorted(self._agents.values(), key=lambda r: r.index)

    def get_agent(self, agent_id: str) -> AgentRecord | None:
        return self._agents.get(agent_id)

    def _require(self, agent_id: str) -> AgentRecord:
        record = self._agents.get(agent_id)
        if record is None:
            raise KeyError(f"Unknown agent: {agent_id}")
        return record

    async def activate_agent(self, agent_id: str) -> None:
        record = self._require(agent_id)
        record.is_active = True
        await record.handle.initialize()
        logger.info("Activated agent '%s'", agent_id)

    def deactivate_agent(self, agent_id: str) -> None:
        self._require(agent_id).is_active = False
        logger.info("Deactivated agent '%s'", agent_id)

    async def initialize(self) -> None:
        for record in self.get_agents():
            if record.is_active:
                await record.handle.initialize()

    async def shutdown(self) -> None:
        for record in self.get_agents():
            try:
                await record.handle.cleanup()
            except Exception as e:
                logger.warning("Cleanup of agent '%s' failed: %s", record.id, e)

    # ---- Selection ----

    def select_optimal_agent(
        self,
        query: str,
        context: dict | None = None,
        preferred_agent: str | None = None,
    ) -> AgentRecord:
        """Pick the agent for ``query``; pure and deterministic for a fixed registry.

        Raises:
            NoSuitableAgent: if no registered agent is active.
        """
        if preferred_agent:
            preferred = self._agents.get(preferred_agent)
            if preferred is not None and preferred.is_active:
                return preferred
            logger.debug("Preferred agent '%s' unavailable, scoring all agents", preferred_agent)

        candidates = [r for r in self.get_agents() if r.is_active]
        if not candidates:
            raise NoSuitableAgent("No active agent is registered")

        profile = self.profiler.profile(query, context)
        scored = [(self.score_agent(r, profile), r) for r in candidates]
        for score, record in scored:
            logger.debug("Agent '%s' scored %.3f", record.id, score)

        # Highest score wins; equal scores go to the earliest registration.
        _, best = max(scored, key=lambda pair: (pair[0], -pair[1].index))
        return best

    def score_agent(self, record: AgentRecord, profile: QueryProfile) -> float:
        score = 0.0
        if self.config.routing_strategy in ("capability", "hybrid"):
            score += self._capability_score(record, profile)
        if self.config.routing_strategy in ("performance", "hybrid"):
            score += self._performance_score(record)
        return score

    @staticmethod
    def _capability_score(record: AgentRecord, profile: QueryProfile) -> float:
        score = 0.0
        flags = profile.flags()
        for capability in record.capabilities:
            if profile.domains.intersection(capability.domains):
                score += capability.priority * DOMAIN_MATCH_POINTS
            if capability.complexity == profile.complexity:
                score += COMPLEXITY_MATCH_POINTS
            for keyword, required in flags.items():
                if required and keyword in capability.name:
                    score += FLAG_MATCH_POINTS
        return score

    def _performance_score(self, record: AgentRecord) -> float:
        w = self.config.weights
        perf = record.performance
        latency = 1 - min(perf.average_response_time_ms / LATENCY_CEILING_MS, 1)
        load = 1 - min(record.load_factor / LOAD_CEILING, 1)
        return (perf.success_rate * w.success + latency * w.latency + load * w.load) * PERFORMANCE_SCALE

    # ---- Routing ----

    async def route_query(
        self,
        query: str,
        context: dict | None = None,
        preferred_agent: str | None = None,
        on_step: StepCallback | None = None,
        on_thought: ThoughtCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExecutionResult:
        """Route ``query`` to the best agent, falling back once on failure.

        Raises:
            NoSuitableAgent: if no active agent exists.
            Exception: the selected agent's error when it fails and the
                fallback agent is disabled, missing, or also fails.
        """
        context = context or {}
        callbacks = dict(on_step=on_step, on_thought=on_thought, on_progress=on_progress)
        record = self.select_optimal_agent(query, context, preferred_agent)

        query_id = _new_query_id()
        self._active_queries[query_id] = ActiveQueryRecord(query_id=query_id, agent_id=record.id)
        record.load_factor += 1
        started = time.monotonic()
        try:
            result = await self._execute_with(record, query, context, callbacks)
            self.record_query_result(record.id, query, True, _elapsed_ms(started))
            return result
        except Exception as e:
            self.record_query_result(record.id, query, False, _elapsed_ms(started))
            logger.error("Query routing to '%s' failed: %s", record.id, e)

            fallback = self._fallback_for(record)
            if fallback is None:
                raise
            result = await self._run_fallback(fallback, query, context, callbacks)
            if result is None:
                raise
            return result
        finally:
            self._active_queries.pop(query_id, None)
            record.load_factor = max(0, record.load_factor - 1)

    def _fallback_for(self, record: AgentRecord) -> AgentRecord | None:
        if not self.config.enable_fallback or record.id == self.config.fallback_agent:
            return None
        fallback = self._agents.get(self.config.fallback_agent)
        if fallback is None or not fallback.is_active:
            return None
        return fallback

    async def _run_fallback(
        self, fallback: AgentRecord, query: str, context: dict, callbacks: dict
    ) -> ExecutionResult | None:
        logger.info("Retrying query with fallback agent '%s'", fallback.id)
        fallback.load_factor += 1
        started = time.monotonic()
        try:
            result = await self._execute_with(fallback, query, context, callbacks)
        except Exception as e:
            self.record_query_result(fallback.id, query, False, _elapsed_ms(started))
            logger.error("Fallback execution failed: %s", e)
            return None
        finally:
            fallback.load_factor = max(0, fallback.load_factor - 1)
        self.record_query_result(fallback.id, query, True, _elapsed_ms(started))
        result.metadata.setdefault("fallback_agent", fallback.id)
        return result

    async def _execute_with(
        self, record: AgentRecord, query: str, context: dict, callbacks: dict
    ) -> ExecutionResult:
        task_type = context.get("task_type") or _determine_task_type(query, record)
        options = {k: v for k, v in context.items() if k != "task_type"}
        result = await record.handle.execute(query, task_type, options=options, **callbacks)
        result.metadata.setdefault("agent_id", record.id)
        return result

    # ---- Telemetry ----

    def record_query_result(
        self, agent_id: str, query: str, success: bool, response_time_ms: float
    ) -> None:
        record = self._agents.get(agent_id)
        if record is not None:
            record.performance.record(success, response_time_ms)

        self._history.append(QueryHistoryEntry(
            query=query, agent_id=agent_id, success=success, response_time_ms=response_time_ms,
        ))
        if len(self._history) > self.config.history_max:
            self._history = self._history[-self.config.history_keep:]

    @property
    def history(self) -> list[QueryHistoryEntry]:
        return list(self._history)

    @property
    def active_queries(self) -> dict[str, ActiveQueryRecord]:
        return dict(self._active_queries)

    def get_performance_metrics(self) -> dict:
        total = len(self._history)
        successful = sum(1 for h in self._history if h.success)
        usage: dict[str, int] = {}
        for entry in self._history:
            usage[entry.agent_id] = usage.get(entry.agent_id, 0) + 1
        return {
            "total_queries": total,
            "average_response_time_ms": (
                sum(h.response_time_ms for h in self._history) / total if total else 0.0
            ),
            "success_rate": successful / total if total else 0.0,
            "agent_usage": usage,
            "active_queries": len(self._active_queries),
            "agent_load": {r.id: r.load_factor for r in self.get_agents()},
            "max_concurrent_agents": self.config.max_concurrent_agents,
        }

    async def health(self) -> dict:
        agents = {}
        for record in self.get_agents():
            try:
                agents[record.id] = {"active": record.is_active, **(await record.handle.health())}
            except Exception as e:
                logger.warning("Health check for agent '%s' failed: %s", record.id, e)
                agents[record.id] = {"active": record.is_active, "status": "unavailable", "error": str(e)}

        active = [a for a in agents.values() if a["active"]]
        healthy = bool(active) and all(
            a.get("status") == "healthy" and a.get("engine_status") == "healthy" for a in active
        )
        return {
            "status": "healthy" if healthy else "degraded",
            "agents": agents,
            "metrics": self.get_performance_metrics(),
        }

    # ---- Collaboration ----

    async def collaborate_agents(
        self,
        query: str,
        agent_ids: list[str],
        context: dict | None = None,
        on_step: StepCallback | None = None,
        on_thought: ThoughtCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExecutionResult:
        """Run ``query`` on each named agent in turn and merge the results.

        Unknown, inactive and failing agents are skipped; the batch never raises
        for a single member's failure.
        """
        if not self.config.enable_collaboration:
            raise ValueError("Agent collaboration is disabled")

        context = context or {}
        callbacks = dict(on_step=on_step, on_thought=on_thought, on_progress=on_progress)
        started = time.monotonic()
        results: list[ExecutionResult] = []
        contributed: list[str] = []
        failed: list[str] = []

        for agent_id in agent_ids:
            record = self._agents.get(agent_id)
            if record is None or not record.is_active:
                logger.warning("Skipping unavailable collaborator '%s'", agent_id)
                failed.append(agent_id)
                continue
            record.load_factor += 1
            try:
                results.append(await self._execute_with(record, query, context, callbacks))
                contributed.append(agent_id)
            except Exception as e:
                logger.warning("Collaboration failed for agent %s: %s", agent_id, e)
                failed.append(agent_id)
            finally:
                record.load_factor = max(0, record.load_factor - 1)

        merged = self._synthesize(query, results)
        merged.execution_time_ms = _elapsed_ms(started)
        merged.metadata.update({"collaboration": True, "agents": contributed, "failed_agents": failed})
        return merged

    @staticmethod
    def _synthesize(query: str, results: list[ExecutionResult]) -> ExecutionResult:
        confidences = [r.confidence for r in results if r.confidence is not None]
        return ExecutionResult(
            query=query,
            findings=[f for r in results for f in r.findings],
            sources=[s for r in results for s in r.sources],
            synthesis=COLLABORATION_SEPARATOR.join(r.synthesis for r in results if r.synthesis),
            confidence=sum(confidences) / len(confidences) if confidences else 0.0,
            steps=[s for r in results for s in r.steps],
            success=bool(results),
            error=None if results else "No collaborating agent produced a result",
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
