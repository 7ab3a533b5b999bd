"""Tests for the Orchestrator: selection, routing, telemetry and collaboration."""

import asyncio

import pytest

from agent.exceptions import NoSuitableAgent
from agent.ledger import TaskType
from agent.orchestrator import (
    COLLABORATION_SEPARATOR,
    CapabilityDescriptor,
    Orchestrator,
    OrchestratorConfig,
    PerformanceStats,
    PerformanceWeights,
)
from agent.presets import DEFAULT_AGENTS, create_default_orchestrator
from agent.profiler import Complexity
from agent.strategies import ExecutionResult
from tests.fakes import MockLLM, make_handle

CAFFEINE = "Please research the effects of caffeine on sleep, comprehensive analysis requested"

RESEARCH_CAPS = [
    CapabilityDescriptor(name="deep_research", domains=("academic",), complexity=Complexity.COMPLEX),
]
CHAT_CAPS = [
    CapabilityDescriptor(name="natural_dialogue", domains=("conversation",), complexity=Complexity.SIMPLE),
]


def _orchestrator(**config) -> Orchestrator:
    return Orchestrator(config=OrchestratorConfig(**config))


class TestDefaultRoster:

    def setup_method(self):
        self.orchestrator = create_default_orchestrator(
            llm=MockLLM(), health_check_interval=0, retry_backoff_ms=0
        )

    def test_registers_all_agents_in_order(self):
        ids = [a.id for a in self.orchestrator.get_agents()]
        assert ids == [d.id for d in DEFAULT_AGENTS]
        assert ids == ["research", "analysis", "creative", "technical", "conversational"]

    def test_caffeine_query_goes_to_research(self):
        profile = self.orchestrator.profiler.profile(CAFFEINE)
        research = self.orchestrator.get_agent("research")
        conversational = self.orchestrator.get_agent("conversational")

        assert self.orchestrator.score_agent(research, profile) == pytest.approx(50.0)
        assert self.orchestrator.score_agent(conversational, profile) == pytest.approx(20.0)
        assert self.orchestrator.select_optimal_agent(CAFFEINE).id == "research"

    def test_greeting_is_not_forced_to_specialist(self):
        assert self.orchestrator.select_optimal_agent("hi").id == "conversational"

    def test_selection_is_deterministic(self):
        picks = {self.orchestrator.select_optimal_agent(CAFFEINE).id for _ in range(20)}
        assert picks == {"research"}

    async def test_route_uses_agent_task_type(self):
        result = await self.orchestrator.route_query(CAFFEINE)
        assert result.metadata["agent_id"] == "research"
        assert result.metadata["task_type"] == "research"

    async def test_preferred_agent(self):
        result = await self.orchestrator.route_query(CAFFEINE, preferred_agent="creative")
        assert result.metadata["agent_id"] == "creative"
        assert result.metadata["task_type"] == TaskType.SYNTHESIS.value

    async def test_task_type_from_query_keywords(self):
        analysis = await self.orchestrator.route_query(
            "A comprehensive analysis of the build logs", preferred_agent="technical"
        )
        creative = await self.orchestrator.route_query(
            "Some creative names for the service", preferred_agent="technical"
        )
        plain = await self.orchestrator.route_query("How do I rotate logs?", preferred_agent="technical")

        assert analysis.metadata["task_type"] == TaskType.ANALYSIS.value
        assert creative.metadata["task_type"] == TaskType.SYNTHESIS.value
        assert plain.metadata["task_type"] == TaskType.CHAT.value

    def test_inactive_preferred_agent_is_ignored(self):
        self.orchestrator.deactivate_agent("creative")
        assert self.orchestrator.select_optimal_agent(CAFFEINE, preferred_agent="creative").id == "research"


class TestSelection:

    def test_empty_registry(self):
        with pytest.raises(NoSuitableAgent):
            _orchestrator().select_optimal_agent("hi")

    async def test_all_inactive(self):
        orchestrator = _orchestrator()
        orchestrator.register_agent("solo", "Solo", make_handle(MockLLM()), CHAT_CAPS)
        orchestrator.deactivate_agent("solo")
        with pytest.raises(NoSuitableAgent):
            await orchestrator.route_query("hi")
        assert orchestrator.history == []

    def test_tie_goes_to_first_registered(self):
        orchestrator = _orchestrator()
        orchestrator.register_agent("zeta", "Zeta", make_handle(MockLLM()), CHAT_CAPS)
        orchestrator.register_agent("alpha", "Alpha", make_handle(MockLLM()), CHAT_CAPS)
        assert orchestrator.select_optimal_agent("hi").id == "zeta"

    def test_duplicate_registration(self):
        orchestrator = _orchestrator()
        orchestrator.register_agent("a", "A", make_handle(MockLLM()), CHAT_CAPS)
        with pytest.raises(ValueError):
            orchestrator.register_agent("a", "A again", make_handle(MockLLM()), CHAT_CAPS)

    def test_load_lowers_score(self):
        orchestrator = _orchestrator()
        first = orchestrator.register_agent("first", "First", make_handle(MockLLM()), CHAT_CAPS)
        orchestrator.register_agent("second", "Second", make_handle(MockLLM()), CHAT_CAPS)
        first.load_factor = 3
        assert orchestrator.select_optimal_agent("hi").id == "second"

    def test_capability_mode_ignores_performance(self):
        orchestrator = _orchestrator(routing_strategy="capability")
        record = orchestrator.register_agent("r", "R", make_handle(MockLLM()), RESEARCH_CAPS)
        record.performance.success_rate = 0.0
        profile = orchestrator.profiler.profile(CAFFEINE)
        assert orchestrator.score_agent(record, profile) == pytest.approx(30.0)

    def test_performance_mode_ignores_capabilities(self):
        orchestrator = _orchestrator(routing_strategy="performance")
        record = orchestrator.register_agent("r", "R", make_handle(MockLLM()), RESEARCH_CAPS)
        profile = orchestrator.profiler.profile(CAFFEINE)
        assert orchestrator.score_agent(record, profile) == pytest.approx(20.0)

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            OrchestratorConfig(routing_strategy="random")
        with pytest.raises(ValueError):
            PerformanceWeights(success=1.5)


class TestTelemetry:

    def test_ten_successes_is_exactly_one(self):
        stats = PerformanceStats()
        for _ in range(10):
            stats.record(True, 120)
        assert stats.success_rate == 1.0
        assert stats.total_queries == 10
        assert stats.error_count == 0

    def test_incremental_rate_matches_recomputed(self):
        outcomes = [True, False, True, True, False, False, True, True, True, False, True]
        times = [100, 250, 80, 90, 400, 300, 70, 60, 120, 500, 110]
        stats = PerformanceStats()
        for ok, ms in zip(outcomes, times):
            stats.record(ok, ms)

        assert stats.success_rate == pytest.approx(sum(outcomes) / len(outcomes))
        assert stats.average_response_time_ms == pytest.approx(sum(times) / len(times))
        assert stats.error_count == outcomes.count(False)

    async def test_routed_successes(self):
        orchestrator = _orchestrator()
        record = orchestrator.register_agent("a", "A", make_handle(MockLLM()), CHAT_CAPS)
        for _ in range(10):
            await orchestrator.route_query("hi")
        assert record.performance.success_rate == 1.0
        assert record.performance.total_queries == 10

    def test_history_ring_buffer(self):
        orchestrator = _orchestrator(history_max=10, history_keep=5)
        for i in range(11):
            orchestrator.record_query_result("a", f"q{i}", True, 1)
        assert [h.query for h in orchestrator.history] == ["q6", "q7", "q8", "q9", "q10"]

    def test_unknown_agent_only_logs_history(self):
        orchestrator = _orchestrator()
        orchestrator.record_query_result("ghost", "q", False, 5)
        assert len(orchestrator.history) == 1

    def test_metrics(self):
        orchestrator = _orchestrator()
        orchestrator.register_agent("a", "A", make_handle(MockLLM()), CHAT_CAPS)
        orchestrator.record_query_result("a", "q1", True, 100)
        orchestrator.record_query_result("a", "q2", False, 300)
        orchestrator.record_query_result("b", "q3", True, 200)

        metrics = orchestrator.get_performance_metrics()

        assert metrics["total_queries"] == 3
        assert metrics["success_rate"] == pytest.approx(2 / 3)
        assert metrics["average_response_time_ms"] == pytest.approx(200)
        assert metrics["agent_usage"] == {"a": 2, "b": 1}
        assert metrics["active_queries"] == 0
        assert metrics["agent_load"] == {"a": 0}

    def test_empty_metrics(self):
        metrics = _orchestrator().get_performance_metrics()
        assert metrics["total_queries"] == 0
        assert metrics["success_rate"] == 0.0
        assert metrics["average_response_time_ms"] == 0.0


class TestRoutingFailures:

    def setup_method(self):
        self.orchestrator = _orchestrator()
        self.broken_llm = MockLLM(fail_times=1000)
        self.research = self.orchestrator.register_agent(
            "research", "Research", make_handle(self.broken_llm), RESEARCH_CAPS, task_type=TaskType.RESEARCH
        )
        self.chat = self.orchestrator.register_agent(
            "conversational", "Chat", make_handle(MockLLM("fallback answer")), CHAT_CAPS
        )

    async def test_falls_back_to_conversational(self):
        result = await self.orchestrator.route_query(CAFFEINE)

        assert result.synthesis == "fallback answer"
        assert result.metadata["fallback_agent"] == "conversational"
        assert self.research.performance.error_count == 1
        assert self.chat.performance.total_queries == 1
        assert [(h.agent_id, h.success) for h in self.orchestrator.history] == [
            ("research", False),
            ("conversational", True),
        ]

    async def test_error_propagates_without_fallback(self):
        self.orchestrator.config.enable_fallback = False
        with pytest.raises(ConnectionError):
            await self.orchestrator.route_query(CAFFEINE)
        assert self.research.load_factor == 0
        assert self.orchestrator.active_queries == {}

    async def test_first_error_surfaces_when_fallback_also_fails(self):
        self.chat.handle = make_handle(MockLLM(fail_times=1000))
        with pytest.raises(ConnectionError):
            await self.orchestrator.route_query(CAFFEINE)
        assert self.research.load_factor == 0
        assert self.chat.load_factor == 0

    async def test_load_is_conserved_under_concurrency(self):
        queries = [CAFFEINE, "hi", CAFFEINE, "hello", CAFFEINE, "hi"]
        self.orchestrator.config.enable_fallback = False

        outcomes = await asyncio.gather(
            *(self.orchestrator.route_query(q) for q in queries), return_exceptions=True
        )

        assert any(isinstance(o, Exception) for o in outcomes)
        assert any(isinstance(o, ExecutionResult) for o in outcomes)
        assert sum(a.load_factor for a in self.orchestrator.get_agents()) == 0
        assert self.orchestrator.active_queries == {}
        assert len(self.orchestrator.history) == len(queries)


class TestCollaboration:

    def setup_method(self):
        self.orchestrator = _orchestrator()
        self.orchestrator.register_agent("broken", "Broken", make_handle(MockLLM(fail_times=1000)), RESEARCH_CAPS)
        self.orchestrator.register_agent("good", "Good", make_handle(MockLLM("good view")), CHAT_CAPS)
        self.orchestrator.register_agent("other", "Other", make_handle(MockLLM("other view")), CHAT_CAPS)

    async def test_failing_member_is_skipped(self):
        result = await self.orchestrator.collaborate_agents("hi", ["broken", "good"])

        assert result.success
        assert result.synthesis == "good view"
        assert result.metadata["agents"] == ["good"]
        assert result.metadata["failed_agents"] == ["broken"]
        assert result.steps
        assert all(a.load_factor == 0 for a in self.orchestrator.get_agents())

    async def test_syntheses_joined_and_confidence_averaged(self):
        result = await self.orchestrator.collaborate_agents("hi", ["good", "other", "missing"])

        assert result.synthesis == COLLABORATION_SEPARATOR.join(["good view", "other view"])
        assert result.confidence == pytest.approx(0.5)
        assert result.metadata["failed_agents"] == ["missing"]

    async def test_all_failed(self):
        result = await self.orchestrator.collaborate_agents("hi", ["broken"])
        assert result.success is False
        assert result.confidence == 0.0
        assert result.synthesis == ""

    async def test_disabled(self):
        self.orchestrator.config.enable_collaboration = False
        with pytest.raises(ValueError):
            await self.orchestrator.collaborate_agents("hi", ["good"])


class TestLifecycle:

    async def test_activate_and_health(self):
        orchestrator = _orchestrator()
        orchestrator.register_agent("a", "A", make_handle(MockLLM()), CHAT_CAPS, active=False)
        await orchestrator.activate_agent("a")
        assert orchestrator.get_agent("a").is_active

        health = await orchestrator.health()
        assert health["status"] == "healthy"
        assert health["agents"]["a"]["strategy"] == "simple"
        assert health["metrics"]["total_queries"] == 0

        await orchestrator.shutdown()

    async def test_degraded_health(self):
        orchestrator = _orchestrator()
        orchestrator.register_agent("a", "A", make_handle(MockLLM(healthy=False)), CHAT_CAPS)
        await orchestrator.initialize()
        health = await orchestrator.health()
        assert health["status"] == "degraded"

    async def test_unknown_agent_lifecycle(self):
        orchestrator = _orchestrator()
        with pytest.raises(KeyError):
            orchestrator.deactivate_agent("nobody")
        with pytest.raises(KeyError):
            await orchestrator.activate_agent("nobody")
