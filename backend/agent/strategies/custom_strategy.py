"""Hand-built engine with per-task-type pipelines and dict-based chat history."""

import logging
from datetime import datetime, timezone

from agent.ledger import ExecutionLedger, StepCallback, StepStatus, TaskType
from agent.memory_transfer import StandardizedMemoryItem

from .base import EngineKind, ExecutionContext, ExecutionResult, Strategy

logger = logging.getLogger(__name__)

ANALYSIS_TOOL = "python_executor"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CustomStrategy(Strategy):
    """Research / analysis / synthesis / chat pipelines built step by step.

    Memory is a list of ``{"role", "content", "timestamp", "metadata"}`` dicts.
    """

    kind = EngineKind.CUSTOM

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._history: list[dict] = []

    async def execute(self, context: ExecutionContext) -> ExecutionResult:
        handlers = {
            TaskType.RESEARCH: self._research,
            TaskType.ANALYSIS: self._analysis,
            TaskType.SYNTHESIS: self._synthesis,
            TaskType.CHAT: self._chat_task,
        }
        return await self._run_task(context, handlers[context.task_type])

    # ---- Task pipelines ----

    async def _research(self, context: ExecutionContext, ledger: ExecutionLedger) -> ExecutionResult:
        ledger.add_step("planning", "Planning research approach")
        plan = await self._plan(context.query)
        ledger.add_step("planning", "Research plan created", StepStatus.COMPLETED, {"plan": plan})

        findings, sources, summaries = [], [], []
        for i, sub_question in enumerate(plan, start=1):
            ledger.progress(i, len(plan), sub_question)
            found, srcs, hits = await self._search(sub_question, ledger)
            if not found:
                found = [await self._ask(f"Answer briefly and factually: {sub_question}")]
            findings.extend(found)
            sources.extend(s for s in srcs if s not in sources)
            summaries.extend(hits)

        ledger.add_step("synthesis", "Synthesizing research findings")
        synthesis = await self._ask(
            f"Research question: {context.query}\n\nFindings:\n"
            + "\n".join(f"- {f}" for f in findings)
            + "\n\nWrite a concise, well-sourced synthesis."
        )
        ledger.add_step("synthesis", "Synthesis complete", StepStatus.COMPLETED)

        self._remember(context.query, synthesis, task_type=TaskType.RESEARCH)
        return ExecutionResult(
            query=context.query,
            findings=findings,
            sources=sources,
            synthesis=synthesis,
            confidence=0.8 if sources else 0.6,
            search_results=summaries or None,
            metadata={"plan": plan},
        )

    async def _analysis(self, context: ExecutionContext, ledger: ExecutionLedger) -> ExecutionResult:
        ledger.add_step("query_analysis", "Determining analysis type")
        analysis_type = "quantitative" if any(
            k in context.query.lower() for k in ("data", "number", "statistic", "trend", "%")
        ) else "qualitative"
        ledger.add_step("query_analysis", f"Analysis type: {analysis_type}", StepStatus.COMPLETED)

        findings, sources, summaries = await self._search(context.query, ledger)

        ledger.add_step("analysis", "Analyzing gathered material")
        analysis = await self._ask(
            f"Perform a {analysis_type} analysis of: {context.query}\n\nMaterial:\n"
            + ("\n".join(f"- {f}" for f in findings) or "(no external material)")
        )
        findings.append(analysis)
        ledger.add_step("analysis", "Analysis complete", StepStatus.COMPLETED)

        if analysis_type == "quantitative" and self.tools.has(ANALYSIS_TOOL):
            ledger.add_step("computation", "Running computation")
            computed = await self.tools.execute(ANALYSIS_TOOL, code=analysis)
            if computed.success:
                findings.append(str(computed.data))
                ledger.add_step("computation", "Computation complete", StepStatus.COMPLETED)
            else:
                ledger.add_step("computation", f"Computation failed: {computed.error}", StepStatus.ERROR)

        ledger.add_step("synthesis", "Summarizing analysis")
        synthesis = await self._ask(
            f"Summarize the key insights for '{context.query}':\n" + "\n".join(findings)
        )
        ledger.add_step("synthesis", "Summary complete", StepStatus.COMPLETED)

        self._remember(context.query, synthesis, task_type=TaskType.ANALYSIS)
        return ExecutionResult(
            query=context.query,
            findings=findings,
            sources=sources,
            synthesis=synthesis,
            confidence=0.75,
            search_results=summaries or None,
            metadata={"analysis_type": analysis_type},
        )

    async def _synthesis(self, context: ExecutionContext, ledger: ExecutionLedger) -> ExecutionResult:
        ledger.add_step("memory_search", "Searching conversation memory")
        terms = {w for w in context.query.lower().split() if len(w) > 3}
        recalled = [
            m["content"] for m in self._history
            if terms and any(t in m["content"].lower() for t in terms)
        ]
        ledger.add_step(
            "memory_search", f"Recalled {len(recalled)} memory items", StepStatus.COMPLETED,
            {"count": len(recalled)},
        )

        findings, sources, summaries = await self._search(context.query, ledger)
        materials = recalled + findings

        ledger.add_step("synthesis", "Generating synthesis")
        synthesis = await self._ask(
            f"Create a structured synthesis for: {context.query}\n\nSource material:\n"
            + ("\n".join(f"- {m}" for m in materials) or "(none)")
        )
        ledger.add_step("synthesis", "Synthesis generated", StepStatus.COMPLETED)

        self._remember(context.query, synthesis, task_type=TaskType.SYNTHESIS)
        return ExecutionResult(
            query=context.query,
            findings=materials,
            sources=sources,
            synthesis=synthesis,
            confidence=0.7 if materials else 0.5,
            search_results=summaries or None,
            metadata={"memory_items": len(recalled)},
        )

    async def _chat_task(self, context: ExecutionContext, ledger: ExecutionLedger) -> ExecutionResult:
        ledger.add_step("conversation", "Processing message...")
        reply = await self._reply(context.query)
        ledger.add_step("conversation", "Response generated", StepStatus.COMPLETED)
        return ExecutionResult(query=context.query, synthesis=reply, confidence=0.7)

    async def _plan(self, query: str) -> list[str]:
        try:
            plan = await self.llm.generate_structured(
                f"Break this research question into at most {self.config.max_iterations} "
                f"focused sub-questions, as a JSON array of strings: {query}"
            )
        except ValueError as e:
            logger.debug("Plan parsing failed, researching the query directly: %s", e)
            return [query]
        if isinstance(plan, dict):
            plan = plan.get("steps") or plan.get("questions") or []
        if not isinstance(plan, list):
            return [query]
        steps = [str(s) for s in plan if s][: self.config.max_iterations]
        return steps or [query]

    # ---- Chat ----

    async def chat(self, message: str, on_step: StepCallback | None = None) -> str:
        await self._ensure_initialized()
        ledger = ExecutionLedger(TaskType.CHAT, message, on_step=on_step)
        ledger.start()
        ledger.add_step("conversation", "Processing message...")
        try:
            reply = await self._reply(message)
        except Exception as e:
            ledger.fail(e)
            ledger.add_step("conversation", "Chat failed", StepStatus.ERROR, {"error": str(e)})
            raise
        ledger.complete()
        ledger.add_step("conversation", "Response generated", StepStatus.COMPLETED)
        return reply

    async def _reply(self, message: str) -> str:
        recent = "\n".join(
            f"{m['role']}: {m['content']}" for m in self._history[-self.config.history_window:]
        )
        prompt = (
            (f"Recent conversation:\n{recent}\n\n" if recent else "")
            + f"Current user message: {message}\n\n"
            "Provide a helpful, natural response."
        )
        reply = await self._ask(prompt)
        self._remember(message, reply, task_type=TaskType.CHAT)
        return reply

    def _remember(self, query: str, answer: str, task_type: TaskType) -> None:
        if not self.config.enable_memory:
            return
        meta = {"task_type": task_type.value}
        self._history.append({"role": "user", "content": query, "timestamp": _now(), "metadata": meta})
        self._history.append({"role": "assistant", "content": answer, "timestamp": _now(), "metadata": meta})

    # ---- Memory ----

    def get_memory(self) -> list[dict]:
        return [dict(m) for m in self._history]

    def clear_memory(self) -> None:
        self._history = []

    async def load_standardized_memory(self, item: StandardizedMemoryItem) -> None:
        self._history.append({
            "role": item.role,
            "content": item.content,
            "timestamp": item.timestamp,
            "metadata": dict(item.metadata),
        })
