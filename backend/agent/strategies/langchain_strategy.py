"""Engine whose memory is a LangChain message list."""

import logging

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    get_buffer_string,
)

from agent.ledger import ExecutionLedger, StepCallback, StepStatus, TaskType
from agent.memory_transfer import StandardizedMemoryItem

from .base import EngineKind, ExecutionContext, ExecutionResult, Strategy

logger = logging.getLogger(__name__)

_SYSTEM_PROMPTS = {
    TaskType.RESEARCH: "You are a meticulous research assistant. Ground every claim in the observations provided.",
    TaskType.ANALYSIS: "You are a data analyst. Identify patterns, quantify where possible and state your assumptions.",
    TaskType.SYNTHESIS: "You combine material from several sources into one coherent, well-structured answer.",
    TaskType.CHAT: "You are a helpful and conversational assistant.",
}


class LangChainStrategy(Strategy):
    """Observation-then-answer engine keeping history as LangChain messages."""

    kind = EngineKind.LANGCHAIN

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._messages: list[BaseMessage] = []

    async def execute(self, context: ExecutionContext) -> ExecutionResult:
        return await self._run_task(context, self._answer)

    async def _answer(self, context: ExecutionContext, ledger: ExecutionLedger) -> ExecutionResult:
        query = context.query
        findings, sources, summaries = [], [], []

        if context.task_type != TaskType.CHAT:
            ledger.thought(f"Gathering observations for: {query}")
            findings, sources, summaries = await self._search(query, ledger)
            ledger.progress(1, 2, "Observations gathered")

        ledger.add_step("reasoning", "Composing answer")
        prompt = self._build_prompt(query, findings)
        synthesis = await self._ask(prompt, system=_SYSTEM_PROMPTS[context.task_type])
        ledger.add_step("reasoning", "Answer composed", StepStatus.COMPLETED)
        ledger.progress(2, 2, "Answer ready")

        self._remember(query, synthesis)
        return ExecutionResult(
            query=query,
            findings=findings,
            sources=sources,
            synthesis=synthesis,
            confidence=0.8 if findings else 0.6,
            search_results=summaries or None,
            metadata={"observations": len(findings)},
        )

    async def chat(self, message: str, on_step: StepCallback | None = None) -> str:
        await self._ensure_initialized()
        ledger = ExecutionLedger(TaskType.CHAT, message, on_step=on_step)
        ledger.start()
        ledger.add_step("conversation", "Processing message...")
        try:
            reply = await self._ask(self._build_prompt(message), system=_SYSTEM_PROMPTS[TaskType.CHAT])
        except Exception as e:
            ledger.fail(e)
            ledger.add_step("conversation", "Chat failed", StepStatus.ERROR, {"error": str(e)})
            raise
        self._remember(message, reply)
        ledger.complete()
        ledger.add_step("conversation", "Response generated", StepStatus.COMPLETED)
        return reply

    def _build_prompt(self, query: str, observations: list[str] | None = None) -> str:
        parts = []
        recent = self._messages[-self.config.history_window:]
        if recent:
            parts.append(f"Conversation so far:\n{get_buffer_string(recent)}")
        if observations:
            parts.append("Observations:\n" + "\n".join(f"- {o}" for o in observations))
        parts.append(f"Question: {query}")
        return "\n\n".join(parts)

    def _remember(self, query: str, answer: str) -> None:
        if not self.config.enable_memory:
            return
        self._messages.append(HumanMessage(content=query))
        self._messages.append(AIMessage(content=answer))

    # ---- Memory ----

    def get_memory(self) -> list[BaseMessage]:
        return list(self._messages)

    def clear_memory(self) -> None:
        self._messages = []

    async def load_standardized_memory(self, item: StandardizedMemoryItem) -> None:
        extras = {**item.metadata, "timestamp": item.timestamp}
        if item.role == "user":
            message = HumanMessage(content=item.content, additional_kwargs=extras)
        elif item.role == "assistant":
            message = AIMessage(content=item.content, additional_kwargs=extras)
        else:
            message = SystemMessage(content=item.content, additional_kwargs=extras)
        self._messages.append(message)
