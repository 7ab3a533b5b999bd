"""Minimal single-call engine; memory is a list of plain strings."""

from agent.ledger import ExecutionLedger, StepCallback, StepStatus, TaskType
from agent.memory_transfer import StandardizedMemoryItem

from .base import EngineKind, ExecutionContext, ExecutionResult, Strategy


class SimpleStrategy(Strategy):
    """One LLM call per request, no planning and no tools."""

    kind = EngineKind.SIMPLE

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._lines: list[str] = []

    async def execute(self, context: ExecutionContext) -> ExecutionResult:
        return await self._run_task(context, self._respond)

    async def _respond(self, context: ExecutionContext, ledger: ExecutionLedger) -> ExecutionResult:
        ledger.add_step("generation", "Generating response")
        answer = await self._complete(context.query)
        ledger.add_step("generation", "Response generated", StepStatus.COMPLETED)
        return ExecutionResult(query=context.query, synthesis=answer, confidence=0.5)

    async def chat(self, message: str, on_step: StepCallback | None = None) -> str:
        await self._ensure_initialized()
        ledger = ExecutionLedger(TaskType.CHAT, message, on_step=on_step)
        ledger.start()
        ledger.add_step("conversation", "Processing message...")
        try:
            reply = await self._complete(message)
        except Exception as e:
            ledger.fail(e)
            ledger.add_step("conversation", "Chat failed", StepStatus.ERROR, {"error": str(e)})
            raise
        ledger.complete()
        ledger.add_step("conversation", "Response generated", StepStatus.COMPLETED)
        return reply

    async def _complete(self, text: str) -> str:
        context = "\n".join(self._lines[-self.config.history_window:])
        prompt = f"{context}\n\n{text}" if context else text
        answer = await self._ask(prompt)
        if self.config.enable_memory:
            self._lines.extend([text, answer])
        return answer

    def get_memory(self) -> list[str]:
        return list(self._lines)

    def clear_memory(self) -> None:
        self._lines = []

    async def load_standardized_memory(self, item: StandardizedMemoryItem) -> None:
        self._lines.append(item.content)
