"""Execution ledger: per-call task record and ordered progress steps."""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)

StepCallback = Callable[["ExecutionStep"], None]
ThoughtCallback = Callable[[str], None]
ProgressCallback = Callable[[dict], None]


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskType(str, Enum):
    RESEARCH = "research"
    ANALYSIS = "analysis"
    SYNTHESIS = "synthesis"
    CHAT = "chat"


@dataclass
class ExecutionStep:
    """A single progress entry of one execution."""
    step: str
    description: str = ""
    status: StepStatus = StepStatus.RUNNING
    data: Any = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    index: int = 0
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "index": self.index,
            "step": self.step,
            "status": self.status.value,
            "description": self.description,
            "data": self.data,
            "timestamp": self.timestamp,
        }


@dataclass
class TaskRecord:
    """Record of the task an execution is working on."""
    task_type: TaskType
    query: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: TaskStatus = TaskStatus.PENDING
    created_at: float = field(default_factory=time.time)
    started_at: float | None = None
    completed_at: float | None = None
    error: str | None = None

    @property
    def duration_ms(self) -> int | None:
        if self.started_at and self.completed_at:
            return int((self.completed_at - self.started_at) * 1000)
        return None

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class ExecutionLedger:
    """Ordered step log owned by exactly one execute() call.

    Each step is appended and handed to ``on_step`` synchronously, once.
    Nothing is buffered and no state is shared between calls, which is
    what makes live progress streaming safe under concurrent requests.
    Retrying a failed task is not the ledger's job.
    """

    def __init__(
        self,
        task_type: TaskType,
        query: str,
        on_step: StepCallback | None = None,
        on_thought: ThoughtCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self.task = TaskRecord(task_type=task_type, query=query)
        self._steps: list[ExecutionStep] = []
        self._on_step = on_step
        self._on_thought = on_thought
        self._on_progress = on_progress

    # ---- Task lifecycle ----

    def start(self) -> TaskRecord:
        if self.task.status != TaskStatus.PENDING:
            raise ValueError(f"Task {self.task.id} cannot start from {self.task.status.value}")
        self.task.status = TaskStatus.RUNNING
        self.task.started_at = time.time()
        return self.task

    def complete(self) -> TaskRecord:
        self._finish(TaskStatus.COMPLETED)
        return self.task

    def fail(self, error: BaseException | str) -> TaskRecord:
        self._finish(TaskStatus.FAILED)
        self.task.error = str(error)
        return self.task

    def _finish(self, status: TaskStatus) -> None:
        if self.task.status != TaskStatus.RUNNING:
            raise ValueError(
                f"Task {self.task.id} cannot move to {status.value} from {self.task.status.value}"
            )
        self.task.status = status
        self.task.completed_at = time.time()

    # ---- Steps ----

    def add_step(
        self,
        step: str,
        description: str = "",
        status: StepStatus = StepStatus.RUNNING,
        data: Any = None,
    ) -> ExecutionStep:
        """Append a step and deliver it to the caller's callback."""
        entry = ExecutionStep(
            step=step,
            description=description,
            status=status,
            data=data,
            index=len(self._steps),
        )
        self._steps.append(entry)
        self._emit(self._on_step, entry)
        return entry

    def thought(self, text: str) -> None:
        self._emit(self._on_thought, text)

    def progress(self, current: int, total: int, message: str = "") -> None:
        self._emit(self._on_progress, {"current": current, "total": total, "message": message})

    @property
    def steps(self) -> list[ExecutionStep]:
        return list(self._steps)

    def drain(self) -> list[ExecutionStep]:
        """Hand the steps over to the result and empty the ledger."""
        steps, self._steps = self._steps, []
        return steps

    @staticmethod
    def _emit(callback: Callable | None, payload: Any) -> None:
        if callback is None:
            return
        try:
            callback(payload)
        except Exception as e:
            logger.warning("Progress callback raised, ignoring: %s", e)
