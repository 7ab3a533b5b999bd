"""Contract for tools an execution engine may call (search, scrape, execute, ...)."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal

ParamKind = Literal["string", "integer", "number", "boolean", "array", "object"]


@dataclass(frozen=True)
class ToolParameter:
    name: str
    kind: ParamKind = "string"
    description: str = ""
    required: bool = True
    default: Any = None

    def schema(self) -> dict:
        entry = {"type": self.kind, "description": self.description}
        if self.default is not None:
            entry["default"] = self.default
        return entry


@dataclass
class ToolDefinition:
    """What a tool does and which arguments it takes."""
    name: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)
    category: str = "general"

    @property
    def required(self) -> list[str]:
        return [p.name for p in self.parameters if p.required]

    def missing(self, arguments: dict) -> list[str]:
        return [name for name in self.required if name not in arguments]

    def to_schema(self) -> dict:
        """Capability description reported by ``Strategy.get_tool_capabilities``."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "inputSchema": {
                "type": "object",
                "properties": {p.name: p.schema() for p in self.parameters},
                "required": self.required,
            },
        }


@dataclass
class ToolResult:
    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None, **metadata) -> "ToolResult":
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def failed(cls, error: str, **metadata) -> "ToolResult":
        return cls(success=False, error=error, metadata=metadata)


class BaseTool(ABC):
    """A tool is described by its definition and invoked with keyword arguments."""

    @abstractmethod
    def get_definition(self) -> ToolDefinition:
        ...

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        ...

    async def health(self) -> bool:
        return True

    @property
    def name(self) -> str:
        return self.get_definition().name
