"""Tool registry: the only path through which engines reach tools."""

import logging

from agent.tools.base import BaseTool, ToolDefinition, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Tools available to one engine, keyed by name."""

    def __init__(self, tools: list[BaseTool] | None = None):
        self._tools: dict[str, BaseTool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            logger.info("Replacing registered tool '%s'", tool.name)
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get_tool(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def list_tools(self) -> list[ToolDefinition]:
        return [tool.get_definition() for tool in self._tools.values()]

    async def execute(self, tool_name: str, **kwargs) -> ToolResult:
        """Run a tool, folding every failure into the result.

        Engines rely on this never raising: an unknown tool, a missing
        argument or an exception inside the tool all yield ``success=False``.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            return ToolResult.failed(f"Tool not found: {tool_name}. Available: {self.names()}")

        missing = tool.get_definition().missing(kwargs)
        if missing:
            return ToolResult.failed(f"Missing required parameters: {missing}")

        try:
            return await tool.execute(**kwargs)
        except Exception as e:
            logger.warning("Tool '%s' failed: %s", tool_name, e)
            return ToolResult.failed(str(e), exception=type(e).__name__)

    async def health(self) -> dict[str, bool]:
        report = {}
        for name, tool in self._tools.items():
            try:
                report[name] = bool(await tool.health())
            except Exception as e:
                logger.warning("Tool '%s' health probe failed: %s", name, e)
                report[name] = False
        return report
