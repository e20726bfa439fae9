"""Plugin registry dispatching pdfguard tool invocations."""

from __future__ import annotations

from typing import Iterable

from ...core.utils import get_logger
from .interfaces import BaseTool, ToolContext

LOGGER = get_logger("pdfguard.tools")


class ToolRegistry:
    """Maps tool names onto :class:`BaseTool` subclasses."""

    def __init__(self) -> None:
        self._tools: dict[str, type[BaseTool]] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def register(self, name: str, tool_class: type[BaseTool]) -> None:
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered")
        self._tools[name] = tool_class

    def create(self, name: str, context: ToolContext) -> BaseTool:
        try:
            tool_class = self._tools[name]
        except KeyError as exc:
            raise KeyError(f"Tool '{name}' is not registered") from exc
        return tool_class(context)

    def run(self, name: str, context: ToolContext) -> object:
        """Create and run ``name``; the result is also stored in ``context.resources``."""

        LOGGER.debug("Running tool %s on %s", name, context.input_path)
        result = self.create(name, context).run()
        context.resources["result"] = result
        return result

    def names(self) -> Iterable[str]:
        return sorted(self._tools)


registry = ToolRegistry()


def register_tool(name: str):
    def decorator(cls: type[BaseTool]) -> type[BaseTool]:
        cls.name = name
        registry.register(name, cls)
        return cls

    return decorator


__all__ = ["ToolRegistry", "registry", "register_tool", "ToolContext", "BaseTool"]
