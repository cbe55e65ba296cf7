"""Tools for the CFO assistant."""

from numera.tools.base import ToolDefinition
from numera.tools.executor import ToolExecutor
from numera.tools.registry import ToolsRegistry, create_financial_registry, get_tools_registry

__all__ = ["ToolDefinition", "ToolExecutor", "ToolsRegistry", "create_financial_registry", "get_tools_registry"]
