"""Tools registry for managing assistant tools."""

from numera.errors import ToolRegistrationError
from numera.models.llm import LLMToolDefinition
from numera.services.ledger import LedgerService, get_ledger_service
from numera.tools.base import ToolDefinition
from numera.tools.financial_stats import create_get_stats_tool
from numera.tools.invoices import create_list_overdue_invoices_tool, create_mark_invoice_paid_tool
from numera.tools.search import create_search_records_tool
from numera.tools.transactions import create_add_transaction_tool, create_update_transaction_tool
from numera.utils.logging import get_logger

logger = get_logger(__name__)


class ToolsRegistry:
    """Static mapping from tool name to its definition.

    Populated at start-up, then frozen. A frozen registry is read-only and is
    shared by every conversation.
    """

    def __init__(self, tools: list[ToolDefinition] | None = None):
        self._tools: dict[str, ToolDefinition] = {}
        self._frozen = False
        for tool in tools or []:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        if self._frozen:
            raise ToolRegistrationError(f"Registry is frozen, cannot register {tool.name}")
        if tool.name in self._tools:
            raise ToolRegistrationError(f"Tool {tool.name} is already registered")
        self._tools[tool.name] = tool

    def freeze(self) -> "ToolsRegistry":
        """Make the registry read-only."""
        self._frozen = True
        logger.info(f"Tools registry frozen with {len(self._tools)} tools: {', '.join(self._tools)}")
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def get_llm_tool_definitions(self) -> list[LLMToolDefinition]:
        """Tool definitions in registration order, as sent to the completion service."""
        return [tool.to_llm_tool() for tool in self._tools.values()]

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools


def create_financial_registry(ledger_service: LedgerService) -> ToolsRegistry:
    """Build the frozen registry of financial tools."""
    registry = ToolsRegistry(
        [
            create_get_stats_tool(ledger_service),
            create_list_overdue_invoices_tool(ledger_service),
            create_mark_invoice_paid_tool(ledger_service),
            create_search_records_tool(ledger_service),
            create_add_transaction_tool(ledger_service),
            create_update_transaction_tool(ledger_service),
        ]
    )
    return registry.freeze()


_tools_registry: ToolsRegistry | None = None


def get_tools_registry(ledger_service: LedgerService | None = None) -> ToolsRegistry:
    """Get or create tools registry instance."""
    global _tools_registry

    if _tools_registry is None:
        _tools_registry = create_financial_registry(ledger_service or get_ledger_service())

    return _tools_registry
