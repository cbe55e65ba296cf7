"""Global search across clients, invoices and transactions."""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from numera.services.ledger import LedgerService
from numera.tools.base import ToolDefinition

MIN_QUERY_LENGTH = 2
MAX_RESULTS_PER_KIND = 5


class SearchRecordsInput(BaseModel):
    """Input schema for the search tool."""

    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., max_length=100, description="Text to look for (case-insensitive)")


def create_search_records_tool(ledger_service: LedgerService) -> ToolDefinition:
    async def search_records_handler(params: SearchRecordsInput) -> dict[str, list[dict[str, Any]]]:
        query = params.query.strip().lower()
        results: dict[str, list[dict[str, Any]]] = {"clients": [], "invoices": [], "transactions": []}
        if len(query) < MIN_QUERY_LENGTH:
            return results

        for client in await ledger_service.list_clients():
            if query in client.name.lower() or query in (client.email or "").lower():
                results["clients"].append({"id": client.id, "name": client.name, "email": client.email})

        for invoice in await ledger_service.list_invoices():
            if query in invoice.number.lower() or query in invoice.client.name.lower():
                results["invoices"].append(
                    {
                        "id": invoice.id,
                        "number": invoice.number,
                        "client_name": invoice.client.name,
                        "status": invoice.status,
                        "total_amount": float(invoice.total_amount),
                    }
                )

        for transaction in await ledger_service.list_transactions(date.min, date.max):
            if query in transaction.description.lower():
                results["transactions"].append(
                    {
                        "id": transaction.id,
                        "date": transaction.booked_on.isoformat(),
                        "description": transaction.description,
                        "amount": float(transaction.amount),
                        "type": transaction.type,
                    }
                )

        return {kind: matches[:MAX_RESULTS_PER_KIND] for kind, matches in results.items()}

    return ToolDefinition(
        name="search_records",
        description=(
            "Search clients (name, email), invoices (number, client name) and transactions "
            "(description). Returns at most 5 matches of each kind. Queries shorter than 2 "
            "characters return nothing."
        ),
        input_schema_class=SearchRecordsInput,
        handler=search_records_handler,
        idempotent=True,
    )
