"""Invoice follow-up tools: overdue listing and payment recording."""

from datetime import UTC, date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from numera.services.ledger import LedgerService
from numera.tools.base import ToolDefinition


class ListOverdueInvoicesInput(BaseModel):
    """Input schema for listing overdue invoices."""

    model_config = ConfigDict(extra="forbid")

    limit: int = Field(10, ge=1, le=50, description="Maximum number of invoices to return")


class MarkInvoicePaidInput(BaseModel):
    """Input schema for recording an invoice payment."""

    model_config = ConfigDict(extra="forbid")

    invoice_id: str = Field(
        ...,
        description="The exact invoice ID (e.g., INV_002), as returned by list_overdue_invoices or search_records",
        pattern=r"^INV_[0-9]{3}$",
        examples=["INV_002", "INV_003"],
    )


def create_list_overdue_invoices_tool(ledger_service: LedgerService, today: date | None = None) -> ToolDefinition:
    async def list_overdue_invoices_handler(params: ListOverdueInvoicesInput) -> list[dict[str, Any]]:
        current = today or datetime.now(UTC).date()
        invoices = await ledger_service.list_invoices()

        overdue = [
            {
                "id": invoice.id,
                "number": invoice.number,
                "client_name": invoice.client.name,
                "client_email": invoice.client.email,
                "total_amount": float(invoice.total_amount),
                "due_date": invoice.due_date.isoformat(),
                "days_overdue": (current - invoice.due_date).days,
            }
            for invoice in invoices
            if invoice.status != "PAID" and invoice.due_date is not None and invoice.due_date < current
        ]
        overdue.sort(key=lambda item: item["days_overdue"], reverse=True)
        return overdue[: params.limit]

    return ToolDefinition(
        name="list_overdue_invoices",
        description=(
            "List unpaid invoices whose due date has passed, most overdue first.\n\n"
            "Each entry has the invoice ID (needed for mark_invoice_paid), number, client, "
            "VAT-inclusive total in euros, due date and days overdue."
        ),
        input_schema_class=ListOverdueInvoicesInput,
        handler=list_overdue_invoices_handler,
        idempotent=True,
    )


def create_mark_invoice_paid_tool(ledger_service: LedgerService) -> ToolDefinition:
    async def mark_invoice_paid_handler(params: MarkInvoicePaidInput) -> dict[str, Any]:
        invoice = await ledger_service.mark_invoice_paid(params.invoice_id)
        return {
            "id": invoice.id,
            "number": invoice.number,
            "status": invoice.status,
            "total_amount": float(invoice.total_amount),
        }

    return ToolDefinition(
        name="mark_invoice_paid",
        description=(
            "Record that an invoice has been paid. This changes the company's financial records.\n\n"
            "Only call this when the user explicitly confirms the payment was received. "
            "Fails if the invoice does not exist or is already paid."
        ),
        input_schema_class=MarkInvoicePaidInput,
        handler=mark_invoice_paid_handler,
        mutating=True,
    )
