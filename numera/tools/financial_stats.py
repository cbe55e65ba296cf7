"""Monthly revenue and expense statistics tool."""

import calendar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from numera.services.ledger import LedgerService
from numera.tools.base import ToolDefinition


class GetStatsInput(BaseModel):
    """Input schema for the statistics tool."""

    model_config = ConfigDict(extra="forbid")

    month: int | None = Field(
        None,
        ge=1,
        le=12,
        description="Month number (1-12). Defaults to the current month.",
        examples=[1, 10],
    )
    year: int | None = Field(
        None,
        ge=2000,
        le=2100,
        description="Four digit year. Defaults to the current year.",
        examples=[2024],
    )


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def create_get_stats_tool(ledger_service: LedgerService, today: date | None = None) -> ToolDefinition:
    async def get_stats_handler(params: GetStatsInput) -> dict[str, Any]:
        current = today or datetime.now(UTC).date()
        year = params.year or current.year
        month = params.month or current.month
        start, end = month_bounds(year, month)

        transactions = await ledger_service.list_transactions(start, end)
        revenue = sum((t.amount for t in transactions if t.type == "INCOME"), Decimal(0))
        expense = sum((t.amount for t in transactions if t.type == "EXPENSE"), Decimal(0))

        return {
            "revenue": float(revenue),
            "expense": float(expense),
            "net": float(revenue - expense),
            "month": f"{calendar.month_name[month]} {year}",
            "transaction_count": len(transactions),
        }

    return ToolDefinition(
        name="get_stats",
        description=(
            "Get revenue (income), expenses and net result for a month.\n\n"
            "Use this whenever the user asks about turnover, revenue, income, expenses, "
            "spending or profit. Without arguments it covers the current month.\n\n"
            "Returns: revenue, expense and net amounts in euros, the month label and the "
            "number of transactions counted."
        ),
        input_schema_class=GetStatsInput,
        handler=get_stats_handler,
        idempotent=True,
    )
