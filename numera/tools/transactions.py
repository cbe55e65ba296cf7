"""Transaction bookkeeping tools: recording and correcting ledger movements."""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from numera.services.ledger import LedgerService, Transaction
from numera.tools.base import ToolDefinition


class AddTransactionInput(BaseModel):
    """Input schema for recording a transaction."""

    model_config = ConfigDict(extra="forbid")

    description: str = Field(
        ..., min_length=1, max_length=200, description="What the transaction is for", examples=["Office rent"]
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=12,
        decimal_places=2,
        description="Amount in euros, always positive. The type gives the direction.",
        examples=[850.0, 49.9],
    )
    type: Literal["INCOME", "EXPENSE"] = Field(..., description="INCOME for money received, EXPENSE for money spent")
    transaction_date: date | None = Field(
        None, description="Date of the transaction (YYYY-MM-DD). Defaults to today.", examples=["2024-10-03"]
    )


class UpdateTransactionInput(BaseModel):
    """Input schema for correcting a transaction."""

    model_config = ConfigDict(extra="forbid")

    transaction_id: str = Field(
        ...,
        description="The exact transaction ID (e.g., TRX_004), as returned by search_records or add_transaction",
        pattern=r"^TRX_[0-9]{3,}$",
        examples=["TRX_004"],
    )
    description: str | None = Field(None, min_length=1, max_length=200, description="New description")
    amount: Decimal | None = Field(
        None, gt=0, max_digits=12, decimal_places=2, description="New amount in euros, always positive"
    )
    type: Literal["INCOME", "EXPENSE"] | None = Field(None, description="New direction: INCOME or EXPENSE")
    transaction_date: date | None = Field(None, description="New date (YYYY-MM-DD)")

    @model_validator(mode="after")
    def require_a_change(self) -> "UpdateTransactionInput":
        if all(
            value is None for value in (self.description, self.amount, self.type, self.transaction_date)
        ):
            raise ValueError("At least one field to change is required")
        return self


def serialize_transaction(transaction: Transaction) -> dict[str, Any]:
    return {
        "id": transaction.id,
        "date": transaction.booked_on.isoformat(),
        "description": transaction.description,
        "amount": float(transaction.amount),
        "type": transaction.type,
    }


def create_add_transaction_tool(ledger_service: LedgerService, today: date | None = None) -> ToolDefinition:
    async def add_transaction_handler(params: AddTransactionInput) -> dict[str, Any]:
        booked_on = params.transaction_date or today or datetime.now(UTC).date()
        transaction = await ledger_service.add_transaction(booked_on, params.description, params.amount, params.type)
        return serialize_transaction(transaction)

    return ToolDefinition(
        name="add_transaction",
        description=(
            "Record a new income or expense in the ledger. This changes the company's financial records.\n\n"
            "Only call this when the user asks to record a transaction and has given its amount and "
            "whether it is income or an expense. Returns the recorded transaction with its ID."
        ),
        input_schema_class=AddTransactionInput,
        handler=add_transaction_handler,
        mutating=True,
    )


def create_update_transaction_tool(ledger_service: LedgerService) -> ToolDefinition:
    async def update_transaction_handler(params: UpdateTransactionInput) -> dict[str, Any]:
        transaction = await ledger_service.update_transaction(
            params.transaction_id,
            booked_on=params.transaction_date,
            description=params.description,
            amount=params.amount,
            type=params.type,
        )
        return serialize_transaction(transaction)

    return ToolDefinition(
        name="update_transaction",
        description=(
            "Correct an existing transaction's description, amount, type or date. "
            "This changes the company's financial records.\n\n"
            "Look the transaction up with search_records first if you do not know its ID. "
            "Only the fields you pass are changed. Fails if the transaction does not exist."
        ),
        input_schema_class=UpdateTransactionInput,
        handler=update_transaction_handler,
        mutating=True,
    )
