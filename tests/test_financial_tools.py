"""Tests for the financial tools and the demo ledger."""

import pytest
from scripted_completion import ScriptedToolCall, ScriptedTurn

from numera.agent.emitter import StreamEmitter
from numera.errors import ToolErrorKind
from numera.models.messages import ToolCallPart
from numera.tools.executor import ToolExecutor
from numera.tools.financial_stats import create_get_stats_tool, month_bounds
from numera.tools.invoices import create_list_overdue_invoices_tool, create_mark_invoice_paid_tool
from numera.tools.registry import ToolsRegistry
from numera.tools.search import create_search_records_tool
from numera.tools.transactions import create_add_transaction_tool, create_update_transaction_tool


@pytest.fixture
def executor(ledger, today):
    """Executor over the financial tools, pinned to a fixed date."""
    registry = ToolsRegistry(
        [
            create_get_stats_tool(ledger, today=today),
            create_list_overdue_invoices_tool(ledger, today=today),
            create_mark_invoice_paid_tool(ledger),
            create_search_records_tool(ledger),
            create_add_transaction_tool(ledger, today=today),
            create_update_transaction_tool(ledger),
        ]
    ).freeze()
    return ToolExecutor(registry)


async def run(executor, name, arguments=None, call_id="c1"):
    return await executor.execute(ToolCallPart(id=call_id, name=name, arguments=arguments or {}))


class TestGetStats:
    """Tests for monthly statistics."""

    def test_month_bounds(self):
        """Test month boundaries, including leap years."""
        assert [d.isoformat() for d in month_bounds(2028, 2)] == ["2028-02-01", "2028-02-29"]

    @pytest.mark.asyncio
    async def test_current_month(self, executor):
        """Test that the current month is used by default."""
        outcome = await run(executor, "get_stats")

        assert outcome.output == {
            "revenue": 3600.0,
            "expense": 979.9,
            "net": 2620.1,
            "month": "October 2026",
            "transaction_count": 4,
        }

    @pytest.mark.asyncio
    async def test_previous_month(self, executor):
        """Test statistics for an explicit month."""
        outcome = await run(executor, "get_stats", {"month": 9, "year": 2026})

        assert outcome.output["revenue"] == 3100.0
        assert outcome.output["expense"] == 300.0
        assert outcome.output["month"] == "September 2026"

    @pytest.mark.asyncio
    async def test_empty_month(self, executor):
        """Test a month without transactions."""
        outcome = await run(executor, "get_stats", {"month": 1, "year": 2020})

        assert outcome.output["net"] == 0.0
        assert outcome.output["transaction_count"] == 0

    @pytest.mark.asyncio
    async def test_invalid_month(self, executor):
        """Test that out-of-range months are rejected."""
        outcome = await run(executor, "get_stats", {"month": 13})

        assert outcome.kind == ToolErrorKind.INVALID_ARGUMENTS
        assert outcome.details[0]["loc"] == ["month"]


class TestOverdueInvoices:
    """Tests for the overdue invoice listing."""

    @pytest.mark.asyncio
    async def test_lists_unpaid_past_due_most_overdue_first(self, executor):
        """Test that only unpaid, past-due invoices are listed."""
        outcome = await run(executor, "list_overdue_invoices")

        assert [(item["id"], item["days_overdue"]) for item in outcome.output] == [("INV_002", 20), ("INV_003", 5)]
        assert outcome.output[0]["total_amount"] == 900.0
        assert outcome.output[0]["client_name"] == "Boulangerie Martin"
        assert outcome.output[1]["client_email"] is None
        assert outcome.output[1]["due_date"] == "2026-10-13"

    @pytest.mark.asyncio
    async def test_limit(self, executor):
        """Test the result limit."""
        outcome = await run(executor, "list_overdue_invoices", {"limit": 1})

        assert [item["id"] for item in outcome.output] == ["INV_002"]


class TestMarkInvoicePaid:
    """Tests for recording payments."""

    @pytest.mark.asyncio
    async def test_marks_invoice_paid(self, executor, ledger):
        """Test that the invoice status changes and leaves the overdue list."""
        outcome = await run(executor, "mark_invoice_paid", {"invoice_id": "INV_002"})

        assert outcome.output == {"id": "INV_002", "number": "INV-2024-002", "status": "PAID", "total_amount": 900.0}
        assert next(inv for inv in ledger.invoices if inv.id == "INV_002").status == "PAID"

        overdue = await run(executor, "list_overdue_invoices", call_id="c2")
        assert [item["id"] for item in overdue.output] == ["INV_003"]

    @pytest.mark.asyncio
    async def test_already_paid(self, executor):
        """Test that paying a paid invoice fails."""
        outcome = await run(executor, "mark_invoice_paid", {"invoice_id": "INV_001"})

        assert outcome.kind == ToolErrorKind.EXECUTION_FAILED
        assert outcome.message == "Invoice INV-2024-001 is already paid"

    @pytest.mark.asyncio
    async def test_unknown_invoice(self, executor):
        """Test that a missing invoice fails."""
        outcome = await run(executor, "mark_invoice_paid", {"invoice_id": "INV_999"})

        assert outcome.kind == ToolErrorKind.EXECUTION_FAILED
        assert outcome.message == "Invoice INV_999 not found"

    @pytest.mark.asyncio
    async def test_malformed_invoice_id(self, executor, ledger):
        """Test that an id not matching the pattern never reaches the ledger."""
        outcome = await run(executor, "mark_invoice_paid", {"invoice_id": "INV-2024-002"})

        assert outcome.kind == ToolErrorKind.INVALID_ARGUMENTS
        assert next(inv for inv in ledger.invoices if inv.id == "INV_002").status == "SENT"


class TestSearchRecords:
    """Tests for global search."""

    @pytest.mark.asyncio
    async def test_search_across_kinds(self, executor):
        """Test that a query matches clients, invoices and transactions."""
        outcome = await run(executor, "search_records", {"query": "Studio"})

        assert [client["id"] for client in outcome.output["clients"]] == ["CLI_003"]
        assert [invoice["id"] for invoice in outcome.output["invoices"]] == ["INV_003"]
        assert [transaction["id"] for transaction in outcome.output["transactions"]] == ["TRX_003"]

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, executor):
        """Test case-insensitive matching on emails and descriptions."""
        by_email = await run(executor, "search_records", {"query": "BOULANGERIE-MARTIN.FR"}, call_id="c1")
        by_description = await run(executor, "search_records", {"query": "invoice"}, call_id="c2")

        assert [client["name"] for client in by_email.output["clients"]] == ["Boulangerie Martin"]
        assert [t["id"] for t in by_description.output["transactions"]] == ["TRX_001", "TRX_005"]
        assert by_description.output["invoices"] == []

    @pytest.mark.asyncio
    async def test_short_query_returns_nothing(self, executor):
        """Test that single-character queries match nothing."""
        outcome = await run(executor, "search_records", {"query": " a "})

        assert outcome.output == {"clients": [], "invoices": [], "transactions": []}


class TestTransactions:
    """Tests for recording and correcting transactions."""

    @pytest.mark.asyncio
    async def test_add_transaction_counts_in_stats(self, executor):
        """Test that a recorded expense shows up in this month's statistics."""
        outcome = await run(
            executor, "add_transaction", {"description": "Printer ink", "amount": "120.10", "type": "EXPENSE"}
        )

        assert outcome.output == {
            "id": "TRX_007",
            "date": "2026-10-18",
            "description": "Printer ink",
            "amount": 120.1,
            "type": "EXPENSE",
        }

        stats = await run(executor, "get_stats", call_id="c2")
        assert stats.output["expense"] == 1100.0
        assert stats.output["net"] == 2500.0
        assert stats.output["transaction_count"] == 5

    @pytest.mark.asyncio
    async def test_add_transaction_with_date(self, executor):
        """Test that an explicit date books the transaction in that month."""
        await run(
            executor,
            "add_transaction",
            {"description": "Late client payment", "amount": 400, "type": "INCOME", "transaction_date": "2026-09-30"},
        )

        stats = await run(executor, "get_stats", {"month": 9, "year": 2026}, call_id="c2")
        assert stats.output["revenue"] == 3500.0

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(self, executor, ledger):
        """Test that zero or negative amounts are rejected before the ledger is touched."""
        outcome = await run(executor, "add_transaction", {"description": "Refund", "amount": -20, "type": "INCOME"})

        assert outcome.kind == ToolErrorKind.INVALID_ARGUMENTS
        assert outcome.details[0]["loc"] == ["amount"]
        assert len(ledger.transactions) == 6

    @pytest.mark.asyncio
    async def test_update_transaction(self, executor, ledger):
        """Test that only the given fields change."""
        outcome = await run(executor, "update_transaction", {"transaction_id": "TRX_004", "amount": 200})

        assert outcome.output["amount"] == 200.0
        assert outcome.output["description"] == "Software subscriptions"

        stats = await run(executor, "get_stats", call_id="c2")
        assert stats.output["expense"] == 1050.0

    @pytest.mark.asyncio
    async def test_update_requires_a_change(self, executor):
        """Test that an update without any field is invalid."""
        outcome = await run(executor, "update_transaction", {"transaction_id": "TRX_004"})

        assert outcome.kind == ToolErrorKind.INVALID_ARGUMENTS

    @pytest.mark.asyncio
    async def test_update_unknown_transaction(self, executor):
        """Test that a missing transaction fails."""
        outcome = await run(executor, "update_transaction", {"transaction_id": "TRX_999", "type": "INCOME"})

        assert outcome.kind == ToolErrorKind.EXECUTION_FAILED
        assert outcome.message == "Transaction TRX_999 not found"

    @pytest.mark.asyncio
    async def test_recording_announces_data_change(self, make_service, ledger, today):
        """Test that a recorded transaction emits data_changed and later steps see it."""
        registry = ToolsRegistry(
            [
                create_get_stats_tool(ledger, today=today),
                create_add_transaction_tool(ledger, today=today),
                create_update_transaction_tool(ledger),
            ]
        ).freeze()
        service = make_service(
            [
                ScriptedTurn(
                    tool_calls=[
                        ScriptedToolCall(
                            "add_transaction", {"description": "Printer ink", "amount": 120.1, "type": "EXPENSE"}
                        )
                    ]
                ),
                ScriptedTurn(
                    tool_calls=[ScriptedToolCall("update_transaction", {"transaction_id": "TRX_007", "amount": 20.1})]
                ),
                ScriptedTurn(tool_calls=[ScriptedToolCall("get_stats")]),
                ScriptedTurn(text="Recorded. Expenses this month are 1 000,00 €."),
            ],
            tools=registry,
        )
        emitter = StreamEmitter()

        conversation = await service.create_controller([], "I bought printer ink for 120,10 €", emitter).run()
        events = [event async for event in emitter]

        changed = [event for event in events if event.type == "data_changed"]
        assert [(event.step, event.tool) for event in changed] == [(0, "add_transaction"), (1, "update_transaction")]
        [stats] = conversation.steps[2].tool_results
        assert stats.output["expense"] == 1000.0
