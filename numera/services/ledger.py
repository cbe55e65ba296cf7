"""Ledger collaborator interface and implementations."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Literal, Protocol

TransactionType = Literal["INCOME", "EXPENSE"]
InvoiceStatus = Literal["DRAFT", "SENT", "PAID"]


@dataclass
class Client:
    """Client business model."""

    id: str
    name: str
    email: str | None = None


@dataclass
class Transaction:
    """A ledger movement."""

    id: str
    booked_on: date
    description: str
    amount: Decimal
    type: TransactionType


@dataclass
class InvoiceRow:
    """One invoice line."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate: Decimal  # percent

    @property
    def total_excluding_vat(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def vat(self) -> Decimal:
        return self.total_excluding_vat * self.vat_rate / Decimal(100)


@dataclass
class Invoice:
    """Invoice business model."""

    id: str
    number: str
    client: Client
    issue_date: date
    due_date: date | None
    status: InvoiceStatus
    rows: list[InvoiceRow] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        """VAT-inclusive total."""
        return sum((row.total_excluding_vat + row.vat for row in self.rows), Decimal(0))


class LedgerService(Protocol):
    """Interface for the financial records store behind the tools."""

    async def list_transactions(self, start: date, end: date) -> list[Transaction]:
        """Get all transactions dated within ``[start, end]``."""
        ...

    async def list_invoices(self) -> list[Invoice]:
        """Get all invoices."""
        ...

    async def list_clients(self) -> list[Client]:
        """Get all clients."""
        ...

    async def mark_invoice_paid(self, invoice_id: str) -> Invoice:
        """Set an invoice's status to PAID.

        Raises:
            LookupError: If the invoice does not exist
            ValueError: If the invoice is already paid
        """
        ...

    async def add_transaction(
        self, booked_on: date, description: str, amount: Decimal, type: TransactionType
    ) -> Transaction:
        """Record a new transaction."""
        ...

    async def update_transaction(
        self,
        transaction_id: str,
        booked_on: date | None = None,
        description: str | None = None,
        amount: Decimal | None = None,
        type: TransactionType | None = None,
    ) -> Transaction:
        """Change the given fields of an existing transaction; None leaves a field as is.

        Raises:
            LookupError: If the transaction does not exist
        """
        ...


class InMemoryLedgerService:
    """In-memory ledger

    Uses demo records stored in memory, dated relative to today.
    """

    def __init__(self, today: date | None = None):
        """Initialize with demo ledger data."""
        self.today = today or datetime.now(UTC).date()
        self.clients = self._create_demo_clients()
        self.transactions = self._create_demo_transactions()
        self._transaction_sequence = len(self.transactions)
        self.invoices = self._create_demo_invoices()

    async def list_transactions(self, start: date, end: date) -> list[Transaction]:
        """Get transactions within a date range."""
        return [t for t in self.transactions if start <= t.booked_on <= end]

    async def list_invoices(self) -> list[Invoice]:
        """Get all invoices."""
        return list(self.invoices)

    async def list_clients(self) -> list[Client]:
        """Get all clients."""
        return list(self.clients)

    async def mark_invoice_paid(self, invoice_id: str) -> Invoice:
        """Mark an invoice as paid."""
        invoice = next((inv for inv in self.invoices if inv.id == invoice_id), None)
        if invoice is None:
            raise LookupError(f"Invoice {invoice_id} not found")
        if invoice.status == "PAID":
            raise ValueError(f"Invoice {invoice.number} is already paid")
        invoice.status = "PAID"
        return invoice

    async def add_transaction(
        self, booked_on: date, description: str, amount: Decimal, type: TransactionType
    ) -> Transaction:
        """Record a new transaction with the next sequential id."""
        self._transaction_sequence += 1
        transaction = Transaction(f"TRX_{self._transaction_sequence:03d}", booked_on, description, amount, type)
        self.transactions.append(transaction)
        return transaction

    async def update_transaction(
        self,
        transaction_id: str,
        booked_on: date | None = None,
        description: str | None = None,
        amount: Decimal | None = None,
        type: TransactionType | None = None,
    ) -> Transaction:
        """Update a transaction in place."""
        transaction = next((t for t in self.transactions if t.id == transaction_id), None)
        if transaction is None:
            raise LookupError(f"Transaction {transaction_id} not found")
        if booked_on is not None:
            transaction.booked_on = booked_on
        if description is not None:
            transaction.description = description
        if amount is not None:
            transaction.amount = amount
        if type is not None:
            transaction.type = type
        return transaction

    def _create_demo_clients(self) -> list[Client]:
        return [
            Client(id="CLI_001", name="Atelier Dupont", email="compta@atelier-dupont.fr"),
            Client(id="CLI_002", name="Boulangerie Martin", email="contact@boulangerie-martin.fr"),
            Client(id="CLI_003", name="Studio Lumiere", email=None),
        ]

    def _create_demo_transactions(self) -> list[Transaction]:
        month_start = self.today.replace(day=1)
        previous_month = (month_start - timedelta(days=1)).replace(day=1)
        return [
            Transaction("TRX_001", month_start, "Invoice INV-2024-001 payment", Decimal("2400.00"), "INCOME"),
            Transaction("TRX_002", month_start, "Office rent", Decimal("850.00"), "EXPENSE"),
            Transaction("TRX_003", self.today, "Consulting - Studio Lumiere", Decimal("1200.00"), "INCOME"),
            Transaction("TRX_004", self.today, "Software subscriptions", Decimal("129.90"), "EXPENSE"),
            Transaction("TRX_005", previous_month, "Invoice INV-2023-044 payment", Decimal("3100.00"), "INCOME"),
            Transaction("TRX_006", previous_month, "Accountant fees", Decimal("300.00"), "EXPENSE"),
        ]

    def _create_demo_invoices(self) -> list[Invoice]:
        dupont, martin, lumiere = self.clients
        return [
            Invoice(
                id="INV_001",
                number="INV-2024-001",
                client=dupont,
                issue_date=self.today - timedelta(days=60),
                due_date=self.today - timedelta(days=30),
                status="PAID",
                rows=[InvoiceRow("Website redesign", Decimal(1), Decimal("2000.00"), Decimal(20))],
            ),
            Invoice(
                id="INV_002",
                number="INV-2024-002",
                client=martin,
                issue_date=self.today - timedelta(days=50),
                due_date=self.today - timedelta(days=20),
                status="SENT",
                rows=[
                    InvoiceRow("Logo design", Decimal(1), Decimal("600.00"), Decimal(20)),
                    InvoiceRow("Business cards", Decimal(2), Decimal("75.00"), Decimal(20)),
                ],
            ),
            Invoice(
                id="INV_003",
                number="INV-2024-003",
                client=lumiere,
                issue_date=self.today - timedelta(days=40),
                due_date=self.today - timedelta(days=5),
                status="SENT",
                rows=[InvoiceRow("Photo retouching", Decimal(10), Decimal("45.00"), Decimal(20))],
            ),
            Invoice(
                id="INV_004",
                number="INV-2024-004",
                client=dupont,
                issue_date=self.today,
                due_date=self.today + timedelta(days=30),
                status="SENT",
                rows=[InvoiceRow("Maintenance plan", Decimal(3), Decimal("150.00"), Decimal(20))],
            ),
        ]


ledger_service = InMemoryLedgerService()


def get_ledger_service() -> LedgerService:
    """Get the process-wide ledger service."""
    return ledger_service
