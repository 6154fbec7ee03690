"""PostgreSQL repository adapter for invoices and invoice payments."""

import logging
from typing import TYPE_CHECKING, Any, Optional

from ...api.database import database_connection
from ..domain.entities import Invoice, InvoicePayment, InvoiceStatus
from ..domain.money import Money
from ..domain.ports import IInvoiceRepository, IUnitOfWork
from .postgres_order_repo import amount_of, money_from_row

if TYPE_CHECKING:
    import asyncpg

logger = logging.getLogger(__name__)

_INVOICE_COLUMNS = """
    id, user_id, external_id, invoice_number, customer_id, customer_name,
    invoice_date, due_date, status, currency, total, amount_due, amount_paid,
    memo, view_url, line_description, last_synced_at, created_at, updated_at
"""

_PAYMENT_COLUMNS = """
    id, user_id, invoice_id, external_id, payment_date, amount, currency,
    payment_method, notes, last_synced_at
"""


class PostgresInvoiceRepository(IInvoiceRepository):
    """PostgreSQL implementation of IInvoiceRepository."""

    def __init__(self, pool: "asyncpg.Pool", unit_of_work: IUnitOfWork):
        self.pool = pool
        self.unit_of_work = unit_of_work

    # ----------------------------------------
    # Invoices
    # ----------------------------------------

    async def get_by_external_id(self, external_id: str, user_id: str) -> Optional[Invoice]:
        async with database_connection(self.pool) as conn:
            row = await conn.fetchrow(
                f"SELECT {_INVOICE_COLUMNS} FROM invoices "
                "WHERE external_id = $1 AND user_id = $2 AND deleted_at IS NULL",
                external_id,
                user_id,
            )
        return self._row_to_invoice(row) if row else None

    async def was_tombstoned(self, external_id: str, user_id: str) -> bool:
        async with database_connection(self.pool) as conn:
            return await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM invoices
                    WHERE external_id = $1 AND user_id = $2 AND deleted_at IS NOT NULL
                )
                """,
                external_id,
                user_id,
            )

    async def add(self, invoice: Invoice) -> None:
        async def write(conn):
            await conn.execute(
                f"""
                INSERT INTO invoices ({_INVOICE_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10,
                        $11, $12, $13, $14, $15, $16, $17, $18, $19)
                """,
                *self._invoice_to_record(invoice),
            )

        self.unit_of_work.register(("invoice", invoice.id, "insert"), write)

    async def update(self, invoice: Invoice) -> None:
        async def write(conn):
            await conn.execute(
                """
                UPDATE invoices SET
                    status = $2,
                    total = $3,
                    amount_due = $4,
                    amount_paid = $5,
                    memo = $6,
                    view_url = $7,
                    last_synced_at = $8,
                    updated_at = $9
                WHERE id = $1
                """,
                invoice.id,
                invoice.status.value,
                invoice.total.amount,
                amount_of(invoice.amount_due),
                amount_of(invoice.amount_paid),
                invoice.memo,
                invoice.view_url,
                invoice.last_synced_at,
                invoice.updated_at,
            )

        if self.unit_of_work.is_pending(("invoice", invoice.id, "insert")):
            return
        self.unit_of_work.register(("invoice", invoice.id), write)

    # ----------------------------------------
    # Payments
    # ----------------------------------------

    async def get_payment(self, external_id: str, user_id: str) -> Optional[InvoicePayment]:
        async with database_connection(self.pool) as conn:
            row = await conn.fetchrow(
                f"SELECT {_PAYMENT_COLUMNS} FROM invoice_payments "
                "WHERE external_id = $1 AND user_id = $2",
                external_id,
                user_id,
            )
        return self._row_to_payment(row) if row else None

    async def add_payment(self, payment: InvoicePayment) -> None:
        async def write(conn):
            await conn.execute(
                f"""
                INSERT INTO invoice_payments ({_PAYMENT_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                """,
                payment.id,
                payment.user_id,
                payment.invoice_id,
                payment.external_id,
                payment.payment_date,
                payment.amount.amount,
                payment.amount.currency,
                payment.payment_method,
                payment.notes,
                payment.last_synced_at,
            )

        self.unit_of_work.register(("invoice_payment", payment.id, "insert"), write)

    async def update_payment(self, payment: InvoicePayment) -> None:
        async def write(conn):
            await conn.execute(
                """
                UPDATE invoice_payments SET
                    payment_date = $2,
                    amount = $3,
                    currency = $4,
                    payment_method = $5,
                    notes = $6,
                    last_synced_at = $7
                WHERE id = $1
                """,
                payment.id,
                payment.payment_date,
                payment.amount.amount,
                payment.amount.currency,
                payment.payment_method,
                payment.notes,
                payment.last_synced_at,
            )

        if self.unit_of_work.is_pending(("invoice_payment", payment.id, "insert")):
            return
        self.unit_of_work.register(("invoice_payment", payment.id), write)

    # ----------------------------------------
    # Row mapping
    # ----------------------------------------

    @staticmethod
    def _invoice_to_record(invoice: Invoice) -> tuple[Any, ...]:
        """Tuple ordering matches _INVOICE_COLUMNS."""
        return (
            invoice.id,
            invoice.user_id,
            invoice.external_id,
            invoice.invoice_number,
            invoice.customer_id,
            invoice.customer_name,
            invoice.invoice_date,
            invoice.due_date,
            invoice.status.value,
            invoice.total.currency,
            invoice.total.amount,
            amount_of(invoice.amount_due),
            amount_of(invoice.amount_paid),
            invoice.memo,
            invoice.view_url,
            invoice.line_description,
            invoice.last_synced_at,
            invoice.created_at,
            invoice.updated_at,
        )

    @staticmethod
    def _row_to_invoice(row) -> Invoice:
        currency = row["currency"]
        return Invoice(
            id=row["id"],
            user_id=row["user_id"],
            external_id=row["external_id"],
            invoice_number=row["invoice_number"],
            customer_id=row["customer_id"],
            customer_name=row["customer_name"],
            invoice_date=row["invoice_date"],
            due_date=row["due_date"],
            status=InvoiceStatus(row["status"]),
            total=Money(row["total"], currency),
            amount_due=money_from_row(row["amount_due"], currency),
            amount_paid=money_from_row(row["amount_paid"], currency),
            memo=row["memo"],
            view_url=row["view_url"],
            line_description=row["line_description"],
            last_synced_at=row["last_synced_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_payment(row) -> InvoicePayment:
        return InvoicePayment(
            id=row["id"],
            user_id=row["user_id"],
            invoice_id=row["invoice_id"],
            external_id=row["external_id"],
            payment_date=row["payment_date"],
            amount=Money(row["amount"], row["currency"]),
            payment_method=row["payment_method"],
            notes=row["notes"],
            last_synced_at=row["last_synced_at"],
        )
