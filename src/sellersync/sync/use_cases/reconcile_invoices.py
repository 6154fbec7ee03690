"""Invoice reconciliation - create, update or skip one fetched Wave invoice.

Payments attached to the invoice are upserted by provider payment id
after the invoice itself. Invoices carry no SKU, so nothing is linked
to inventory.
"""

import logging
from datetime import datetime

from ...api.exceptions import RecordReconciliationError
from ..domain.entities import (
    ExternalInvoice,
    ExternalPayment,
    Invoice,
    InvoicePayment,
    ReconcileAction,
    ReconcileOutcome,
    utc_now,
)
from ..domain.ports import IInvoiceRepository, IRecordReconciler
from ..domain.status_mapping import INVOICE_STATUSES
from .reconcile_orders import ensure_single_currency

logger = logging.getLogger(__name__)


class InvoiceReconciler(IRecordReconciler):
    """Reconciles fetched Wave invoices (and their payments)."""

    def __init__(self, invoice_repo: IInvoiceRepository):
        self.invoices = invoice_repo

    async def reconcile(self, record: ExternalInvoice, user_id: str) -> ReconcileOutcome:
        self._validate(record)
        now = utc_now()

        invoice = await self.invoices.get_by_external_id(record.external_id, user_id)
        if invoice is not None:
            self._apply_update(invoice, record, now)
            await self.invoices.update(invoice)
            action = ReconcileAction.UPDATED
        elif await self.invoices.was_tombstoned(record.external_id, user_id):
            logger.debug(f"Skipping deleted invoice {record.external_id} for user {user_id}")
            return ReconcileOutcome(ReconcileAction.SKIPPED)
        else:
            invoice = self._create(record, user_id, now)
            await self.invoices.add(invoice)
            action = ReconcileAction.CREATED

        payments_synced = await self._sync_payments(invoice, record.payments, user_id, now)
        return ReconcileOutcome(action, payments_synced=payments_synced)

    def _validate(self, record: ExternalInvoice) -> None:
        if not record.external_id or not record.external_id.strip():
            raise RecordReconciliationError("Invoice has no invoice id")
        if record.invoice_date is None:
            raise RecordReconciliationError(
                "Invoice has no invoice date",
                external_id=record.external_id,
            )
        ensure_single_currency(
            record.external_id,
            record.total,
            record.amount_due,
            record.amount_paid,
            *(payment.amount for payment in record.payments),
        )
        for payment in record.payments:
            if not payment.external_id:
                raise RecordReconciliationError(
                    "Invoice payment has no payment id",
                    external_id=record.external_id,
                )

    def _create(self, record: ExternalInvoice, user_id: str, now: datetime) -> Invoice:
        # Only the first line item is kept
        first = record.items[0] if record.items else None

        return Invoice(
            user_id=user_id,
            external_id=record.external_id,
            invoice_number=record.invoice_number,
            invoice_date=record.invoice_date,
            due_date=record.due_date,
            customer_id=record.customer_id,
            customer_name=record.customer_name or "Unknown",
            status=INVOICE_STATUSES.parse(record.status),
            total=record.total,
            amount_due=record.amount_due,
            amount_paid=record.amount_paid,
            memo=record.memo,
            view_url=record.view_url,
            line_description=first.description if first else None,
            last_synced_at=now,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def _apply_update(invoice: Invoice, record: ExternalInvoice, now: datetime) -> None:
        invoice.status = INVOICE_STATUSES.parse(record.status)
        invoice.total = record.total
        invoice.amount_due = record.amount_due
        invoice.amount_paid = record.amount_paid
        invoice.memo = record.memo
        invoice.view_url = record.view_url
        invoice.last_synced_at = now
        invoice.updated_at = now

    async def _sync_payments(
        self,
        invoice: Invoice,
        payments: list[ExternalPayment],
        user_id: str,
        now: datetime,
    ) -> int:
        """Upsert payments by provider id; returns how many were new."""
        added = 0
        for fetched in payments:
            payment = await self.invoices.get_payment(fetched.external_id, user_id)
            if payment is not None:
                payment.amount = fetched.amount
                payment.payment_date = fetched.payment_date
                payment.payment_method = fetched.payment_method
                payment.notes = fetched.notes
                payment.last_synced_at = now
                await self.invoices.update_payment(payment)
                continue

            await self.invoices.add_payment(
                InvoicePayment(
                    user_id=user_id,
                    invoice_id=invoice.id,
                    external_id=fetched.external_id,
                    payment_date=fetched.payment_date,
                    amount=fetched.amount,
                    payment_method=fetched.payment_method,
                    notes=fetched.notes,
                    last_synced_at=now,
                )
            )
            added += 1
        return added
