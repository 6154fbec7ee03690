"""Tests for InvoiceReconciler."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.sellersync.api.exceptions import RecordReconciliationError
from src.sellersync.sync.domain.entities import (
    ExternalInvoiceItem,
    ExternalPayment,
    InvoiceStatus,
    ReconcileAction,
)
from src.sellersync.sync.domain.money import Money
from src.sellersync.sync.use_cases.reconcile_invoices import InvoiceReconciler

NOW_PAID = datetime(2024, 3, 5, tzinfo=timezone.utc)

USER = "user-1"


def payment(external_id: str, amount: str, currency: str = "USD") -> ExternalPayment:
    return ExternalPayment(
        external_id=external_id,
        payment_date=NOW_PAID,
        amount=Money(Decimal(amount), currency),
        payment_method="BANK_TRANSFER",
    )


@pytest.fixture
def reconciler(invoice_repo):
    return InvoiceReconciler(invoice_repo)


class TestInvoiceReconciler:
    async def test_creates_invoice(self, reconciler, invoice_repo, unit_of_work, make_invoice):
        record = make_invoice(items=[ExternalInvoiceItem(description="Consulting"), ExternalInvoiceItem(description="Extra")])

        outcome = await reconciler.reconcile(record, USER)
        await unit_of_work.commit()

        assert outcome.action == ReconcileAction.CREATED
        [invoice] = invoice_repo.rows.values()
        assert invoice.status == InvoiceStatus.SENT
        assert invoice.customer_name == "Acme"
        assert invoice.total == Money(Decimal("250.00"), "USD")
        assert invoice.line_description == "Consulting"

    async def test_defaults(self, reconciler, invoice_repo, unit_of_work, make_invoice):
        await reconciler.reconcile(make_invoice(status=None, customer_name=None), USER)
        await unit_of_work.commit()

        [invoice] = invoice_repo.rows.values()
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.customer_name == "Unknown"

    async def test_second_reconcile_updates(self, reconciler, invoice_repo, unit_of_work, make_invoice):
        await reconciler.reconcile(make_invoice(), USER)
        await unit_of_work.commit()

        outcome = await reconciler.reconcile(
            make_invoice(status="PAID", amount_paid=Money(Decimal("250.00"), "USD")),
            USER,
        )
        await unit_of_work.commit()

        assert outcome.action == ReconcileAction.UPDATED
        [invoice] = invoice_repo.rows.values()
        assert invoice.is_paid is True
        assert invoice.amount_paid == Money(Decimal("250.00"), "USD")

    async def test_soft_deleted_invoice_is_skipped(self, reconciler, invoice_repo, unit_of_work, make_invoice):
        await reconciler.reconcile(make_invoice(), USER)
        await unit_of_work.commit()
        [stored] = invoice_repo.rows.values()
        invoice_repo.soft_delete(stored.id)

        outcome = await reconciler.reconcile(make_invoice(payments=[payment("p1", "10.00")]), USER)

        assert outcome.action == ReconcileAction.SKIPPED
        assert unit_of_work.has_pending is False

    async def test_payments_upserted_by_provider_id(self, reconciler, invoice_repo, unit_of_work, make_invoice):
        first = await reconciler.reconcile(make_invoice(payments=[payment("p1", "100.00")]), USER)
        await unit_of_work.commit()
        second = await reconciler.reconcile(
            make_invoice(payments=[payment("p1", "120.00"), payment("p2", "30.00")]),
            USER,
        )
        await unit_of_work.commit()

        assert first.payments_synced == 1
        assert second.payments_synced == 1
        amounts = sorted(p.amount.amount for p in invoice_repo.payments.values())
        assert amounts == [Decimal("30.00"), Decimal("120.00")]
        [invoice] = invoice_repo.rows.values()
        assert all(p.invoice_id == invoice.id for p in invoice_repo.payments.values())

    async def test_missing_invoice_date(self, reconciler, make_invoice):
        with pytest.raises(RecordReconciliationError) as exc_info:
            await reconciler.reconcile(make_invoice(invoice_date=None), USER)

        assert exc_info.value.external_id == "inv-1"

    async def test_payment_currency_must_match(self, reconciler, make_invoice):
        record = make_invoice(payments=[payment("p1", "10.00", "CAD")])

        with pytest.raises(RecordReconciliationError, match="mixes currencies"):
            await reconciler.reconcile(record, USER)

    async def test_payment_without_id_rejected(self, reconciler, make_invoice):
        record = make_invoice(payments=[payment("", "10.00")])

        with pytest.raises(RecordReconciliationError, match="no payment id"):
            await reconciler.reconcile(record, USER)
