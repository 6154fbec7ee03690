"""Tests for the provider payload mappers."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.sellersync.sync.adapters.field_mapper import (
    EbayOrderMapper,
    WaveInvoiceMapper,
    map_each,
    token_grant_from_response,
)
from src.sellersync.sync.domain.entities import ExternalInvoice, ExternalOrder, UnmappedRecord
from src.sellersync.sync.domain.money import Money


class TestEbayOrderMapper:
    """Tests for EbayOrderMapper."""

    @pytest.fixture
    def mapper(self):
        return EbayOrderMapper()

    @pytest.fixture
    def raw_order_full(self):
        """Order as returned by the Fulfillment API."""
        return {
            "orderId": "12-34567-89012",
            "legacyOrderId": "110123456789-0",
            "creationDate": "2024-03-01T12:30:00.000Z",
            "orderFulfillmentStatus": "IN_PROGRESS",
            "orderPaymentStatus": "PAID",
            "buyer": {"username": "buyer_1"},
            "pricingSummary": {
                "total": {"value": "55.90", "currency": "GBP"},
                "deliveryCost": {"value": "4.95", "currency": "GBP"},
                "fee": {"value": "7.12"},
            },
            "lineItems": [
                {
                    "lineItemId": "li-1",
                    "legacyItemId": "2950000001",
                    "title": "Vintage Lamp",
                    "sku": "LAMP-01",
                    "quantity": 2,
                },
                {"lineItemId": "li-2", "title": "Bulb"},
            ],
        }

    def test_map_full_order(self, mapper, raw_order_full):
        order = mapper.map_to_entity(raw_order_full)

        assert order.external_id == "12-34567-89012"
        assert order.legacy_order_id == "110123456789-0"
        assert order.order_date == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
        assert order.buyer_username == "buyer_1"
        assert order.payment_status == "PAID"
        assert order.fulfillment_status == "IN_PROGRESS"
        assert order.total == Money(Decimal("55.90"), "GBP")
        assert order.delivery_cost == Money(Decimal("4.95"), "GBP")
        assert order.raw_data is raw_order_full

    def test_fee_without_currency_uses_total_currency(self, mapper, raw_order_full):
        order = mapper.map_to_entity(raw_order_full)

        assert order.final_value_fee == Money(Decimal("7.12"), "GBP")

    def test_line_items(self, mapper, raw_order_full):
        order = mapper.map_to_entity(raw_order_full)

        first, second = order.line_items
        assert (first.title, first.sku, first.quantity, first.item_id) == ("Vintage Lamp", "LAMP-01", 2, "2950000001")
        assert second.sku is None
        assert second.quantity == 1

    def test_map_minimal_order(self, mapper):
        order = mapper.map_to_entity({"orderId": "1"})

        assert order.order_date is None
        assert order.buyer_username == "Unknown"
        assert order.total == Money(Decimal("0"), "USD")
        assert order.delivery_cost is None
        assert order.line_items == []

    def test_unparseable_values_fall_back(self, mapper):
        order = mapper.map_to_entity(
            {
                "orderId": "1",
                "creationDate": "not a date",
                "pricingSummary": {"total": {"value": "abc", "currency": "USD"}},
            }
        )

        assert order.order_date is None
        assert order.total.is_zero

    def test_map_identity(self, mapper):
        identity = mapper.map_identity({"userId": "u-1", "username": "seller"})

        assert (identity.account_id, identity.display_name) == ("u-1", "seller")


class TestWaveInvoiceMapper:
    """Tests for WaveInvoiceMapper."""

    @pytest.fixture
    def mapper(self):
        return WaveInvoiceMapper()

    @pytest.fixture
    def raw_invoice(self):
        """Invoice node from the Wave GraphQL API."""
        return {
            "id": "QnVzaW5lc3M6MTIz",
            "invoiceNumber": "1042",
            "status": "PARTIAL",
            "invoiceDate": "2024-03-02",
            "dueDate": "2024-04-01",
            "memo": "Thanks",
            "viewUrl": "https://next.waveapps.com/invoice/1042",
            "customer": {"id": "cust-1", "name": "Acme Ltd"},
            "total": {"value": "300.00", "currency": {"code": "CAD"}},
            "amountDue": {"value": "200.00", "currency": {"code": "CAD"}},
            "amountPaid": {"value": "100.00", "currency": {"code": "CAD"}},
            "items": [
                {
                    "description": "Design work",
                    "quantity": 3,
                    "unitPrice": {"value": "100.00"},
                    "total": {"value": "300.00"},
                }
            ],
            "payments": [
                {"id": "pay-1", "paymentDate": "2024-03-10", "amount": {"value": "100.00"}, "paymentMethod": "CASH"},
                {"id": "pay-2", "amount": {"value": "5.00"}},
            ],
        }

    def test_map_invoice(self, mapper, raw_invoice):
        invoice = mapper.map_to_entity(raw_invoice)

        assert invoice.external_id == "QnVzaW5lc3M6MTIz"
        assert invoice.invoice_number == "1042"
        assert invoice.status == "PARTIAL"
        assert invoice.invoice_date == datetime(2024, 3, 2, tzinfo=timezone.utc)
        assert invoice.due_date == datetime(2024, 4, 1, tzinfo=timezone.utc)
        assert invoice.customer_name == "Acme Ltd"
        assert invoice.total == Money(Decimal("300.00"), "CAD")
        assert invoice.amount_due == Money(Decimal("200.00"), "CAD")
        assert invoice.amount_paid == Money(Decimal("100.00"), "CAD")

    def test_items_take_invoice_currency(self, mapper, raw_invoice):
        [item] = mapper.map_to_entity(raw_invoice).items

        assert item.description == "Design work"
        assert item.quantity == 3
        assert item.unit_price == Money(Decimal("100.00"), "CAD")

    def test_payment_without_date_is_dropped(self, mapper, raw_invoice):
        payments = mapper.map_to_entity(raw_invoice).payments

        assert [p.external_id for p in payments] == ["pay-1"]
        assert payments[0].amount == Money(Decimal("100.00"), "CAD")
        assert payments[0].payment_method == "CASH"

    def test_minimal_invoice_defaults(self, mapper):
        invoice = mapper.map_to_entity({"id": "inv-1"})

        assert invoice.status == "DRAFT"
        assert invoice.customer_name == "Unknown"
        assert invoice.invoice_date is None
        assert invoice.payments == []

    def test_map_business(self, mapper):
        business = mapper.map_business({"id": "biz-1", "name": "Studio"})

        assert (business.account_id, business.display_name) == ("biz-1", "Studio")


class TestMapEach:
    """One bad payload becomes an UnmappedRecord; the rest still map."""

    def test_bad_currency_code_is_kept_in_place(self):
        raw_orders = [
            {"orderId": "A", "pricingSummary": {"total": {"value": "20.00", "currency": "USD"}}},
            {"orderId": "B", "pricingSummary": {"total": {"value": "20.00", "currency": "EURO"}}},
            {"orderId": "C"},
        ]

        records = map_each(EbayOrderMapper().map_to_entity, raw_orders, "orderId")

        assert [type(r) for r in records] == [ExternalOrder, UnmappedRecord, ExternalOrder]
        assert records[1].external_id == "B"
        assert "EURO" in records[1].error
        assert records[1].raw_data is raw_orders[1]

    def test_string_currency_in_wave_payload(self):
        raw_invoices = [
            {"id": "inv-1", "total": {"value": "10.00", "currency": "USD"}},
            {"id": "inv-2", "total": {"value": "10.00", "currency": {"code": "USD"}}},
        ]

        records = map_each(WaveInvoiceMapper().map_to_entity, raw_invoices, "id")

        assert isinstance(records[0], UnmappedRecord)
        assert records[0].external_id == "inv-1"
        assert isinstance(records[1], ExternalInvoice)

    def test_payload_without_id(self):
        [record] = map_each(EbayOrderMapper().map_to_entity, [{"pricingSummary": "n/a"}], "orderId")

        assert record.external_id == "unknown"


class TestTokenGrantFromResponse:
    def test_full_response(self):
        grant = token_grant_from_response(
            {
                "access_token": "v^1.1#abc",
                "expires_in": 7200,
                "refresh_token": "v^1.1#refresh",
                "refresh_token_expires_in": 47304000,
                "token_type": "User Access Token",
            }
        )

        assert grant.access_token == "v^1.1#abc"
        assert grant.expires_in == 7200
        assert grant.refresh_token == "v^1.1#refresh"
        assert grant.refresh_token_expires_in == 47304000

    def test_refresh_response_without_rotation(self):
        grant = token_grant_from_response({"access_token": "new", "expires_in": "3600"})

        assert grant.expires_in == 3600
        assert grant.refresh_token is None
        assert grant.refresh_token_expires_in is None

    def test_missing_expiry_defaults_to_two_hours(self):
        assert token_grant_from_response({"access_token": "x"}).expires_in == 7200
