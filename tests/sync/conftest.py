"""In-memory port implementations shared by the sync tests.

Repositories hand out copies and only change their stores when the fake
unit of work commits, so tests observe the same visibility rules as the
PostgreSQL adapters.
"""

import copy
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

import pytest

from src.sellersync.api.exceptions import ConcurrencyConflictError
from src.sellersync.sync.config import SyncConfig
from src.sellersync.sync.domain.entities import (
    AccountIdentity,
    Credential,
    ExternalInvoice,
    ExternalLineItem,
    ExternalOrder,
    ExternalPayment,
    InventoryItem,
    Invoice,
    InvoicePayment,
    MarketplaceOrder,
    ProviderKind,
    TokenGrant,
)
from src.sellersync.sync.domain.money import Money
from src.sellersync.sync.domain.ports import (
    ICredentialRepository,
    IInventoryLookup,
    IInvoiceRepository,
    IInvoicingFetcher,
    IMarketplaceFetcher,
    IOrderRepository,
    ITokenCipher,
    IUnitOfWork,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ============================================
# Unit of Work
# ============================================


class MockUnitOfWork(IUnitOfWork):
    """Applies registered zero-argument writes on commit."""

    def __init__(self, raise_error: Exception | None = None):
        self._pending: dict[tuple, Callable[[], None]] = {}
        self.raise_error = raise_error
        self.commit_count = 0
        self.rollback_count = 0

    def register(self, key: tuple, write: Any) -> None:
        self._pending[key] = write

    def is_pending(self, key: tuple) -> bool:
        return key in self._pending

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    async def commit(self) -> None:
        writes = list(self._pending.values())
        self._pending.clear()
        if self.raise_error:
            raise self.raise_error
        for write in writes:
            write()
        self.commit_count += 1

    def rollback(self) -> None:
        self._pending.clear()
        self.rollback_count += 1


# ============================================
# Repositories
# ============================================


class MockCredentialRepository(ICredentialRepository):
    """Version-checked credential store."""

    def __init__(self, unit_of_work: MockUnitOfWork):
        self.unit_of_work = unit_of_work
        self.rows: dict[tuple[str, ProviderKind], Credential] = {}
        self.update_calls = 0

    def seed(self, credential: Credential) -> Credential:
        self.rows[(credential.user_id, credential.provider)] = copy.deepcopy(credential)
        return credential

    def stored(self, user_id: str, provider: ProviderKind) -> Optional[Credential]:
        row = self.rows.get((user_id, provider))
        return copy.deepcopy(row)

    async def get(self, user_id: str, provider: ProviderKind) -> Optional[Credential]:
        return self.stored(user_id, provider)

    async def get_connected(self, provider: ProviderKind) -> list[Credential]:
        return [
            copy.deepcopy(c)
            for c in self.rows.values()
            if c.provider == provider and c.is_connected
        ]

    async def add(self, credential: Credential) -> None:
        def write():
            self.rows[(credential.user_id, credential.provider)] = copy.deepcopy(credential)

        self.unit_of_work.register(("credential", credential.id, "insert"), write)

    async def update(self, credential: Credential) -> None:
        self.update_calls += 1
        expected_version = credential.version

        def write():
            key = (credential.user_id, credential.provider)
            current = self.rows.get(key)
            if current is None or current.version != expected_version:
                raise ConcurrencyConflictError(
                    "Credential", credential.id, expected_version=expected_version
                )
            credential.version = expected_version + 1
            self.rows[key] = copy.deepcopy(credential)

        if self.unit_of_work.is_pending(("credential", credential.id, "insert")):
            return
        self.unit_of_work.register(("credential", credential.id), write)


class MockOrderRepository(IOrderRepository):
    def __init__(self, unit_of_work: MockUnitOfWork):
        self.unit_of_work = unit_of_work
        self.rows: dict[UUID, MarketplaceOrder] = {}
        self.tombstones: set[tuple[str, str]] = set()

    def live(self, user_id: str) -> list[MarketplaceOrder]:
        return [copy.deepcopy(o) for o in self.rows.values() if o.user_id == user_id]

    def soft_delete(self, order_id: UUID) -> None:
        order = self.rows.pop(order_id)
        self.tombstones.add((order.external_id, order.user_id))

    async def get_by_id(self, order_id: UUID) -> Optional[MarketplaceOrder]:
        return copy.deepcopy(self.rows.get(order_id))

    async def get_by_external_id(self, external_id: str, user_id: str) -> Optional[MarketplaceOrder]:
        for order in self.rows.values():
            if order.external_id == external_id and order.user_id == user_id:
                return copy.deepcopy(order)
        return None

    async def get_by_legacy_id(self, legacy_id: str, user_id: str) -> Optional[MarketplaceOrder]:
        for order in self.rows.values():
            if order.legacy_order_id == legacy_id and order.user_id == user_id:
                return copy.deepcopy(order)
        return None

    async def add(self, order: MarketplaceOrder) -> None:
        def write():
            self.rows[order.id] = copy.deepcopy(order)

        self.unit_of_work.register(("order", order.id, "insert"), write)

    async def update(self, order: MarketplaceOrder) -> None:
        def write():
            self.rows[order.id] = copy.deepcopy(order)

        self.unit_of_work.register(("order", order.id), write)

    async def was_tombstoned(self, external_id: str, user_id: str) -> bool:
        return (external_id, user_id) in self.tombstones


class MockInvoiceRepository(IInvoiceRepository):
    def __init__(self, unit_of_work: MockUnitOfWork):
        self.unit_of_work = unit_of_work
        self.rows: dict[UUID, Invoice] = {}
        self.payments: dict[UUID, InvoicePayment] = {}
        self.tombstones: set[tuple[str, str]] = set()

    def soft_delete(self, invoice_id: UUID) -> None:
        invoice = self.rows.pop(invoice_id)
        self.tombstones.add((invoice.external_id, invoice.user_id))

    async def get_by_external_id(self, external_id: str, user_id: str) -> Optional[Invoice]:
        for invoice in self.rows.values():
            if invoice.external_id == external_id and invoice.user_id == user_id:
                return copy.deepcopy(invoice)
        return None

    async def add(self, invoice: Invoice) -> None:
        def write():
            self.rows[invoice.id] = copy.deepcopy(invoice)

        self.unit_of_work.register(("invoice", invoice.id, "insert"), write)

    async def update(self, invoice: Invoice) -> None:
        def write():
            self.rows[invoice.id] = copy.deepcopy(invoice)

        self.unit_of_work.register(("invoice", invoice.id), write)

    async def was_tombstoned(self, external_id: str, user_id: str) -> bool:
        return (external_id, user_id) in self.tombstones

    async def get_payment(self, external_id: str, user_id: str) -> Optional[InvoicePayment]:
        for payment in self.payments.values():
            if payment.external_id == external_id and payment.user_id == user_id:
                return copy.deepcopy(payment)
        return None

    async def add_payment(self, payment: InvoicePayment) -> None:
        def write():
            self.payments[payment.id] = copy.deepcopy(payment)

        self.unit_of_work.register(("invoice_payment", payment.id, "insert"), write)

    async def update_payment(self, payment: InvoicePayment) -> None:
        def write():
            self.payments[payment.id] = copy.deepcopy(payment)

        self.unit_of_work.register(("invoice_payment", payment.id), write)


class MockInventory(IInventoryLookup):
    def __init__(self, unit_of_work: MockUnitOfWork):
        self.unit_of_work = unit_of_work
        self.items: dict[UUID, InventoryItem] = {}

    def seed(self, item: InventoryItem) -> InventoryItem:
        self.items[item.id] = copy.deepcopy(item)
        return item

    async def find_by_provider_sku(self, sku: str) -> Optional[InventoryItem]:
        for item in self.items.values():
            if item.ebay_sku == sku:
                return copy.deepcopy(item)
        return None

    async def find_by_internal_sku(self, sku: str) -> Optional[InventoryItem]:
        for item in self.items.values():
            if item.internal_sku == sku:
                return copy.deepcopy(item)
        return None

    async def get_by_id(self, item_id: UUID) -> Optional[InventoryItem]:
        return copy.deepcopy(self.items.get(item_id))

    async def update(self, item: InventoryItem) -> None:
        def write():
            self.items[item.id] = copy.deepcopy(item)

        self.unit_of_work.register(("inventory_item", item.id), write)


# ============================================
# Cipher and Fetcher
# ============================================


class MockCipher(ITokenCipher):
    """Reversible stand-in: prefixes the plaintext."""

    async def encrypt(self, plaintext: str) -> str:
        return f"enc:{plaintext}"

    async def decrypt(self, ciphertext: str) -> str:
        assert ciphertext.startswith("enc:"), f"not encrypted: {ciphertext!r}"
        return ciphertext[len("enc:"):]


class MockFetcher(IMarketplaceFetcher, IInvoicingFetcher):
    """Fetcher for either provider with call tracking."""

    def __init__(
        self,
        provider: ProviderKind = ProviderKind.EBAY,
        records: list[Any] | None = None,
        raise_error: Exception | None = None,
    ):
        self.provider = provider
        self.records = records or []
        self.raise_error = raise_error
        self.refresh_error: Exception | None = None
        self.exchange_error: Exception | None = None
        self.grant = TokenGrant(
            access_token="new-access",
            expires_in=7200,
            refresh_token="new-refresh",
            refresh_token_expires_in=47304000,
            scope="scope-a scope-b",
        )
        self.identity = AccountIdentity(account_id="seller-1", display_name="Seller One")
        self.businesses = [AccountIdentity(account_id="biz-1", display_name="Biz One")]
        self.token_valid = True

        self.fetch_calls: list[tuple] = []
        self.refresh_calls: list[str] = []
        self.exchange_calls: list[str] = []

    async def fetch_records(self, access_token, account_id, start_date, end_date):
        self.fetch_calls.append((access_token, account_id, start_date, end_date))
        if self.raise_error:
            raise self.raise_error
        return copy.deepcopy(self.records)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.refresh_error:
            raise self.refresh_error
        return self.grant

    async def exchange_authorization_code(self, authorization_code: str) -> TokenGrant:
        self.exchange_calls.append(authorization_code)
        if self.exchange_error:
            raise self.exchange_error
        return self.grant

    async def validate_token(self, access_token: str) -> bool:
        return self.token_valid

    async def get_account_identity(self, access_token: str) -> AccountIdentity:
        return self.identity

    async def list_accounts(self, access_token: str) -> list[AccountIdentity]:
        return self.businesses


# ============================================
# Fixtures
# ============================================


@pytest.fixture
def unit_of_work():
    return MockUnitOfWork()


@pytest.fixture
def credential_repo(unit_of_work):
    return MockCredentialRepository(unit_of_work)


@pytest.fixture
def order_repo(unit_of_work):
    return MockOrderRepository(unit_of_work)


@pytest.fixture
def invoice_repo(unit_of_work):
    return MockInvoiceRepository(unit_of_work)


@pytest.fixture
def inventory(unit_of_work):
    return MockInventory(unit_of_work)


@pytest.fixture
def cipher():
    return MockCipher()


@pytest.fixture
def fetcher():
    return MockFetcher(ProviderKind.EBAY)


@pytest.fixture
def wave_fetcher():
    return MockFetcher(ProviderKind.WAVE)


@pytest.fixture
def sync_config():
    return SyncConfig(window_days=30, refresh_ahead_minutes=10)


@pytest.fixture
def make_credential():
    """Factory for a connected credential with encrypted tokens."""

    def factory(
        user_id: str = "user-1",
        provider: ProviderKind = ProviderKind.EBAY,
        access_expires_in: timedelta = timedelta(hours=1),
        refresh_expires_in: Optional[timedelta] = timedelta(days=30),
        account_id: str = "seller-1",
    ) -> Credential:
        now = datetime.now(timezone.utc)
        credential = Credential(user_id=user_id, provider=provider)
        credential.connect(
            encrypted_access_token="enc:old-access",
            access_token_expires_at=now + access_expires_in,
            encrypted_refresh_token="enc:old-refresh" if refresh_expires_in is not None else None,
            refresh_token_expires_at=now + refresh_expires_in if refresh_expires_in is not None else None,
            account_id=account_id,
            account_name="Account",
        )
        return credential

    return factory


@pytest.fixture
def make_order():
    """Factory for a fetched eBay order."""

    def factory(
        external_id: str = "12-34567-89012",
        sku: Optional[str] = "SKU-1",
        total: str = "100.00",
        currency: str = "USD",
        **overrides,
    ) -> ExternalOrder:
        fields = dict(
            external_id=external_id,
            order_date=utc(2024, 3, 1, 12, 0),
            total=Money(Decimal(total), currency),
            legacy_order_id=f"legacy-{external_id}",
            buyer_username="buyer",
            line_items=[ExternalLineItem(line_item_id="li-1", item_id="item-1", title="Widget", sku=sku)],
            order_status="NOT_STARTED",
            payment_status="PAID",
            fulfillment_status="NOT_STARTED",
            delivery_cost=Money(Decimal("5.00"), currency),
            final_value_fee=Money(Decimal("13.25"), currency),
        )
        fields.update(overrides)
        return ExternalOrder(**fields)

    return factory


@pytest.fixture
def make_invoice():
    """Factory for a fetched Wave invoice."""

    def factory(
        external_id: str = "inv-1",
        total: str = "250.00",
        payments: Optional[list[ExternalPayment]] = None,
        **overrides,
    ) -> ExternalInvoice:
        fields = dict(
            external_id=external_id,
            invoice_date=utc(2024, 3, 2),
            total=Money(Decimal(total), "USD"),
            invoice_number="1001",
            status="SENT",
            customer_id="cust-1",
            customer_name="Acme",
            amount_due=Money(Decimal(total), "USD"),
            amount_paid=Money(Decimal("0"), "USD"),
            payments=payments or [],
        )
        fields.update(overrides)
        return ExternalInvoice(**fields)

    return factory
