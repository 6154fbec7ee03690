"""Use cases layer - Business logic orchestration for sync operations.

This layer contains use case classes that orchestrate the sync workflow:
- Keep provider tokens usable (CredentialLifecycleManager)
- Fetch records from a provider (via IExternalRecordFetcher ports)
- Reconcile them into local storage (OrderReconciler/InvoiceReconciler)
- Connect, disconnect and report account status

Use cases depend only on ports, not concrete implementations.
"""

from .account_status import DisconnectAccountUseCase, GetConnectionStatusUseCase
from .connect_account import ConnectEbayAccountUseCase, ConnectWaveAccountUseCase
from .credential_lifecycle import CredentialLifecycleManager, token_id
from .order_adjustments import LinkOrderToInventoryUseCase, UpdateShippingCostUseCase
from .reconcile_invoices import InvoiceReconciler
from .reconcile_orders import OrderReconciler
from .sync_connected_accounts import (
    BatchSyncSummary,
    SyncConnectedAccountsUseCase,
    TokenRefreshSummary,
)
from .sync_records import SyncRecordsUseCase

__all__ = [
    "CredentialLifecycleManager",
    "token_id",
    "OrderReconciler",
    "InvoiceReconciler",
    "SyncRecordsUseCase",
    "ConnectEbayAccountUseCase",
    "ConnectWaveAccountUseCase",
    "DisconnectAccountUseCase",
    "GetConnectionStatusUseCase",
    "LinkOrderToInventoryUseCase",
    "UpdateShippingCostUseCase",
    "SyncConnectedAccountsUseCase",
    "BatchSyncSummary",
    "TokenRefreshSummary",
]
