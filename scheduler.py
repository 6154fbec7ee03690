#!/usr/bin/env python3
"""Automated Scheduler for eBay and Wave Sync.

This module provides a long-running scheduler that refreshes provider
tokens and syncs every connected account at configurable intervals.
Designed to run as the main process in a Docker container.

Architecture:
    - Simple asyncio loop with sleep (no external dependencies)
    - Graceful shutdown on SIGTERM/SIGINT
    - Configurable via environment variables
    - Health check endpoint via optional HTTP server
    - eBay orders and Wave invoices are synced independently

Environment Variables:
    SYNC_INTERVAL_MINUTES: Minutes between sync runs (default: 60)
    SYNC_EBAY: Enable eBay order sync (default: true)
    SYNC_WAVE: Enable Wave invoice sync (default: true)
    SYNC_ON_STARTUP: Run sync immediately on startup (default: true)
    HEALTH_CHECK_PORT: Port for health check endpoint (default: 8080, 0 to disable)

    eBay application credentials:
        EBAY_CLIENT_ID, EBAY_CLIENT_SECRET, EBAY_REDIRECT_URI, EBAY_ENVIRONMENT

    Token encryption:
        TOKEN_ENCRYPTION_KEY

    Database:
        DATABASE_URL

Example:
    # Run every 30 minutes, sync both providers
    SYNC_INTERVAL_MINUTES=30 python scheduler.py

    # Wave invoices only
    SYNC_EBAY=false python scheduler.py
"""
import asyncio
import logging
import os
import signal
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Local imports
from src.sellersync.api import (
    ConfigurationError,
    EbayClient,
    SellerSyncError,
    WaveClient,
    close_pool,
    create_pool,
)
from src.sellersync.sync.adapters import (
    EbayOrderFetcher,
    PgcryptoTokenCipher,
    PostgresCredentialRepository,
    PostgresInventoryRepository,
    PostgresInvoiceRepository,
    PostgresOrderRepository,
    PostgresUnitOfWork,
    WaveInvoiceFetcher,
)
from src.sellersync.sync.config import SyncConfig
from src.sellersync.sync.use_cases import (
    CredentialLifecycleManager,
    InvoiceReconciler,
    OrderReconciler,
    SyncConnectedAccountsUseCase,
    SyncRecordsUseCase,
)

# Initialize logger
logger = logging.getLogger(__name__)

# ============================================
# Configuration
# ============================================

class SchedulerConfig:
    """Configuration loaded from environment variables."""

    def __init__(self):
        self.interval_minutes = int(os.getenv("SYNC_INTERVAL_MINUTES", "60"))
        self.sync_ebay = os.getenv("SYNC_EBAY", "true").lower() == "true"
        self.sync_wave = os.getenv("SYNC_WAVE", "true").lower() == "true"
        self.sync_on_startup = os.getenv("SYNC_ON_STARTUP", "true").lower() == "true"
        self.health_check_port = int(os.getenv("HEALTH_CHECK_PORT", "8080"))
        self.database_url = os.getenv("DATABASE_URL")

    def __repr__(self):
        return (
            f"SchedulerConfig("
            f"interval={self.interval_minutes}m, "
            f"ebay={self.sync_ebay}, "
            f"wave={self.sync_wave}, "
            f"startup={self.sync_on_startup}, "
            f"health_port={self.health_check_port})"
        )


# ============================================
# Wiring
# ============================================

def build_batch_job(fetcher, reconciler_factory, pool, cipher, sync_config: SyncConfig):
    """Wire one provider's batch job onto its own unit of work."""
    unit_of_work = PostgresUnitOfWork(pool)
    credential_repo = PostgresCredentialRepository(pool, unit_of_work)
    sync_use_case = SyncRecordsUseCase(
        fetcher=fetcher,
        reconciler=reconciler_factory(unit_of_work),
        credential_repo=credential_repo,
        lifecycle=CredentialLifecycleManager(cipher, credential_repo, fetcher),
        unit_of_work=unit_of_work,
        config=sync_config,
    )
    return SyncConnectedAccountsUseCase(sync_use_case, credential_repo, unit_of_work)


async def run_provider(job: SyncConnectedAccountsUseCase) -> dict:
    """Refresh expiring tokens, then sync every connected account."""
    refresh = await job.refresh_expiring_tokens()
    summary = await job.execute()
    result = summary.to_dict()
    result["tokens_refreshed"] = refresh.refreshed
    result["token_refresh_failures"] = refresh.failed
    return result


# ============================================
# Sync Logic
# ============================================

async def run_sync(config: SchedulerConfig, pool, cipher, sync_config: SyncConfig) -> dict:
    """Run a single sync cycle for every enabled provider.

    Providers are synced one after the other; a failing provider does not
    stop the others.

    Returns:
        Dict with sync results
    """
    start_time = datetime.now(timezone.utc)
    results = {
        "started_at": start_time.isoformat(),
        "ebay": None,
        "wave": None,
        "success": False,
    }
    has_errors = False

    if config.sync_ebay:
        try:
            async with EbayClient() as client:
                job = build_batch_job(
                    EbayOrderFetcher(client),
                    lambda uow: OrderReconciler(
                        PostgresOrderRepository(pool, uow),
                        PostgresInventoryRepository(pool, uow),
                    ),
                    pool,
                    cipher,
                    sync_config,
                )
                results["ebay"] = await run_provider(job)
                logger.info("eBay sync completed")
        except Exception as e:
            error_type = type(e).__name__
            logger.error(f"eBay sync failed: {error_type}: {e}", exc_info=True)
            results["ebay"] = {"error": str(e), "error_type": error_type, "success": False}
            has_errors = True

    if config.sync_wave:
        try:
            async with WaveClient() as client:
                job = build_batch_job(
                    WaveInvoiceFetcher(client),
                    lambda uow: InvoiceReconciler(PostgresInvoiceRepository(pool, uow)),
                    pool,
                    cipher,
                    sync_config,
                )
                results["wave"] = await run_provider(job)
                logger.info("Wave sync completed")
        except Exception as e:
            error_type = type(e).__name__
            logger.error(f"Wave sync failed: {error_type}: {e}", exc_info=True)
            results["wave"] = {"error": str(e), "error_type": error_type, "success": False}
            has_errors = True

    results["success"] = not has_errors

    end_time = datetime.now(timezone.utc)
    results["completed_at"] = end_time.isoformat()
    results["duration_seconds"] = (end_time - start_time).total_seconds()
    return results


# ============================================
# Health Check Server
# ============================================

class HealthState:
    """Shared state for health checks."""

    def __init__(self):
        self.last_sync_at: Optional[datetime] = None
        self.last_sync_success: bool = False
        self.total_syncs: int = 0
        self.failed_syncs: int = 0
        self.started_at: datetime = datetime.now(timezone.utc)

    def record(self, results: dict) -> None:
        self.total_syncs += 1
        self.last_sync_at = datetime.now(timezone.utc)
        self.last_sync_success = results["success"]
        if not results["success"]:
            self.failed_syncs += 1


async def health_check_handler(reader, writer, state: HealthState):
    """Handle HTTP health check requests."""
    await reader.read(1024)

    uptime = (datetime.now(timezone.utc) - state.started_at).total_seconds()
    status = "healthy" if state.last_sync_success or state.total_syncs == 0 else "unhealthy"

    body = (
        f'{{"status": "{status}", '
        f'"uptime_seconds": {uptime:.0f}, '
        f'"total_syncs": {state.total_syncs}, '
        f'"failed_syncs": {state.failed_syncs}, '
        f'"last_sync_at": "{state.last_sync_at.isoformat() if state.last_sync_at else "never"}"}}'
    )

    http_status = 200 if status == "healthy" else 503
    response = (
        f"HTTP/1.1 {http_status} {'OK' if http_status == 200 else 'Service Unavailable'}\r\n"
        f"Content-Type: application/json\r\n"
        f"Content-Length: {len(body)}\r\n"
        f"Connection: close\r\n"
        f"\r\n"
        f"{body}"
    )

    writer.write(response.encode())
    await writer.drain()
    writer.close()
    await writer.wait_closed()


async def start_health_server(port: int, state: HealthState):
    """Start the health check HTTP server."""
    if port <= 0:
        return None

    async def handler(reader, writer):
        await health_check_handler(reader, writer, state)

    server = await asyncio.start_server(handler, "0.0.0.0", port)
    logger.info(f"Health check server listening on port {port}")
    return server


# ============================================
# Main Scheduler Loop
# ============================================

async def scheduler_loop(
    config: SchedulerConfig,
    pool,
    cipher,
    sync_config: SyncConfig,
    health_state: HealthState,
    shutdown_event: asyncio.Event,
):
    """Main scheduling loop."""
    interval_seconds = config.interval_minutes * 60

    if config.sync_on_startup:
        logger.info("Running initial sync on startup...")
        results = await run_sync(config, pool, cipher, sync_config)
        health_state.record(results)
        logger.info(f"Initial sync complete: {results}")

    next_run = datetime.now(timezone.utc) + timedelta(seconds=interval_seconds)
    logger.info(f"Next sync at {next_run.isoformat()} (in {config.interval_minutes} minutes)")

    while not shutdown_event.is_set():
        try:
            # Wait for either the interval or shutdown
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval_seconds)
            break
        except asyncio.TimeoutError:
            pass

        logger.info("========== SCHEDULED SYNC ==========")
        results = await run_sync(config, pool, cipher, sync_config)
        health_state.record(results)

        logger.info(
            f"Sync complete: success={results['success']}, "
            f"duration={results.get('duration_seconds', 0):.1f}s"
        )

        next_run = datetime.now(timezone.utc) + timedelta(seconds=interval_seconds)
        logger.info(f"Next sync at {next_run.isoformat()} (in {config.interval_minutes} minutes)")

    logger.info("Shutdown requested, exiting loop")


# ============================================
# Main Entry Point
# ============================================

async def main():
    """Main entry point for the scheduler."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    print("=" * 60)
    print("SellerSync Scheduler")
    print("=" * 60)

    config = SchedulerConfig()
    sync_config = SyncConfig()
    logger.info(f"Config: {config} {sync_config}")

    if not config.sync_ebay and not config.sync_wave:
        logger.error("Nothing to sync (SYNC_EBAY and SYNC_WAVE are both false)")
        sys.exit(1)

    if not config.database_url:
        logger.error("DATABASE_URL is not set")
        sys.exit(1)

    # Fail fast on missing eBay application credentials
    if config.sync_ebay:
        try:
            EbayClient()
        except ConfigurationError as e:
            logger.error(f"eBay credentials missing: {e}")
            if not config.sync_wave:
                sys.exit(1)
            logger.warning("Continuing with Wave only...")
            config.sync_ebay = False

    try:
        pool = await create_pool(config.database_url)
        cipher = PgcryptoTokenCipher(pool)
    except SellerSyncError as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

    health_state = HealthState()
    shutdown_event = asyncio.Event()

    def handle_shutdown(signum, frame):
        logger.info(f"Received signal {signum}, initiating shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    health_server = await start_health_server(config.health_check_port, health_state)

    try:
        await scheduler_loop(
            config=config,
            pool=pool,
            cipher=cipher,
            sync_config=sync_config,
            health_state=health_state,
            shutdown_event=shutdown_event,
        )
    finally:
        logger.info("Cleaning up...")

        if health_server:
            health_server.close()
            await health_server.wait_closed()

        await close_pool(pool)

        logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
