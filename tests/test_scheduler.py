#!/usr/bin/env python3
"""Tests for the sync scheduler.

Tests cover:
    - Config flag combinations (only eBay, only Wave, both)
    - Partial failure handling (one provider fails, the other succeeds)
    - Batch job wiring and the per-provider result
    - Health state bookkeeping
"""
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from scheduler import HealthState, SchedulerConfig, build_batch_job, run_provider, run_sync
from src.sellersync.api.exceptions import ConfigurationError, NetworkError
from src.sellersync.sync.config import SyncConfig
from src.sellersync.sync.domain.entities import ProviderKind
from src.sellersync.sync.use_cases.sync_connected_accounts import (
    BatchSyncSummary,
    SyncConnectedAccountsUseCase,
    TokenRefreshSummary,
)


# ============================================
# Test Fixtures
# ============================================

@pytest.fixture
def config():
    cfg = SchedulerConfig()
    cfg.sync_ebay = True
    cfg.sync_wave = True
    return cfg


@pytest.fixture
def sync_config():
    return SyncConfig(window_days=30, refresh_ahead_minutes=10)


def client_cm():
    """Async context manager standing in for a provider client."""
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=MagicMock())
    cm.__aexit__ = AsyncMock(return_value=None)
    return cm


# ============================================
# run_sync Tests
# ============================================

class TestRunSync:
    """Test one scheduler cycle over the enabled providers."""

    @pytest.mark.asyncio
    async def test_both_providers_succeed(self, config, sync_config):
        provider_result = {"accounts": 1, "succeeded": 1}

        with patch("scheduler.EbayClient", return_value=client_cm()), \
             patch("scheduler.WaveClient", return_value=client_cm()), \
             patch("scheduler.run_provider", new=AsyncMock(return_value=provider_result)) as run:
            results = await run_sync(config, MagicMock(), MagicMock(), sync_config)

        assert results["success"] is True
        assert results["ebay"] == provider_result
        assert results["wave"] == provider_result
        assert run.await_count == 2
        assert "duration_seconds" in results

    @pytest.mark.asyncio
    async def test_ebay_failure_does_not_stop_wave(self, config, sync_config):
        with patch("scheduler.EbayClient", side_effect=ConfigurationError("Missing EBAY_CLIENT_ID")), \
             patch("scheduler.WaveClient", return_value=client_cm()), \
             patch("scheduler.run_provider", new=AsyncMock(return_value={"accounts": 0})):
            results = await run_sync(config, MagicMock(), MagicMock(), sync_config)

        assert results["success"] is False
        assert results["ebay"]["error_type"] == "ConfigurationError"
        assert results["wave"] == {"accounts": 0}

    @pytest.mark.asyncio
    async def test_provider_job_failure_is_reported(self, config, sync_config):
        run = AsyncMock(side_effect=[{"accounts": 2}, NetworkError("Wave unreachable")])

        with patch("scheduler.EbayClient", return_value=client_cm()), \
             patch("scheduler.WaveClient", return_value=client_cm()), \
             patch("scheduler.run_provider", new=run):
            results = await run_sync(config, MagicMock(), MagicMock(), sync_config)

        assert results["ebay"] == {"accounts": 2}
        assert results["wave"]["success"] is False
        assert results["success"] is False

    @pytest.mark.asyncio
    async def test_only_wave_enabled(self, config, sync_config):
        config.sync_ebay = False
        ebay_client = MagicMock()

        with patch("scheduler.EbayClient", ebay_client), \
             patch("scheduler.WaveClient", return_value=client_cm()), \
             patch("scheduler.run_provider", new=AsyncMock(return_value={})):
            results = await run_sync(config, MagicMock(), MagicMock(), sync_config)

        ebay_client.assert_not_called()
        assert results["ebay"] is None
        assert results["success"] is True


# ============================================
# Wiring Tests
# ============================================

class TestBatchWiring:
    def test_build_batch_job_uses_one_unit_of_work(self, sync_config):
        fetcher = MagicMock(provider=ProviderKind.WAVE)
        seen = []

        def reconciler_factory(uow):
            seen.append(uow)
            return MagicMock()

        job = build_batch_job(fetcher, reconciler_factory, MagicMock(), MagicMock(), sync_config)

        assert isinstance(job, SyncConnectedAccountsUseCase)
        assert job.provider == ProviderKind.WAVE
        assert seen == [job.unit_of_work]
        assert job.sync_use_case.unit_of_work is job.unit_of_work
        assert job.credential_repo.unit_of_work is job.unit_of_work

    @pytest.mark.asyncio
    async def test_run_provider_refreshes_then_syncs(self):
        job = MagicMock()
        order = []

        async def refresh():
            order.append("refresh")
            return TokenRefreshSummary(checked=3, refreshed=2, failed=1)

        async def execute():
            order.append("sync")
            return BatchSyncSummary(provider=ProviderKind.EBAY)

        job.refresh_expiring_tokens = refresh
        job.execute = execute

        result = await run_provider(job)

        assert order == ["refresh", "sync"]
        assert result["provider"] == "ebay"
        assert result["tokens_refreshed"] == 2
        assert result["token_refresh_failures"] == 1


# ============================================
# Config and Health Tests
# ============================================

class TestSchedulerConfig:
    def test_defaults(self, monkeypatch):
        for key in ("SYNC_INTERVAL_MINUTES", "SYNC_EBAY", "SYNC_WAVE", "SYNC_ON_STARTUP", "HEALTH_CHECK_PORT"):
            monkeypatch.delenv(key, raising=False)

        cfg = SchedulerConfig()

        assert cfg.interval_minutes == 60
        assert (cfg.sync_ebay, cfg.sync_wave, cfg.sync_on_startup) == (True, True, True)
        assert cfg.health_check_port == 8080

    def test_flags_from_env(self, monkeypatch):
        monkeypatch.setenv("SYNC_EBAY", "false")
        monkeypatch.setenv("SYNC_INTERVAL_MINUTES", "15")

        cfg = SchedulerConfig()

        assert cfg.sync_ebay is False
        assert cfg.interval_minutes == 15

    def test_sync_config_window(self):
        assert SyncConfig(window_days=7).window == timedelta(days=7)

    def test_sync_config_rejects_empty_window(self):
        with pytest.raises(ValueError):
            SyncConfig(window_days=0)


class TestHealthState:
    def test_record_counts_failures(self):
        state = HealthState()

        state.record({"success": True})
        state.record({"success": False})

        assert state.total_syncs == 2
        assert state.failed_syncs == 1
        assert state.last_sync_success is False
        assert state.last_sync_at is not None
