"""Tests for component wiring and the run lifecycle in the entry point."""

import asyncio
from unittest.mock import patch

import pytest

from ohlcv.backfill import BackfillOrchestrator
from ohlcv.candles import CandleScheduler
from ohlcv.config import AppSettings, BackfillSettings, FeedSettings
from ohlcv.feed import JupiterPriceFeed, PriceCollector
from ohlcv.history import GeckoTerminalSource
from ohlcv.main import _build_components, run
from ohlcv.models import BackfillSummary


class TestBuildComponents:
    @pytest.mark.asyncio
    async def test_wires_scheduler_and_backfill(self, mock_settings: AppSettings) -> None:
        components = _build_components(mock_settings)
        try:
            assert isinstance(components["scheduler"], CandleScheduler)
            assert isinstance(components["backfill"], BackfillOrchestrator)
            assert isinstance(components["source"], GeckoTerminalSource)
            assert isinstance(components["feed"], JupiterPriceFeed)
            assert isinstance(components["collector"], PriceCollector)
            assert not components["backfill"].get_backfill_status().is_running
        finally:
            await components["feed"].close()
            await components["source"].close()

    @pytest.mark.asyncio
    async def test_database_connects_at_configured_path(
        self, mock_settings: AppSettings
    ) -> None:
        components = _build_components(mock_settings)
        database = components["database"]
        await database.connect()
        try:
            assert await components["registry"].list_active_assets() == []
        finally:
            await database.close()
            await components["feed"].close()
            await components["source"].close()


class TestRun:
    @pytest.mark.asyncio
    async def test_shutdown_during_startup_backfill_exits(
        self, mock_settings: AppSettings
    ) -> None:
        """A signal that lands while the startup backfill runs stops the engine."""
        settings = mock_settings.model_copy(
            update={
                "backfill": BackfillSettings(startup_hours=1),
                "feed": FeedSettings(enabled=False),
            }
        )
        captured: dict[str, CandleScheduler] = {}

        def _capture_scheduler(scheduler: CandleScheduler) -> None:
            captured["scheduler"] = scheduler

        async def _backfill_then_signal(start_ms: int, end_ms: int) -> BackfillSummary:
            await captured["scheduler"].stop()
            return BackfillSummary(start_ms=start_ms, end_ms=end_ms)

        with (
            patch("ohlcv.main.AppSettings", return_value=settings),
            patch("ohlcv.main.setup_logging"),
            patch("ohlcv.main._setup_signal_handlers", side_effect=_capture_scheduler),
            patch.object(
                BackfillOrchestrator,
                "run_backfill_all",
                side_effect=_backfill_then_signal,
            ) as backfill_all,
        ):
            await asyncio.wait_for(run(), timeout=2)

        backfill_all.assert_awaited_once()
        start_ms, end_ms = backfill_all.await_args.args
        assert end_ms - start_ms == 3_600_000
        assert not captured["scheduler"].is_running
