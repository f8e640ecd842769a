import asyncio
import os
from unittest.mock import AsyncMock

import pytest

import server
from server import create_app


@pytest.mark.skipif(
    "RECONCILE_INTERVAL_SECONDS" in os.environ,
    reason="sweep interval overridden by the environment",
)
def test_reconciliation_sweep_is_on_by_default():
    assert server.RECONCILE_INTERVAL_SECONDS == 300


@pytest.mark.asyncio
@pytest.mark.skipif(
    server.RECONCILE_INTERVAL_SECONDS <= 0, reason="reconciliation sweep disabled"
)
async def test_lifespan_schedules_the_reconciliation_sweep(services, monkeypatch):
    run_periodically = AsyncMock()
    monkeypatch.setattr(services.sweeper, "run_periodically", run_periodically)
    app = create_app(services=services)

    async with app.router.lifespan_context(app):
        await asyncio.sleep(0)

    run_periodically.assert_awaited_once_with(server.RECONCILE_INTERVAL_SECONDS)
    assert app.state.services is services


@pytest.mark.asyncio
async def test_lifespan_skips_the_sweep_when_disabled(services, monkeypatch):
    run_periodically = AsyncMock()
    monkeypatch.setattr(services.sweeper, "run_periodically", run_periodically)
    monkeypatch.setattr(server, "RECONCILE_INTERVAL_SECONDS", 0)
    app = create_app(services=services)

    async with app.router.lifespan_context(app):
        await asyncio.sleep(0)

    run_periodically.assert_not_awaited()
