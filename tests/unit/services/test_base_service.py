from __future__ import annotations

import logging

import pytest

from servicehub.monitoring.prometheus_metrics import prometheus_metrics
from servicehub.services import BaseService
from servicehub.services import base as base_module


class MeasuredService(BaseService):
    @BaseService.measure_operation("lookup")
    async def lookup(self, fail: bool = False) -> str:
        if fail:
            raise RuntimeError("lookup failed")
        return "found"


@pytest.fixture
def service() -> MeasuredService:
    instance = MeasuredService()
    instance.reset_metrics()
    return instance


@pytest.mark.asyncio
async def test_measure_operation_tracks_success_and_failure(service) -> None:
    await service.lookup()
    with pytest.raises(RuntimeError):
        await service.lookup(fail=True)

    metrics = service.get_metrics()["lookup"]
    assert metrics["count"] == 2
    assert metrics["success_count"] == 1
    assert metrics["failure_count"] == 1
    assert metrics["success_rate"] == 0.5


@pytest.mark.asyncio
async def test_measure_operation_exports_prometheus_sample(service) -> None:
    labels = {"service": "MeasuredService", "operation": "lookup", "status": "success"}
    before = prometheus_metrics.get_sample("servicehub_service_operations_total", labels) or 0.0

    await service.lookup()

    assert prometheus_metrics.get_sample("servicehub_service_operations_total", labels) == before + 1


@pytest.mark.asyncio
async def test_slow_operation_warning(service, monkeypatch, caplog) -> None:
    monkeypatch.setattr(base_module, "SLOW_OPERATION_SECONDS", -1.0)
    caplog.set_level(logging.WARNING, logger="MeasuredService")

    await service.lookup()

    assert any("Slow operation detected: lookup" in r.getMessage() for r in caplog.records)


def test_measure_operation_rejects_sync_methods() -> None:
    with pytest.raises(TypeError):

        class Broken(BaseService):
            @BaseService.measure_operation("sync")
            def sync(self) -> None:
                return None


@pytest.mark.asyncio
async def test_invalidate_pattern_without_cache_is_noop() -> None:
    assert await BaseService().invalidate_pattern("Anything:*") == 0


@pytest.mark.asyncio
async def test_invalidate_pattern_uses_tiered_cache(memory_only_cache) -> None:
    await memory_only_cache.write("Directory:get:1", {"id": 1}, 60)
    service = BaseService(cache=memory_only_cache)

    assert await service.invalidate_pattern("Directory:*") == 1
