"""Tests for the performance stage."""

from __future__ import annotations

import pytest

from fixgate.core.models import StageName
from fixgate.validation.stages.performance import PerformanceStage

COLLECT = "probe.stopped = true"


class TestPerformanceStage:
    @pytest.mark.asyncio
    async def test_within_budget_passes(self, make_context, launcher_with):
        launcher = launcher_with(evaluations={COLLECT: {"fps": [60, 58, 61], "memory": [40, 42]}})

        result = await PerformanceStage().run(make_context(launcher=launcher))

        assert result.name is StageName.PERFORMANCE
        assert result.passed is True
        assert result.details["avg_fps"] == pytest.approx(59.7, abs=0.1)
        assert result.details["avg_memory_mb"] == 41.0
        assert result.details["violations"] == []

    @pytest.mark.asyncio
    async def test_low_fps_fails(self, make_context, launcher_with):
        launcher = launcher_with(evaluations={COLLECT: {"fps": [20, 25], "memory": [40]}})

        result = await PerformanceStage().run(make_context(launcher=launcher))

        assert result.passed is False
        assert any("FPS" in v for v in result.details["violations"])

    @pytest.mark.asyncio
    async def test_high_memory_fails(self, make_context, launcher_with):
        launcher = launcher_with(evaluations={COLLECT: {"fps": [60], "memory": [150, 170]}})

        result = await PerformanceStage().run(make_context(launcher=launcher))

        assert result.passed is False
        assert any("memory" in v for v in result.details["violations"])

    @pytest.mark.asyncio
    async def test_no_frames_fails_closed(self, make_context, launcher_with):
        launcher = launcher_with(evaluations={COLLECT: {"fps": [], "memory": []}})

        result = await PerformanceStage().run(make_context(launcher=launcher))

        assert result.passed is False
        assert result.details["memory_sampled"] is False

    @pytest.mark.asyncio
    async def test_custom_thresholds(self, make_context, launcher_with, config):
        config.performance.min_avg_fps = 10
        launcher = launcher_with(evaluations={COLLECT: {"fps": [20], "memory": []}})

        result = await PerformanceStage().run(make_context(launcher=launcher))

        assert result.passed is True
        assert result.details["thresholds"]["min_avg_fps"] == 10
