"""Performance stage: load time, frame rate and memory against fixed budgets."""

from __future__ import annotations

import time

from fixgate.core.models import StageName, StageResult
from fixgate.validation.server import SandboxServer
from fixgate.validation.stages.base import StageContext, ValidationStage

# Installs a requestAnimationFrame counter and a once-per-second heap sampler.
START_SAMPLING_JS = """
() => {
  const probe = { frames: 0, fps: [], memory: [], last: performance.now() };
  window.__fixgateProbe = probe;
  const tick = (now) => {
    probe.frames += 1;
    if (now - probe.last >= 1000) {
      probe.fps.push(probe.frames * 1000 / (now - probe.last));
      if (performance.memory) {
        probe.memory.push(performance.memory.usedJSHeapSize / 1048576);
      }
      probe.frames = 0;
      probe.last = now;
    }
    if (!probe.stopped) requestAnimationFrame(tick);
  };
  requestAnimationFrame(tick);
}
"""

COLLECT_SAMPLES_JS = """
() => {
  const probe = window.__fixgateProbe || { fps: [], memory: [] };
  probe.stopped = true;
  return { fps: probe.fps, memory: probe.memory };
}
"""


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class PerformanceStage(ValidationStage):
    name = StageName.PERFORMANCE
    description = "Load time, average FPS and memory stay within budget"

    async def run(self, ctx: StageContext) -> StageResult:
        budget = ctx.config.performance

        with SandboxServer(ctx.sandbox.root_path) as server:
            async with ctx.launcher.session() as page:
                start = time.perf_counter()
                await page.goto(
                    server.url,
                    timeout_ms=ctx.config.validation.load_timeout_ms,
                    wait_until="load",
                )
                load_time_ms = (time.perf_counter() - start) * 1000

                await page.evaluate(START_SAMPLING_JS)
                await page.wait(budget.window_ms)
                samples = await page.evaluate(COLLECT_SAMPLES_JS) or {}

        fps = [float(v) for v in samples.get("fps", [])]
        memory = [float(v) for v in samples.get("memory", [])]
        avg_fps = _average(fps)
        avg_memory_mb = _average(memory)

        violations = []
        if load_time_ms > budget.max_load_time_ms:
            violations.append(f"load time {load_time_ms:.0f}ms > {budget.max_load_time_ms:.0f}ms")
        if avg_fps < budget.min_avg_fps:
            violations.append(f"average FPS {avg_fps:.1f} < {budget.min_avg_fps:.0f}")
        if memory and avg_memory_mb > budget.max_avg_memory_mb:
            violations.append(
                f"average memory {avg_memory_mb:.1f}MB > {budget.max_avg_memory_mb:.0f}MB"
            )

        return self._result(
            passed=not violations,
            details={
                "load_time_ms": round(load_time_ms, 1),
                "avg_fps": round(avg_fps, 1),
                "avg_memory_mb": round(avg_memory_mb, 1),
                "memory_sampled": bool(memory),
                "fps_samples": len(fps),
                "thresholds": {
                    "max_load_time_ms": budget.max_load_time_ms,
                    "min_avg_fps": budget.min_avg_fps,
                    "max_avg_memory_mb": budget.max_avg_memory_mb,
                },
                "violations": violations,
            },
            error_count=len(violations),
        )
