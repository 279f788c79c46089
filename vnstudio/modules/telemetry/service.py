from __future__ import annotations

from collections import Counter
from statistics import mean
from threading import Lock


class _RuntimeTelemetryStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._step_latencies_ms: list[float] = []
        self.loads: int = 0
        self.failed_loads: int = 0
        self.operations: Counter[str] = Counter()
        self.result_types: Counter[str] = Counter()

    def reset(self) -> None:
        with self._lock:
            self._step_latencies_ms = []
            self.loads = 0
            self.failed_loads = 0
            self.operations = Counter()
            self.result_types = Counter()

    def record_load(self, *, ok: bool) -> None:
        with self._lock:
            self.loads += 1
            if not ok:
                self.failed_loads += 1

    def record_step(self, *, operation: str, result_type: str | None, latency_ms: float) -> None:
        with self._lock:
            self.operations[str(operation)] += 1
            if result_type:
                self.result_types[str(result_type)] += 1
            self._step_latencies_ms.append(float(latency_ms))
            if len(self._step_latencies_ms) > 1000:
                self._step_latencies_ms = self._step_latencies_ms[-1000:]

    def summary(self) -> dict:
        with self._lock:
            latencies = list(self._step_latencies_ms)
            avg_latency = float(mean(latencies)) if latencies else 0.0
            p95_latency = 0.0
            if latencies:
                ordered = sorted(latencies)
                idx = max(0, min(len(ordered) - 1, round(0.95 * (len(ordered) - 1))))
                p95_latency = float(ordered[idx])

            total_steps = sum(self.operations.values())
            errors = int(self.result_types.get("error", 0))
            return {
                "loads": int(self.loads),
                "failed_loads": int(self.failed_loads),
                "total_steps": int(total_steps),
                "advances": int(self.operations.get("advance", 0)),
                "choices": int(self.operations.get("choice", 0)),
                "resumes": int(self.operations.get("resume", 0)),
                "undos": int(self.operations.get("undo", 0)),
                "redos": int(self.operations.get("redo", 0)),
                "finishes": int(self.result_types.get("finished", 0)),
                "error_results": errors,
                "error_rate": 0.0 if total_steps <= 0 else round(float(errors) / float(total_steps), 4),
                "result_distribution": dict(self.result_types),
                "avg_step_latency_ms": round(avg_latency, 3),
                "p95_step_latency_ms": round(p95_latency, 3),
            }


_runtime_telemetry = _RuntimeTelemetryStore()


def reset_runtime_telemetry() -> None:
    _runtime_telemetry.reset()


def record_load(*, ok: bool) -> None:
    _runtime_telemetry.record_load(ok=ok)


def record_step(*, operation: str, result_type: str | None, latency_ms: float) -> None:
    _runtime_telemetry.record_step(operation=operation, result_type=result_type, latency_ms=latency_ms)


def get_runtime_telemetry_summary() -> dict:
    return _runtime_telemetry.summary()
