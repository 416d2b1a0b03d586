from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, Iterator


@dataclass
class CheckResult:
    name: str
    status: str
    detail: str | None = None
    duration_ms: float | None = None


@dataclass
class ReadinessTracker:
    """Startup phases of the gateway, reported by /health.

    ``status`` moves from ``starting`` to ``ready``; a degraded phase (docker
    missing, say) downgrades it to ``degraded`` and any error pins it at ``error``.
    """

    status: str = "starting"
    started_at: float = field(default_factory=time.time)
    checks: list[CheckResult] = field(default_factory=list)
    last_error: str | None = None

    def mark_phase(self, name: str, status: str, detail: str | None = None, duration_ms: float | None = None) -> None:
        self.checks.append(CheckResult(name=name, status=status, detail=detail, duration_ms=duration_ms))
        if status == "error":
            self.mark_error(detail or name)
        elif status == "degraded" and self.status != "error":
            self.status = "degraded"

    @contextmanager
    def phase(self, name: str) -> Iterator[CheckResult]:
        """Time a startup step; the body may fill in ``detail`` or downgrade ``status``."""
        check = CheckResult(name=name, status="ok")
        start = time.perf_counter()
        try:
            yield check
        except Exception as exc:
            check.status, check.detail = "error", f"{type(exc).__name__}: {exc}"
            raise
        finally:
            self.mark_phase(check.name, check.status, check.detail, round((time.perf_counter() - start) * 1000, 2))

    def mark_ready(self) -> None:
        if self.status == "starting":
            self.status = "ready"

    def mark_error(self, reason: str) -> None:
        self.status = "error"
        self.last_error = reason

    def as_payload(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "started_at": self.started_at,
            "uptime_s": round(time.time() - self.started_at, 3),
            "startup_checks": [asdict(check) for check in self.checks],
            "last_error": self.last_error,
        }
