from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable


@dataclass
class AttemptOutcome:
    label: str
    ok: bool
    error: str | None = None
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "ok": self.ok, "error": self.error, "skipped": self.skipped}


async def attempt(
    label: str,
    step: Callable[[], Awaitable[Any] | Any],
    logger: logging.Logger,
    **extra: Any,
) -> AttemptOutcome:
    """Run one best-effort cleanup step; failures are logged and returned, never raised."""
    try:
        result = step()
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        logger.warning("cleanup.failed", extra={"step": label, "error": str(exc), **extra})
        return AttemptOutcome(label=label, ok=False, error=str(exc))
    logger.info("cleanup.ok", extra={"step": label, **extra})
    return AttemptOutcome(label=label, ok=True)


def skipped(label: str, reason: str) -> AttemptOutcome:
    return AttemptOutcome(label=label, ok=True, error=reason, skipped=True)
