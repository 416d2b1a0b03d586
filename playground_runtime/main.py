from __future__ import annotations

import logging
import re
import time
import uuid
from pathlib import Path
from typing import Callable

from fastapi import FastAPI, Request

from playground_runtime.api import catalog, dev, docker, health, playgrounds
from playground_runtime.api.errors import playground_error_handler
from playground_runtime.core.catalog import AppCatalog
from playground_runtime.core.config import RuntimeConfig
from playground_runtime.core.errors import PlaygroundError
from playground_runtime.core.events import EventBus
from playground_runtime.core.lifecycle import PlaygroundLifecycle
from playground_runtime.core.logging import configure_logging, log_context, shutdown_logging
from playground_runtime.core.prober import StatusProber
from playground_runtime.core.readiness import ReadinessTracker
from playground_runtime.core.shell import ToolRunner
from playground_runtime.core.store import MetadataStore
from playground_runtime.core.supervisor import ProcessSupervisor

LOGGER = configure_logging()

app = FastAPI(title="Playground Runtime Gateway", version="0.1.0")
app.add_exception_handler(PlaygroundError, playground_error_handler)
app.include_router(health.router)
app.include_router(playgrounds.router)
app.include_router(dev.router)
app.include_router(docker.router)
app.include_router(catalog.router)


_PLAYGROUND_PATH = re.compile(r"^/playgrounds/(?!github$|docker$|open-directory$)([^/]+)")


@app.middleware("http")
async def request_context_middleware(request: Request, call_next: Callable):
    request_id = request.headers.get("x-request-id") or f"req_{uuid.uuid4().hex}"
    request.state.request_id = request_id
    path = request.url.path
    match = _PLAYGROUND_PATH.match(path)
    logger = getattr(app.state, "logger", LOGGER)
    start = time.perf_counter()
    with log_context(request_id=request_id, endpoint=path, playground_id=match.group(1) if match else None):
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request.error", extra={"duration_ms": round((time.perf_counter() - start) * 1000, 2)})
            raise
        logger.info(
            "request.complete",
            extra={"status": response.status_code, "duration_ms": round((time.perf_counter() - start) * 1000, 2)},
        )
        response.headers["x-request-id"] = request_id
        return response


@app.on_event("startup")
async def startup() -> None:
    app.state.logger = LOGGER
    readiness = ReadinessTracker()
    app.state.readiness = readiness
    try:
        with readiness.phase("config") as check:
            config = getattr(app.state, "config_override", None) or RuntimeConfig.load()
            config.ensure_dirs()
            logging.getLogger().setLevel(config.log_level.upper())
            app.state.config = config
            check.detail = str(config.base_path)

        with readiness.phase("catalog") as check:
            app.state.catalog = AppCatalog(config.catalog_path, logger=logging.getLogger("playgrounds.catalog"))
            check.detail = f"apps={len(app.state.catalog.entries())}"

        with readiness.phase("metadata") as check:
            app.state.store = MetadataStore(
                config.meta_path, config.github_dir, logger=logging.getLogger("playgrounds.store")
            )
            check.detail = f"records={len(app.state.store.read_all())}"

        runner = getattr(app.state, "tool_runner", None) or ToolRunner(logging.getLogger("playgrounds.shell"))
        app.state.events = EventBus()
        app.state.supervisor = ProcessSupervisor(
            app.state.store, app.state.catalog, app.state.events, logger=logging.getLogger("playgrounds.supervisor")
        )
        app.state.lifecycle = PlaygroundLifecycle(
            app.state.store,
            app.state.catalog,
            app.state.supervisor,
            runner,
            prober=StatusProber(runner, logger=logging.getLogger("playgrounds.prober")),
            logger=logging.getLogger("playgrounds.lifecycle"),
        )

        for tool in ("git", "docker"):
            with readiness.phase(f"tool:{tool}") as check:
                check.detail = runner.which(tool)
                if not check.detail:
                    check.status, check.detail = "degraded", "not found in PATH"
        readiness.mark_ready()
        LOGGER.info("startup.ready", extra={"base_dir": str(config.base_path), "status": readiness.status})
    except Exception as exc:
        readiness.mark_error(f"startup_failure: {exc}")
        LOGGER.exception("startup.failed")
        raise


@app.on_event("shutdown")
async def shutdown() -> None:
    supervisor: ProcessSupervisor | None = getattr(app.state, "supervisor", None)
    if supervisor:
        await supervisor.shutdown()


def main() -> None:
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Playground runtime gateway")
    parser.add_argument("--host", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--config", type=str, default=None)
    args = parser.parse_args()

    config = RuntimeConfig.load(Path(args.config) if args.config else None)
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    app.state.config_override = config
    try:
        uvicorn.run(app, host=config.host, port=config.port)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    main()
