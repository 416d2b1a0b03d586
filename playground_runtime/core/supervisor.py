from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import time
from dataclasses import dataclass, field
from pathlib import Path

from playground_runtime.core.catalog import AppCatalog
from playground_runtime.core.errors import NoDevCommandError, PlaygroundNotFoundError, StorageError
from playground_runtime.core.events import DevExitEvent, DevLogEvent, EventBus
from playground_runtime.core.platform import IS_WINDOWS
from playground_runtime.core.store import MetadataStore
from playground_runtime.records import GithubPlayground

LOG_CAPACITY = 20_000
READ_CHUNK = 4096
EXIT_POLL_INTERVAL = 0.1
# Seconds the output readers get to hit EOF once the shell has exited.
EXIT_DRAIN_GRACE = 0.5

# Checked in order; the first manifest present at the playground root wins.
MANIFEST_COMMANDS: tuple[tuple[str, str], ...] = (("package.json", "npm install && npm run dev"),)


class LogBuffer:
    """Keeps only the most recent ``capacity`` characters."""

    def __init__(self, capacity: int = LOG_CAPACITY) -> None:
        self.capacity = capacity
        self._text = ""

    def append(self, text: str) -> None:
        self._text = (self._text + text)[-self.capacity :]

    def clear(self) -> None:
        self._text = ""

    def getvalue(self) -> str:
        return self._text


@dataclass
class DevProcess:
    id: str
    command: str
    pid: int | None
    cwd: str
    started_at: float = field(default_factory=time.time)
    process: asyncio.subprocess.Process | None = field(default=None, repr=False)
    waiter: asyncio.Task | None = field(default=None, repr=False)
    pumps: list[asyncio.Task] = field(default_factory=list, repr=False)
    exited: bool = False

    def to_dict(self) -> dict:
        return {"id": self.id, "command": self.command, "pid": self.pid, "cwd": self.cwd, "started_at": self.started_at}


@dataclass
class StartResult:
    started: bool
    pid: int | None
    command: str

    def to_dict(self) -> dict:
        return {"started": self.started, "pid": self.pid, "command": self.command}


@dataclass
class LogSnapshot:
    running: bool
    log: str

    def to_dict(self) -> dict:
        return {"running": self.running, "log": self.log}


def _exit_details(returncode: int | None) -> tuple[int | None, str | None]:
    if returncode is not None and returncode < 0:
        try:
            return None, signal.Signals(-returncode).name
        except ValueError:
            return None, str(-returncode)
    return returncode, None


class ProcessSupervisor:
    """Runs at most one dev command per playground and captures its output.

    A running entry is removed only by the exit path of its own process, which
    is also the only place exit events are published.
    """

    def __init__(
        self,
        store: MetadataStore,
        catalog: AppCatalog,
        events: EventBus,
        logger: logging.Logger | None = None,
        log_capacity: int = LOG_CAPACITY,
    ):
        self.store = store
        self.catalog = catalog
        self.events = events
        self.logger = logger or logging.getLogger("playgrounds.supervisor")
        self.log_capacity = log_capacity
        self._running: dict[str, DevProcess] = {}
        self._logs: dict[str, LogBuffer] = {}
        self._start_lock = asyncio.Lock()
        self._background: set[asyncio.Task] = set()

    def is_running(self, playground_id: str) -> bool:
        return playground_id in self._running

    def running(self) -> list[DevProcess]:
        return list(self._running.values())

    def get_log(self, playground_id: str) -> LogSnapshot:
        buffer = self._logs.get(playground_id)
        return LogSnapshot(running=playground_id in self._running, log=buffer.getvalue() if buffer else "")

    def resolve_command(self, record: GithubPlayground, explicit: str | None = None) -> str:
        attempted: list[str] = []

        if explicit and explicit.strip():
            return explicit.strip()
        attempted.append("explicit command: not given")

        if record.app_store_id:
            entry = self.catalog.get(record.app_store_id)
            if entry is None:
                attempted.append(f"catalog app {record.app_store_id}: not found")
            elif entry.default_run_command and entry.default_run_command.strip():
                return entry.default_run_command.strip()
            else:
                attempted.append(f"catalog app {record.app_store_id}: no defaultRunCommand")
        else:
            attempted.append("catalog: no app reference")

        if record.run_command and record.run_command.strip():
            return record.run_command.strip()
        attempted.append("stored runCommand: empty")

        root = Path(record.path)
        for manifest, command in MANIFEST_COMMANDS:
            if (root / manifest).is_file():
                return command
        attempted.append(f"manifest: none of {', '.join(m for m, _ in MANIFEST_COMMANDS)} in {record.path}")

        raise NoDevCommandError(record.id, attempted)

    async def start(self, playground_id: str, command: str | None = None) -> StartResult:
        async with self._start_lock:
            current = self._running.get(playground_id)
            if current is not None:
                self.logger.info("dev.start.already_running", extra={"playground_id": playground_id, "pid": current.pid})
                return StartResult(started=True, pid=current.pid, command=current.command)

            record = self.store.find(playground_id)
            if not isinstance(record, GithubPlayground):
                raise PlaygroundNotFoundError(f"GitHub playground not found: {playground_id}")

            resolved = self.resolve_command(record, command)
            buffer = self._logs.setdefault(playground_id, LogBuffer(self.log_capacity))
            buffer.clear()
            self._append(playground_id, f"$ {resolved}\n")

            env = dict(os.environ)
            if record.port:
                env["PORT"] = str(record.port)
            try:
                process = await asyncio.create_subprocess_shell(
                    resolved,
                    cwd=record.path,
                    env=env,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    start_new_session=not IS_WINDOWS,
                )
            except OSError as exc:
                self._append(playground_id, f"[failed to start: {exc}]\n")
                raise StorageError(f"Failed to start dev command for {playground_id}: {exc}") from exc

            entry = DevProcess(id=playground_id, command=resolved, pid=process.pid, cwd=record.path, process=process)
            self._running[playground_id] = entry
            entry.waiter = asyncio.create_task(self._supervise(entry, process))
            self.logger.info(
                "dev.start",
                extra={"playground_id": playground_id, "pid": process.pid, "command": resolved, "port": record.port},
            )
            return StartResult(started=True, pid=process.pid, command=resolved)

    async def stop(self, playground_id: str) -> None:
        entry = self._running.get(playground_id)
        if entry is None or entry.pid is None:
            return
        try:
            if IS_WINDOWS:
                killer = await asyncio.create_subprocess_exec(
                    "taskkill",
                    "/pid",
                    str(entry.pid),
                    "/t",
                    "/f",
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
                self._keep(asyncio.create_task(killer.wait()))
            else:
                os.killpg(entry.pid, signal.SIGTERM)
        except OSError as exc:
            self.logger.info("dev.stop.ignored", extra={"playground_id": playground_id, "error": str(exc)})
            return
        self.logger.info("dev.stop.requested", extra={"playground_id": playground_id, "pid": entry.pid})

    async def shutdown(self) -> None:
        entries = self.running()
        for entry in entries:
            await self.stop(entry.id)
        waiters = [entry.waiter for entry in entries if entry.waiter is not None]
        if waiters:
            await asyncio.wait(waiters, timeout=5)
        for task in list(self._background):
            task.cancel()

    def _keep(self, task: asyncio.Task) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _append(self, playground_id: str, text: str) -> None:
        buffer = self._logs.setdefault(playground_id, LogBuffer(self.log_capacity))
        buffer.append(text)
        self.events.publish(DevLogEvent(id=playground_id, chunk=text))

    async def _pump(self, entry: DevProcess, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await stream.read(READ_CHUNK)
            if not data:
                break
            text = decoder.decode(data)
            # Output after exit is still read, then dropped.
            if text and not entry.exited:
                self._append(entry.id, text)
        tail = decoder.decode(b"", final=True)
        if tail and not entry.exited:
            self._append(entry.id, tail)

    async def _wait_for_exit(self, process: asyncio.subprocess.Process) -> int | None:
        # returncode is set when the child is reaped; wait() also waits for the pipes to close.
        waiter = asyncio.ensure_future(process.wait())
        try:
            while process.returncode is None and not waiter.done():
                await asyncio.wait({waiter}, timeout=EXIT_POLL_INTERVAL)
        finally:
            if not waiter.done():
                waiter.cancel()
        return process.returncode

    async def _supervise(self, entry: DevProcess, process: asyncio.subprocess.Process) -> None:
        entry.pumps = [
            asyncio.create_task(self._pump(entry, process.stdout)),
            asyncio.create_task(self._pump(entry, process.stderr)),
        ]
        returncode: int | None = None
        try:
            returncode = await self._wait_for_exit(process)
            _, pending = await asyncio.wait(entry.pumps, timeout=EXIT_DRAIN_GRACE)
            if pending:
                for task in pending:
                    self._keep(task)
                self.logger.info(
                    "dev.output.detached",
                    extra={"playground_id": entry.id, "pid": entry.pid, "open_streams": len(pending)},
                )
            for task in entry.pumps:
                if task.done() and not task.cancelled() and task.exception() is not None:
                    self.logger.error(
                        "dev.output.error", extra={"playground_id": entry.id, "error": str(task.exception())}
                    )
        finally:
            entry.exited = True
            code, sig = _exit_details(returncode)
            self._append(entry.id, f"\n[process exited code={code} signal={sig}]\n")
            self._running.pop(entry.id, None)
            self.logger.info("dev.exit", extra={"playground_id": entry.id, "code": code, "signal": sig})
            self.events.publish(DevExitEvent(id=entry.id, code=code, signal=sig))
