from __future__ import annotations

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path

from playground_runtime.core.errors import ExternalToolError


@dataclass
class CommandResult:
    args: list[str] | str
    returncode: int
    stdout: str
    stderr: str


class ToolRunner:
    """Resolves and invokes external binaries (git, docker, catalog commands).

    Calls block the awaiting coroutine until the tool exits; there is no
    timeout and no cancellation.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("playgrounds.shell")

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    async def run(self, args: list[str], *, cwd: Path | str | None = None) -> CommandResult:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        return await self._collect(args, process)

    async def run_shell(self, command: str, *, cwd: Path | str | None = None) -> CommandResult:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        return await self._collect(command, process)

    async def _collect(self, args: list[str] | str, process: asyncio.subprocess.Process) -> CommandResult:
        start = time.perf_counter()
        stdout, stderr = await process.communicate()
        result = CommandResult(
            args=args,
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=(stdout or b"").decode("utf-8", errors="replace"),
            stderr=(stderr or b"").decode("utf-8", errors="replace"),
        )
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        self.logger.info(
            "tool.run",
            extra={"argv": args, "returncode": result.returncode, "duration_ms": duration_ms},
        )
        if result.returncode != 0:
            raise ExternalToolError(args, result.returncode, result.stderr or result.stdout)
        return result
