from __future__ import annotations

import logging

from playground_runtime.core.shell import ToolRunner
from playground_runtime.records import ContainerStatus


class StatusProber:
    """Live container state. Probing never raises, so a listing never aborts."""

    def __init__(self, runner: ToolRunner, logger: logging.Logger | None = None):
        self.runner = runner
        self.logger = logger or logging.getLogger("playgrounds.prober")

    async def status(self, container_id: str) -> ContainerStatus:
        docker = self.runner.which("docker")
        if not docker:
            return ContainerStatus.UNKNOWN
        try:
            result = await self.runner.run([docker, "inspect", "-f", "{{.State.Running}}", container_id])
        except Exception as exc:
            self.logger.info("docker.inspect.failed", extra={"container_id": container_id, "error": str(exc)})
            return ContainerStatus.UNKNOWN
        value = result.stdout.strip()
        if value == "true":
            return ContainerStatus.RUNNING
        if value == "false":
            return ContainerStatus.STOPPED
        return ContainerStatus.UNKNOWN
