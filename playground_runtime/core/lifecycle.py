from __future__ import annotations

import asyncio
import logging
import re
import shlex
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

from playground_runtime.core.catalog import AppCatalog
from playground_runtime.core.cleanup import AttemptOutcome, attempt, skipped
from playground_runtime.core.errors import (
    AlreadyInstalledError,
    CatalogAppNotFoundError,
    InvalidInputError,
    PlaygroundNotFoundError,
    StorageError,
    ToolNotFoundError,
)
from playground_runtime.core.prober import StatusProber
from playground_runtime.core.shell import ToolRunner
from playground_runtime.core.store import MetadataStore, Record
from playground_runtime.core.supervisor import ProcessSupervisor
from playground_runtime.records import DockerPlayground, GithubPlayground, PlaygroundView

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def id_timestamp(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H-%M-%S-%fZ")


def repo_name_from_url(url: str) -> str:
    """Last non-empty path segment of a clone URL, without a trailing ``.git``."""
    segments = [part for part in re.split(r"[/:]", url) if part]
    name = segments[-1] if segments else ""
    if name.endswith(".git"):
        name = name[: -len(".git")]
    name = _UNSAFE_ID_CHARS.sub("-", name).strip("-.")
    return name or "repo"


def validate_repo_url(url: str) -> str:
    cleaned = url.strip()
    if cleaned.startswith("-"):
        raise InvalidInputError(f"Invalid Git URL: {url!r}")
    if not re.match(r"^https?://", cleaned) and ":" not in cleaned:
        raise InvalidInputError(f"Invalid Git URL: {url!r}")
    return cleaned


def image_slug(image: str) -> str:
    return re.sub(r"[:/]", "-", image)


@dataclass
class DeleteReport:
    id: str
    type: str
    cleanup: list[AttemptOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"id": self.id, "type": self.type, "deleted": True, "cleanup": [o.to_dict() for o in self.cleanup]}


class PlaygroundLifecycle:
    """Create/delete workflows for clone-backed and container-backed playgrounds."""

    def __init__(
        self,
        store: MetadataStore,
        catalog: AppCatalog,
        supervisor: ProcessSupervisor,
        runner: ToolRunner,
        prober: StatusProber | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.catalog = catalog
        self.supervisor = supervisor
        self.runner = runner
        self.prober = prober or StatusProber(runner)
        self.logger = logger or logging.getLogger("playgrounds.lifecycle")
        self.clock = clock

    def _require_tool(self, name: str) -> str:
        path = self.runner.which(name)
        if not path:
            raise ToolNotFoundError(name)
        return path

    def _unique_id(self, base: str, moment: datetime, taken: Sequence[Record]) -> str:
        existing = {record.id for record in taken}
        candidate = f"{base}-{id_timestamp(moment)}"
        suffix = 2
        while candidate in existing or (self.store.github_dir / candidate).exists():
            candidate = f"{base}-{id_timestamp(moment)}-{suffix}"
            suffix += 1
        return candidate

    def _prepend(self, record: Record) -> None:
        records = self.store.read_all()
        records.insert(0, record)
        self.store.write_all(records)

    def _remove_entry(self, playground_id: str) -> None:
        records = [record for record in self.store.read_all() if record.id != playground_id]
        self.store.write_all(records)

    async def list_all(self) -> list[PlaygroundView]:
        records = self.store.read_all()

        async def view(record: Record) -> PlaygroundView:
            if isinstance(record, DockerPlayground):
                return PlaygroundView(record=record, status=await self.prober.status(record.container_id))
            return PlaygroundView(record=record)

        return list(await asyncio.gather(*(view(record) for record in records)))

    async def create_github(
        self,
        repo_url: str,
        run_command: str | None = None,
        port: int | None = None,
        app_store_id: str | None = None,
    ) -> GithubPlayground:
        git = self._require_tool("git")
        url = validate_repo_url(repo_url)
        moment = self.clock()
        playground_id = self._unique_id(repo_name_from_url(url), moment, self.store.read_all())
        target = self.store.github_dir / playground_id
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Unable to create {target}: {exc}") from exc

        self.logger.info("playground.clone.start", extra={"playground_id": playground_id, "repo_url": url})
        try:
            await self.runner.run([git, "clone", "--depth", "1", "--", url, str(target)])
        except Exception:
            shutil.rmtree(target, ignore_errors=True)
            raise

        record = GithubPlayground(
            id=playground_id,
            repo_url=url,
            path=str(target),
            created_at=iso_timestamp(moment),
            run_command=run_command,
            port=port,
            app_store_id=app_store_id,
        )
        self._prepend(record)
        self.logger.info("playground.create.ok", extra={"playground_id": playground_id, "type": "github"})
        return record

    async def install_from_catalog(self, app_id: str) -> GithubPlayground:
        entry = self.catalog.get(app_id)
        if entry is None:
            raise CatalogAppNotFoundError(app_id)
        for record in self.store.read_all():
            if isinstance(record, GithubPlayground) and record.app_store_id == app_id:
                raise AlreadyInstalledError(f'App "{entry.name}" is already installed', code=app_id)
        return await self.create_github(
            entry.repo_url,
            run_command=entry.default_run_command,
            port=entry.default_port,
            app_store_id=entry.id,
        )

    async def delete_github(self, playground_id: str) -> DeleteReport:
        record = self.store.find(playground_id)
        if not isinstance(record, GithubPlayground):
            raise PlaygroundNotFoundError(f"Not found: {playground_id}")
        report = DeleteReport(id=playground_id, type="github")
        path = Path(record.path)
        extra = {"playground_id": playground_id}

        report.cleanup.append(await attempt("stop-dev", lambda: self.supervisor.stop(playground_id), self.logger, **extra))

        entry = self.catalog.get(record.app_store_id) if record.app_store_id else None
        if entry is not None and entry.delete_command and path.exists():
            report.cleanup.append(
                await attempt(
                    "catalog-delete-command",
                    lambda: self.runner.run_shell(entry.delete_command, cwd=path),
                    self.logger,
                    **extra,
                )
            )
        else:
            report.cleanup.append(skipped("catalog-delete-command", "no delete command or directory missing"))

        if path.exists():
            report.cleanup.append(await attempt("remove-directory", lambda: shutil.rmtree(path), self.logger, **extra))
        else:
            report.cleanup.append(skipped("remove-directory", "directory already gone"))

        self._remove_entry(playground_id)
        self.logger.info("playground.delete.ok", extra={**extra, "type": "github"})
        return report

    def docker_installed(self) -> bool:
        return bool(self.runner.which("docker"))

    async def create_docker(
        self,
        image: str,
        port: int | None = None,
        extra_args: str | Sequence[str] | None = None,
    ) -> DockerPlayground:
        docker = self._require_tool("docker")
        image = image.strip()
        if not image:
            raise InvalidInputError("Image is required")
        if image.startswith("-"):
            raise InvalidInputError(f"Invalid image reference: {image!r}")

        if isinstance(extra_args, str):
            extra = shlex.split(extra_args)
        else:
            extra = list(extra_args or [])

        await self.runner.run([docker, "pull", image])
        args = [docker, "run", "-d"]
        if port:
            args += ["-p", f"{port}:{port}"]
        result = await self.runner.run([*args, *extra, image])
        container_id = result.stdout.strip()

        moment = self.clock()
        record = DockerPlayground(
            id=self._unique_id(f"docker-{image_slug(image)}", moment, self.store.read_all()),
            image=image,
            container_id=container_id,
            port=port,
            created_at=iso_timestamp(moment),
        )
        self._prepend(record)
        self.logger.info(
            "playground.create.ok",
            extra={"playground_id": record.id, "type": "docker", "container_id": container_id},
        )
        return record

    async def stop_container(self, container_id: str) -> None:
        docker = self._require_tool("docker")
        await self.runner.run([docker, "stop", container_id])

    async def remove_container(self, container_id: str) -> None:
        docker = self._require_tool("docker")
        await self.runner.run([docker, "rm", container_id])

    async def delete_docker(self, playground_id: str) -> DeleteReport:
        record = self.store.find(playground_id)
        if not isinstance(record, DockerPlayground):
            raise PlaygroundNotFoundError(f"Not found: {playground_id}")
        report = DeleteReport(id=playground_id, type="docker")
        extra = {"playground_id": playground_id, "container_id": record.container_id}
        report.cleanup.append(
            await attempt("docker-stop", lambda: self.stop_container(record.container_id), self.logger, **extra)
        )
        report.cleanup.append(
            await attempt("docker-rm", lambda: self.remove_container(record.container_id), self.logger, **extra)
        )
        self._remove_entry(playground_id)
        self.logger.info("playground.delete.ok", extra={**extra, "type": "docker"})
        return report

    async def delete(self, playground_id: str) -> DeleteReport:
        record = self.store.find(playground_id)
        if isinstance(record, GithubPlayground):
            return await self.delete_github(playground_id)
        if isinstance(record, DockerPlayground):
            return await self.delete_docker(playground_id)
        raise PlaygroundNotFoundError(f"Not found: {playground_id}")
