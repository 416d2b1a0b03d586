from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("PLAYGROUNDS_LOG_DIR", tempfile.mkdtemp(prefix="playgrounds-test-logs-"))

from fastapi.testclient import TestClient  # noqa: E402

from playground_runtime.core.catalog import AppCatalog  # noqa: E402
from playground_runtime.core.config import RuntimeConfig  # noqa: E402
from playground_runtime.core.errors import ExternalToolError  # noqa: E402
from playground_runtime.core.events import EventBus  # noqa: E402
from playground_runtime.core.lifecycle import PlaygroundLifecycle  # noqa: E402
from playground_runtime.core.shell import CommandResult  # noqa: E402
from playground_runtime.core.store import MetadataStore  # noqa: E402
from playground_runtime.core.supervisor import ProcessSupervisor  # noqa: E402
from playground_runtime.main import app  # noqa: E402


class FakeToolRunner:
    """Stands in for git/docker: records every call and simulates their effects."""

    def __init__(self, available: set[str] | None = None) -> None:
        self.available = {"git", "docker"} if available is None else set(available)
        self.calls: list[list[str]] = []
        self.shell_calls: list[tuple[str, str | None]] = []
        self.fail: set[str] = set()
        self.container_id = "c0ffee1234"
        self.inspect_output: dict[str, str] = {}

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.available else None

    def subcommands(self, tool: str) -> list[str]:
        return [call[1] for call in self.calls if call[0].endswith(tool)]

    async def run(self, args: list[str], *, cwd=None) -> CommandResult:
        self.calls.append(list(args))
        sub = args[1]
        if sub in self.fail:
            raise ExternalToolError(args, 1, f"{sub} failed")
        stdout = ""
        if sub == "clone":
            target = Path(args[-1])
            target.mkdir(parents=True, exist_ok=True)
            (target / "README.md").write_text("cloned\n", encoding="utf-8")
        elif sub == "run":
            stdout = f"{self.container_id}\n"
        elif sub == "inspect":
            container_id = args[-1]
            if container_id not in self.inspect_output:
                raise ExternalToolError(args, 1, "Error: No such object")
            stdout = self.inspect_output[container_id]
        return CommandResult(args=args, returncode=0, stdout=stdout, stderr="")

    async def run_shell(self, command: str, *, cwd=None) -> CommandResult:
        self.shell_calls.append((command, str(cwd) if cwd else None))
        if "shell" in self.fail:
            raise ExternalToolError(command, 127, "command not found")
        return CommandResult(args=command, returncode=0, stdout="", stderr="")


def write_catalog_app(catalog_dir: Path, app_id: str, **fields) -> Path:
    catalog_dir.mkdir(parents=True, exist_ok=True)
    payload = {
        "id": app_id,
        "name": fields.pop("name", app_id.title()),
        "description": fields.pop("description", f"{app_id} demo app"),
        "repoUrl": fields.pop("repoUrl", f"https://example.com/org/{app_id}.git"),
        **fields,
    }
    path = catalog_dir / f"{app_id}.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


@pytest.fixture
def make_catalog_app():
    return write_catalog_app


@pytest.fixture
def base_dir(tmp_path: Path) -> Path:
    return tmp_path / "playgrounds"


@pytest.fixture
def catalog_dir(tmp_path: Path) -> Path:
    path = tmp_path / "apps"
    path.mkdir()
    return path


@pytest.fixture
def store(base_dir: Path) -> MetadataStore:
    return MetadataStore(base_dir / "meta.json", base_dir / "github")


@pytest.fixture
def catalog(catalog_dir: Path) -> AppCatalog:
    return AppCatalog(catalog_dir)


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def supervisor(store: MetadataStore, catalog: AppCatalog, events: EventBus) -> ProcessSupervisor:
    return ProcessSupervisor(store, catalog, events)


@pytest.fixture
def runner() -> FakeToolRunner:
    return FakeToolRunner()


@pytest.fixture
def lifecycle(store, catalog, supervisor, runner) -> PlaygroundLifecycle:
    return PlaygroundLifecycle(store, catalog, supervisor, runner)


@pytest.fixture
def client(base_dir: Path, catalog_dir: Path, runner: FakeToolRunner):
    app.state.config_override = RuntimeConfig(base_dir=str(base_dir), catalog_dir=str(catalog_dir))
    app.state.tool_runner = runner
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.state.config_override = None
        app.state.tool_runner = None
