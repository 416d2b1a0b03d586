from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path

from playground_runtime.core.errors import PlaygroundNotFoundError, ToolNotFoundError
from playground_runtime.core.platform import IS_MACOS, IS_WINDOWS
from playground_runtime.core.store import MetadataStore
from playground_runtime.records import GithubPlayground

log = logging.getLogger("playgrounds.launchers")

# (binary, flag) pairs; a flag ending in "=" takes the directory in the same argument.
LINUX_TERMINALS: tuple[tuple[str, str], ...] = (
    ("x-terminal-emulator", "--working-directory="),
    ("gnome-terminal", "--working-directory="),
    ("konsole", "--workdir"),
    ("xfce4-terminal", "--working-directory="),
    ("alacritty", "--working-directory"),
)


def _spawn_detached(args: list[str], cwd: str | None = None) -> None:
    log.info("launcher.spawn", extra={"argv": args, "cwd": cwd})
    subprocess.Popen(
        args,
        cwd=cwd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=not IS_WINDOWS,
    )


def _github_path(store: MetadataStore, playground_id: str) -> str:
    record = store.find(playground_id)
    if not isinstance(record, GithubPlayground):
        raise PlaygroundNotFoundError(f"GitHub playground not found: {playground_id}")
    return record.path


def terminal_command(target: str) -> tuple[list[str], str | None]:
    """Return (argv, cwd) that opens a terminal in ``target`` on this host."""
    if IS_MACOS:
        return ["open", "-a", "Terminal", target], None
    if IS_WINDOWS:
        return ["cmd", "/c", "start", "wt", "-d", target], None
    for binary, flag in LINUX_TERMINALS:
        if shutil.which(binary):
            if flag.endswith("="):
                return [binary, f"{flag}{target}"], None
            return [binary, flag, target], None
    shell = os.environ.get("SHELL") or "bash"
    return ["sh", "-lc", f"cd {shlex.quote(target)}; exec {shell}"], target


def editor_command(target: str) -> list[str]:
    code = shutil.which("code")
    if code:
        return [code, target]
    if IS_MACOS:
        return ["open", "-a", "Visual Studio Code", target]
    if IS_WINDOWS:
        return ["cmd", "/c", "start", "code", target]
    return ["xdg-open", target]


def _launch(args: list[str], cwd: str | None = None) -> None:
    try:
        _spawn_detached(args, cwd=cwd)
    except FileNotFoundError as exc:
        raise ToolNotFoundError(args[0]) from exc


def open_in_editor(store: MetadataStore, playground_id: str) -> None:
    _launch(editor_command(_github_path(store, playground_id)))


def open_terminal(store: MetadataStore, playground_id: str) -> None:
    args, cwd = terminal_command(_github_path(store, playground_id))
    _launch(args, cwd=cwd)


def open_playgrounds_directory(base_dir: Path) -> None:
    target = Path(base_dir)
    target.mkdir(parents=True, exist_ok=True)
    args, cwd = terminal_command(str(target))
    _launch(args, cwd=cwd)
