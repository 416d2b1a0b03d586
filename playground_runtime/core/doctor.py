from __future__ import annotations

import shutil
from dataclasses import dataclass

TOOLS: tuple[tuple[str, bool, str], ...] = (
    ("git", True, "Fix: install git (brew install git / apt install git / winget install Git.Git)"),
    ("docker", False, "Fix: install Docker Desktop or docker-ce to use container playgrounds"),
    ("code", False, "Optional: install the VS Code 'code' CLI for open-in-editor"),
)


@dataclass
class ToolCheck:
    name: str
    found: bool
    required: bool
    path: str | None = None
    fix: str | None = None


def run_doctor() -> list[ToolCheck]:
    checks: list[ToolCheck] = []
    for name, required, fix in TOOLS:
        path = shutil.which(name)
        checks.append(ToolCheck(name=name, found=bool(path), required=required, path=path, fix=None if path else fix))
    return checks


def main() -> None:
    missing = [check for check in run_doctor() if not check.found]
    if not missing:
        print("[doctor] all good")
        return
    for check in missing:
        label = "missing" if check.required else "not found"
        print(f"[doctor] {check.name}: {label} ({check.fix})")


if __name__ == "__main__":
    main()
