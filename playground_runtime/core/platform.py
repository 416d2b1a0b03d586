import os
import platform
import sys

IS_WINDOWS = sys.platform == "win32"
IS_MACOS = sys.platform == "darwin"

_ARCH_ALIASES = {"amd64": "x64", "x86_64": "x64", "aarch64": "arm64", "arm64": "arm64"}


def current_platform() -> str:
    """``<os>-<arch>`` for the host, e.g. ``darwin-arm64`` or ``linux-x64``."""
    os_name = "windows" if IS_WINDOWS else "darwin" if IS_MACOS else "linux"
    arch = _ARCH_ALIASES.get(platform.machine().lower(), "x64")
    return f"{os_name}-{arch}"


def dev_shell() -> str:
    # asyncio's shell subprocesses use these same interpreters
    if IS_WINDOWS:
        return os.environ.get("COMSPEC", "cmd.exe")
    return "/bin/sh"
