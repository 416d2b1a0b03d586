from __future__ import annotations


class PlaygroundError(Exception):
    """Base for failures surfaced to callers of the playground runtime."""

    err_type = "server_error"
    status_code = 500

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class InvalidInputError(PlaygroundError):
    err_type = "invalid_request_error"
    status_code = 400


class NoDevCommandError(InvalidInputError):
    def __init__(self, playground_id: str, attempted: list[str]) -> None:
        detail = "; ".join(attempted) if attempted else "no sources available"
        super().__init__(
            f"No dev command configured for {playground_id}. Tried: {detail}.",
            code="no_dev_command",
        )
        self.playground_id = playground_id
        self.attempted = attempted


class ToolNotFoundError(PlaygroundError):
    err_type = "tool_not_found"
    status_code = 424

    def __init__(self, tool: str) -> None:
        super().__init__(f"{tool} not found in PATH", code=tool)
        self.tool = tool


class PlaygroundNotFoundError(PlaygroundError):
    err_type = "not_found"
    status_code = 404


class CatalogAppNotFoundError(PlaygroundNotFoundError):
    def __init__(self, app_id: str) -> None:
        super().__init__(f'App with id "{app_id}" not found in catalog', code="catalog_app")
        self.app_id = app_id


class AlreadyInstalledError(PlaygroundError):
    err_type = "already_installed"
    status_code = 409


class ExternalToolError(PlaygroundError):
    err_type = "external_tool_error"
    status_code = 502

    def __init__(self, command: list[str] | str, returncode: int | None, output: str = "") -> None:
        rendered = command if isinstance(command, str) else " ".join(command)
        detail = output.strip()
        if len(detail) > 1400:
            detail = detail[:1400] + "... [truncated]"
        message = f"`{rendered}` failed with exit code {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.output = output


class StorageError(PlaygroundError):
    err_type = "io_error"
    status_code = 500
