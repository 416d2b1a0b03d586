from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class GithubPlayground(_Record):
    """Clone-backed playground: a shallow working copy under the github dir."""

    type: Literal["github"] = "github"
    id: str
    repo_url: str = Field(alias="repoUrl")
    path: str
    created_at: str = Field(alias="createdAt")
    run_command: str | None = Field(default=None, alias="runCommand")
    port: int | None = None
    app_store_id: str | None = Field(default=None, alias="appStoreId")


class DockerPlayground(_Record):
    """Container-backed playground: a detached container started from an image."""

    type: Literal["docker"] = "docker"
    id: str
    image: str
    container_id: str = Field(alias="containerId")
    port: int | None = None
    created_at: str = Field(alias="createdAt")


PlaygroundRecord = Annotated[Union[GithubPlayground, DockerPlayground], Field(discriminator="type")]

RECORD = TypeAdapter(PlaygroundRecord)


class ContainerStatus(str, enum.Enum):
    RUNNING = "Running"
    STOPPED = "Stopped"
    UNKNOWN = "Unknown"


@dataclass
class PlaygroundView:
    record: GithubPlayground | DockerPlayground
    status: ContainerStatus | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = self.record.to_json_dict()
        if self.status is not None:
            payload["status"] = self.status.value
        return payload


class AppCatalogEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str
    repo_url: str = Field(
        validation_alias=AliasChoices("repoUrl", "sourceUrl", "repo_url"),
        serialization_alias="repoUrl",
    )
    default_run_command: str | None = Field(default=None, alias="defaultRunCommand")
    default_port: int | None = Field(default=None, alias="defaultPort")
    delete_command: str | None = Field(default=None, alias="deleteCommand")

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CreateGithubRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repo_url: str = Field(alias="repoUrl")
    run_command: str | None = Field(default=None, alias="runCommand")
    port: int | None = None


class CreateDockerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image: str
    port: int | None = None
    extra_args: str | list[str] | None = Field(default=None, alias="extraArgs")


class StartDevRequest(BaseModel):
    command: str | None = None
