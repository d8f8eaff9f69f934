"""Build pipeline models — packages, build outputs, and upload work items."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class PackageRef(BaseModel):
    """A package directory that carries a Storybook config marker."""

    model_config = ConfigDict(frozen=True)

    path: Path

    @property
    def name(self) -> str:
        return self.path.name


class BuildOutput(BaseModel):
    """A package's Storybook build directory (e.g. ``pkg-a/storybook-static``).

    The package name is the basename of the build directory's parent; it
    names the remote subpath the build is uploaded to.
    """

    model_config = ConfigDict(frozen=True)

    path: Path

    @property
    def name(self) -> str:
        return self.path.parent.name


class BuildResult(BaseModel):
    """Outcome of building one package."""

    model_config = ConfigDict(frozen=True)

    package: PackageRef
    commands: list[str] = Field(default_factory=list)
    duration_seconds: float = 0.0


class UploadTask(BaseModel):
    """One file to upload to one destination key."""

    model_config = ConfigDict(frozen=True)

    source: Path
    destination: str


class UploadReport(BaseModel):
    """Summary of one completed upload batch."""

    model_config = ConfigDict(frozen=True)

    build_path: Path
    destination_prefix: str
    keys: list[str] = Field(default_factory=list)
    total_bytes: int = 0

    @property
    def file_count(self) -> int:
        return len(self.keys)


class PublishedCommit(BaseModel):
    """Keys written by the metadata publisher for one commit."""

    model_config = ConfigDict(frozen=True)

    commit: str
    metadata_key: str
    index_key: str
    base_path: str
