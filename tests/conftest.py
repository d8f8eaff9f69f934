"""Shared test fixtures for storybook-publisher."""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from storybook_publisher.config import ENV_ALIASES
from storybook_publisher.core.object_store import LocalObjectStore, ObjectNotFoundError
from storybook_publisher.core.process import CommandResult
from storybook_publisher.models.commit import CommitMetadata
from storybook_publisher.models.storage import StoredObject


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Run every test in an empty working directory with no publisher env vars."""
    for name in list(os.environ):
        if name.startswith("STORYBOOKS_") or name in ENV_ALIASES:
            monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return workdir


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def local_store(tmp_dir: Path) -> LocalObjectStore:
    """Provide a fresh LocalObjectStore in a temp directory."""
    return LocalObjectStore(tmp_dir / "bucket")


@pytest.fixture
def commit_sha() -> str:
    """Provide a deterministic test commit hash."""
    return "0123456789abcdef0123456789abcdef01234567"


# ---------------------------------------------------------------------------
# Repository layouts
# ---------------------------------------------------------------------------


@pytest.fixture
def make_tree() -> Callable[[Path, list[str]], Path]:
    """Factory fixture: create files (and their parents) under a root."""

    def _factory(root: Path, files: list[str]) -> Path:
        for relative in files:
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(f"content of {relative}")
        return root

    return _factory


@pytest.fixture
def monorepo(tmp_dir: Path, make_tree: Callable[[Path, list[str]], Path]) -> Path:
    """A monorepo with two storybook packages and one ignored copy."""
    return make_tree(
        tmp_dir / "repo",
        [
            "package.json",
            "packages/pkg-a/.storybook/main.js",
            "packages/pkg-a/src/index.js",
            "packages/pkg-b/.storybook/main.js",
            "packages/pkg-c/src/index.js",
            "node_modules/dep/.storybook/main.js",
        ],
    )


# ---------------------------------------------------------------------------
# Factories and fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def make_metadata() -> Callable[..., CommitMetadata]:
    """Factory fixture: build CommitMetadata with sensible defaults."""

    def _factory(commit: str = "abc123", **overrides: Any) -> CommitMetadata:
        defaults: dict[str, Any] = {
            "commit": commit,
            "branch": "main",
            "summary": "Add button story",
            "description": "Longer description",
            "datestamp": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        }
        defaults.update(overrides)
        return CommitMetadata(**defaults)

    return _factory


@pytest.fixture
def fake_runner() -> Callable[..., CommandResult]:
    """A command runner that records calls and creates a build output.

    Each call is appended to ``fake_runner.calls`` as ``(command, cwd)``.
    """
    calls: list[tuple[str, Path]] = []

    def _runner(command: str, cwd: Path, *, stream: bool = False) -> CommandResult:
        calls.append((command, Path(cwd)))
        if "build-storybook" in command:
            output = Path(cwd) / "storybook-static"
            output.mkdir(parents=True, exist_ok=True)
            (output / "index.html").write_text(f"<html>{Path(cwd).name}</html>")
            (output / "assets").mkdir(exist_ok=True)
            (output / "assets" / "main.js").write_text("console.log(1)")
        return CommandResult(args=command.split(), cwd=Path(cwd), exit_code=0, stdout="", stderr="")

    _runner.calls = calls  # type: ignore[attr-defined]
    return _runner


class MemoryObjectStore:
    """In-memory ObjectStore with controllable creation times.

    Optionally slows every upload down and records the peak number of
    uploads in flight, and fails uploads for chosen keys.
    """

    def __init__(self, delay: float = 0.0, fail_keys: set[str] | None = None) -> None:
        self.objects: dict[str, tuple[bytes, str, datetime]] = {}
        self.puts: list[str] = []
        self.delay = delay
        self.fail_keys = fail_keys or set()
        self.in_flight = 0
        self.peak_in_flight = 0
        self._lock = threading.Lock()

    def add(self, key: str, data: bytes, created_at: datetime) -> None:
        self.objects[key] = (data, "application/json", created_at)

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> StoredObject:
        created_at = datetime.now(timezone.utc)
        with self._lock:
            self.objects[key] = (data, content_type, created_at)
            self.puts.append(key)
        return StoredObject(key=key, created_at=created_at, size=len(data))

    def upload_file(self, path: Path, key: str, content_type: str | None = None) -> StoredObject:
        with self._lock:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if key in self.fail_keys:
                raise OSError(f"simulated failure for {key}")
            return self.put(key, Path(path).read_bytes(), content_type or "application/octet-stream")
        finally:
            with self._lock:
                self.in_flight -= 1

    def list(self, prefix: str) -> list[StoredObject]:
        return [
            StoredObject(key=key, created_at=created_at, size=len(data))
            for key, (data, _, created_at) in sorted(self.objects.items())
            if key.startswith(prefix)
        ]

    def get(self, key: str) -> bytes:
        try:
            return self.objects[key][0]
        except KeyError:
            raise ObjectNotFoundError(key) from None

    def content_type(self, key: str) -> str:
        return self.objects[key][1]


@pytest.fixture
def memory_store() -> MemoryObjectStore:
    """Provide an empty in-memory object store."""
    return MemoryObjectStore()


@pytest.fixture
def make_memory_store() -> Callable[..., MemoryObjectStore]:
    """Factory fixture: build a MemoryObjectStore with custom behaviour."""
    return MemoryObjectStore
