"""
Pytest configuration and fixtures for ralphbox tests.
"""

import posixpath
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ralphbox.domain.models import ContainerState, ExecResult  # noqa: E402
from ralphbox.infra.docker_client import DockerOperationError  # noqa: E402

MUTATING_CALLS = {
    "create_volume",
    "create_container",
    "start_container",
    "stop_container",
    "remove_container",
    "exec_in_container",
    "copy_into_container",
}


@dataclass
class FakeContainer:
    """In-memory stand-in for a Docker container."""

    image: str
    volume: str
    work_dir: str
    running: bool = True


@dataclass
class FakeDockerEnvironment:
    """
    In-memory DockerEnvironment for unit testing.

    Volumes hold files keyed by path relative to their mount point, so data
    written through one container is visible from the next one that mounts
    the same volume. Every call is recorded in `calls`.

    Configure failures by listing method names in `fail_on`.
    """

    available: bool = True
    cli_installed: bool = False
    helper_exit_code: int = 0
    tools: set[str] = field(default_factory=lambda: {"bash", "git", "curl"})
    volumes: dict[str, dict[str, str]] = field(default_factory=dict)
    containers: dict[str, FakeContainer] = field(default_factory=dict)
    copied: dict[tuple[str, str], tuple[bytes, int]] = field(default_factory=dict)
    fail_on: set[str] = field(default_factory=set)
    calls: list[tuple] = field(default_factory=list)

    # -- helpers -----------------------------------------------------------------

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self.fail_on:
            raise DockerOperationError(f"{method} failed (simulated)")

    def calls_to(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]

    @property
    def mutations(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in MUTATING_CALLS]

    def _running(self, name: str) -> FakeContainer:
        container = self.containers.get(name)
        if container is None:
            raise DockerOperationError(f"No such container: {name}")
        if not container.running:
            raise DockerOperationError(f"Container {name} is not running")
        return container

    def _volume_key(self, container: FakeContainer, path: str) -> str | None:
        prefix = container.work_dir.rstrip("/") + "/"
        if path.startswith(prefix):
            return path[len(prefix):]
        return None

    # -- capability set ------------------------------------------------------------

    def is_available(self) -> bool:
        self.calls.append(("is_available",))
        return self.available

    def volume_exists(self, name: str) -> bool:
        self._record("volume_exists", name)
        return name in self.volumes

    def create_volume(self, name: str) -> None:
        self._record("create_volume", name)
        self.volumes.setdefault(name, {})

    def container_state(self, name: str) -> ContainerState:
        self._record("container_state", name)
        container = self.containers.get(name)
        if container is None:
            return ContainerState.ABSENT
        return ContainerState.RUNNING if container.running else ContainerState.STOPPED

    def create_container(self, name: str, image: str, volume: str, work_dir: str) -> None:
        self._record("create_container", name, image, volume, work_dir)
        if name in self.containers:
            raise DockerOperationError(f"Conflict. The container name '{name}' is already in use")
        self.volumes.setdefault(volume, {})
        self.containers[name] = FakeContainer(image=image, volume=volume, work_dir=work_dir)

    def start_container(self, name: str) -> None:
        self._record("start_container", name)
        if name not in self.containers:
            raise DockerOperationError(f"No such container: {name}")
        self.containers[name].running = True

    def stop_container(self, name: str) -> None:
        self._record("stop_container", name)
        if name not in self.containers:
            raise DockerOperationError(f"No such container: {name}")
        self.containers[name].running = False

    def remove_container(self, name: str) -> None:
        self._record("remove_container", name)
        container = self.containers.get(name)
        if container is None:
            raise DockerOperationError(f"No such container: {name}")
        if container.running:
            raise DockerOperationError(f"You cannot remove a running container {name}")
        del self.containers[name]

    def exec_in_container(self, name: str, command: list[str]) -> ExecResult:
        self._record("exec_in_container", name, tuple(command))
        container = self._running(name)
        files = self.volumes[container.volume]

        if command == ["bash", "-c", "command -v claude"]:
            if self.cli_installed:
                return ExecResult(exit_code=0, output="/usr/local/bin/claude\n")
            return ExecResult(exit_code=1)

        if command[0] == "bash" and len(command) == 2:
            if (name, command[1]) not in self.copied:
                return ExecResult(exit_code=127, output=f"bash: {command[1]}: No such file")
            return ExecResult(exit_code=self.helper_exit_code, output="Checking for Claude Code CLI...\n")

        if command[:2] == ["bash", "-c"] and ">" in command[2]:
            # echo 'text' > path
            text, path = command[2].split(">", 1)
            key = self._volume_key(container, path.strip())
            if key is None:
                return ExecResult(exit_code=1, output="read-only")
            files[key] = shlex.split(text)[1] + "\n"
            return ExecResult(exit_code=0)

        program = command[0]
        if program == "pwd":
            return ExecResult(exit_code=0, output=container.work_dir + "\n")
        if program == "node":
            return ExecResult(exit_code=0, output="v20.11.0\n")
        if program == "npm":
            return ExecResult(exit_code=0, output="10.2.4\n")
        if program == "which":
            if command[1] in self.tools:
                return ExecResult(exit_code=0, output=f"/usr/bin/{command[1]}\n")
            return ExecResult(exit_code=1)
        if program == "cat":
            key = self._volume_key(container, command[1])
            if key is None or key not in files:
                return ExecResult(exit_code=1, output="No such file or directory")
            return ExecResult(exit_code=0, output=files[key])
        if program == "rm":
            key = self._volume_key(container, command[-1])
            files.pop(key, None)
            return ExecResult(exit_code=0)

        return ExecResult(exit_code=127, output=f"{program}: command not found")

    def copy_into_container(
        self, name: str, dest_path: str, content: bytes, mode: int = 0o644
    ) -> None:
        self._record("copy_into_container", name, dest_path)
        self._running(name)
        self.copied[(name, posixpath.normpath(dest_path))] = (content, mode)


@pytest.fixture
def fake_env():
    """Empty, reachable Docker environment."""
    return FakeDockerEnvironment()


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    return MagicMock()


@pytest.fixture
def mock_docker_client():
    """Mock Docker SDK client for testing."""
    client = MagicMock()
    client.ping.return_value = True
    client.images.get.return_value = MagicMock()

    container = MagicMock()
    container.short_id = "abc123"
    container.status = "running"
    container.exec_run.return_value = (0, b"Success")
    container.put_archive.return_value = True

    client.containers.get.return_value = container
    client.containers.run.return_value = container

    return client
