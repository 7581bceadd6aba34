# -----------------------------------------------------------------------------
# DOCKER PROVIDER
# -----------------------------------------------------------------------------
# Responsibility: A thin wrapper around the Docker SDK exposing exactly the
# capability set the Provisioner needs (volumes, containers, exec, copy),
# with connection validation and detailed error reporting.
#
# This is the Infrastructure layer. Everything above it talks to the
# DockerEnvironment protocol, so the decision logic can run against an
# in-memory fake without a daemon.
# -----------------------------------------------------------------------------

import io
import os
import posixpath
import tarfile
from typing import Protocol

import docker
import requests
from docker import DockerClient
from docker.errors import DockerException, ImageNotFound, NotFound
from docker.models.containers import Container
from rich.console import Console
from rich.panel import Panel

from ralphbox.domain.models import ContainerState, ExecResult

console = Console()

# Keeps a container alive for later interactive / exec use
KEEPALIVE_COMMAND = ["sleep", "infinity"]

# The only network mode ever used
NETWORK_MODE = "host"

# Docker reports these as up; anything else that exists counts as stopped
_RUNNING_STATUSES = {"running", "restarting"}

# Frozen processes: exec is refused until the container is unpaused
_PAUSED_STATUS = "paused"

# The SDK lets transport errors (timeouts, dropped sockets) through unwrapped
_SDK_ERRORS = (DockerException, requests.RequestException)


class DockerProviderError(Exception):
    """Base class for Docker infrastructure failures."""

    pass


class EnvironmentUnavailable(DockerProviderError):
    """Raised when the Docker daemon cannot be reached. Fatal, never retried."""

    pass


class DockerOperationError(DockerProviderError):
    """Raised when a single Docker API call fails."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class DockerProvider:
    """
    Docker SDK connection holder.

    Connects lazily on first use, through DOCKER_HOST when it is set.
    Fails fast with a clear message if Docker is unavailable; there is no
    auto-wake and no reconnect loop.
    """

    def __init__(self, docker_host: str | None = None) -> None:
        """
        Initialize the Docker provider.

        Args:
            docker_host: Daemon URL. Defaults to the DOCKER_HOST environment variable.
        """
        self._docker_host = docker_host or os.getenv("DOCKER_HOST")
        self._client: DockerClient | None = None

    def _connect(self) -> DockerClient:
        """
        Establish connection to the Docker daemon.

        Raises:
            EnvironmentUnavailable: If the SDK cannot reach the daemon.
        """
        try:
            if self._docker_host:
                client = docker.DockerClient(base_url=self._docker_host)
            else:
                client = docker.from_env()
            client.ping()
        except _SDK_ERRORS as e:
            console.print(
                Panel(
                    "[bold red]CRITICAL: Docker Engine Unavailable[/bold red]\n\n"
                    "1. Install Docker: https://docs.docker.com/get-docker/\n"
                    "2. Start the Docker daemon (or Docker Desktop)\n"
                    "3. Re-run ralphbox",
                    title="SYSTEM HALT",
                    border_style="red",
                )
            )
            raise EnvironmentUnavailable(f"Docker Engine is not available: {e}") from e

        target = self._docker_host or "local Docker"
        console.print(f"[green][DOCKER] Connected to {target}[/green]")
        return client

    def get_client(self) -> DockerClient:
        """
        Get the Docker client, connecting on first use.

        Raises:
            EnvironmentUnavailable: If Docker is not reachable.
        """
        if self._client is None:
            self._client = self._connect()
        return self._client

    def is_connected(self) -> bool:
        """
        Check if Docker is currently reachable.

        Returns:
            True if Docker is connected and responsive.
        """
        try:
            self.get_client().ping()
            return True
        except (DockerProviderError, DockerException, requests.RequestException):
            return False


class DockerEnvironment(Protocol):
    """The capability set the Provisioner and Verifier are allowed to use."""

    def is_available(self) -> bool: ...

    def volume_exists(self, name: str) -> bool: ...

    def create_volume(self, name: str) -> None: ...

    def container_state(self, name: str) -> ContainerState: ...

    def create_container(self, name: str, image: str, volume: str, work_dir: str) -> None: ...

    def start_container(self, name: str) -> None: ...

    def stop_container(self, name: str) -> None: ...

    def remove_container(self, name: str) -> None: ...

    def exec_in_container(self, name: str, command: list[str]) -> ExecResult: ...

    def copy_into_container(
        self, name: str, dest_path: str, content: bytes, mode: int = 0o644
    ) -> None: ...


class DockerSdkEnvironment:
    """DockerEnvironment backed by the real Docker SDK."""

    def __init__(self, provider: DockerProvider | None = None) -> None:
        self._provider = provider or DockerProvider()

    @property
    def client(self) -> DockerClient:
        return self._provider.get_client()

    def is_available(self) -> bool:
        return self._provider.is_connected()

    def _get_container(self, name: str) -> Container:
        try:
            return self.client.containers.get(name)
        except _SDK_ERRORS as e:
            raise DockerOperationError(f"Container '{name}' not available: {e}", cause=e) from e

    # -- volumes ---------------------------------------------------------------

    def volume_exists(self, name: str) -> bool:
        try:
            self.client.volumes.get(name)
            return True
        except NotFound:
            return False
        except _SDK_ERRORS as e:
            raise DockerOperationError(f"Volume inspect failed for '{name}': {e}", cause=e) from e

    def create_volume(self, name: str) -> None:
        try:
            self.client.volumes.create(name=name)
        except _SDK_ERRORS as e:
            raise DockerOperationError(f"Volume create failed for '{name}': {e}", cause=e) from e

    # -- containers ------------------------------------------------------------

    def container_state(self, name: str) -> ContainerState:
        try:
            container = self.client.containers.get(name)
        except NotFound:
            return ContainerState.ABSENT
        except _SDK_ERRORS as e:
            raise DockerOperationError(f"Container inspect failed for '{name}': {e}", cause=e) from e

        if container.status in _RUNNING_STATUSES:
            return ContainerState.RUNNING
        return ContainerState.STOPPED

    def _ensure_image(self, image: str) -> None:
        """Pull image if not present."""
        try:
            self.client.images.get(image)
            console.print(f"[cyan][DOCKER] Image ready: {image}[/cyan]")
        except ImageNotFound:
            console.print(f"[yellow][DOCKER] Pulling: {image}...[/yellow]")
            self.client.images.pull(image)
            console.print(f"[green][DOCKER] Pulled: {image}[/green]")

    def create_container(self, name: str, image: str, volume: str, work_dir: str) -> None:
        try:
            self._ensure_image(image)
            self.client.containers.run(
                image,
                command=KEEPALIVE_COMMAND,
                name=name,
                detach=True,
                volumes={volume: {"bind": work_dir, "mode": "rw"}},
                working_dir=work_dir,
                network_mode=NETWORK_MODE,
            )
        except _SDK_ERRORS as e:
            raise DockerOperationError(f"Container create failed for '{name}': {e}", cause=e) from e

    def start_container(self, name: str) -> None:
        container = self._get_container(name)
        try:
            if container.status == _PAUSED_STATUS:
                container.unpause()
            else:
                container.start()
        except _SDK_ERRORS as e:
            raise DockerOperationError(f"Container start failed for '{name}': {e}", cause=e) from e

    def stop_container(self, name: str) -> None:
        container = self._get_container(name)
        try:
            container.stop()
        except _SDK_ERRORS as e:
            raise DockerOperationError(f"Container stop failed for '{name}': {e}", cause=e) from e

    def remove_container(self, name: str) -> None:
        container = self._get_container(name)
        try:
            if container.status == _PAUSED_STATUS:
                # Docker refuses to remove a paused container
                container.unpause()
                container.stop()
            container.remove()
        except _SDK_ERRORS as e:
            raise DockerOperationError(f"Container remove failed for '{name}': {e}", cause=e) from e

    # -- in-container operations -----------------------------------------------

    def exec_in_container(self, name: str, command: list[str]) -> ExecResult:
        container = self._get_container(name)
        try:
            exit_code, output = container.exec_run(cmd=command)
        except _SDK_ERRORS as e:
            raise DockerOperationError(f"Exec failed in '{name}': {e}", cause=e) from e

        if isinstance(output, bytes):
            output_str = output.decode("utf-8", errors="replace")
        else:
            output_str = str(output or "")
        return ExecResult(exit_code=exit_code, output=output_str)

    def copy_into_container(
        self, name: str, dest_path: str, content: bytes, mode: int = 0o644
    ) -> None:
        container = self._get_container(name)
        directory, filename = posixpath.split(dest_path)
        archive = _single_file_tar(filename, content, mode)
        try:
            accepted = container.put_archive(directory or "/", archive)
        except _SDK_ERRORS as e:
            raise DockerOperationError(f"Copy into '{name}' failed: {e}", cause=e) from e
        if accepted is False:
            raise DockerOperationError(f"Copy into '{name}' was rejected for {dest_path}")


def _single_file_tar(filename: str, content: bytes, mode: int) -> bytes:
    """Create an in-memory tar archive holding one file."""
    tar_buffer = io.BytesIO()

    with tarfile.open(fileobj=tar_buffer, mode="w") as tar:
        info = tarfile.TarInfo(name=filename)
        info.size = len(content)
        info.mode = mode
        tar.addfile(info, io.BytesIO(content))

    tar_buffer.seek(0)
    return tar_buffer.read()
