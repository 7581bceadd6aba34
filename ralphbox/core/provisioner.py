# -----------------------------------------------------------------------------
# THE PROVISIONER - IDEMPOTENT CONTAINER SETUP
# -----------------------------------------------------------------------------
# Responsibility: Given a ProvisioningRequest and the current Docker state,
# performs the minimal sequence of actions that ends with a running
# container holding the named volume at the work directory.
#
# Safety Features:
# - Fail fast: nothing is touched if Docker is unreachable
# - Volume preservation: an existing volume is never recreated
# - One name, one container: the old container is removed before a new one
#   is created under the same name
#
# Re-running is always safe, from any partial state. There is no rollback
# and no retry.
# -----------------------------------------------------------------------------

import time
from collections.abc import Callable

from rich.console import Console

from ralphbox.core.plugins import run_plugin_helper
from ralphbox.domain.models import ContainerState, ProvisioningOutcome, ProvisioningRequest
from ralphbox.infra.docker_client import (
    DockerEnvironment,
    DockerOperationError,
    EnvironmentUnavailable,
)

console = Console()

# Grace period after a container starts, before the first exec
READINESS_DELAY_SECONDS = 2

# Advisory lookup for the developer-tool CLI
CLI_PROBE_COMMAND = ["bash", "-c", "command -v claude"]

RecreateDecision = Callable[[str], bool]


class ResourceCreationFailed(Exception):
    """Raised when a volume or container cannot be brought into existence."""

    def __init__(self, message: str, resource: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.resource = resource
        self.cause = cause


class VolumeCreationFailed(ResourceCreationFailed):
    """Raised when the named volume cannot be inspected or created."""

    pass


class ContainerCreationFailed(ResourceCreationFailed):
    """Raised when the target container cannot be removed, created or started."""

    pass


def _never_recreate(container_name: str) -> bool:
    return False


class Provisioner:
    """
    Straight-line decision procedure over an injected DockerEnvironment.

    Holds no state between runs; all durable state lives in Docker.
    """

    def __init__(
        self, env: DockerEnvironment, sleep: Callable[[float], None] | None = None
    ) -> None:
        self._env = env
        self._sleep = sleep or time.sleep

    def provision(
        self,
        request: ProvisioningRequest,
        confirm_recreate: RecreateDecision | None = None,
    ) -> ProvisioningOutcome:
        """
        Reach the requested running-container state.

        Args:
            request: The desired configuration (never mutated).
            confirm_recreate: Called with the container name when it already
                exists. True removes and recreates it, False reuses it.
                Defaults to reuse.

        Returns:
            ProvisioningOutcome describing what was done.

        Raises:
            EnvironmentUnavailable: Docker is unreachable. Nothing was changed.
            VolumeCreationFailed: The volume could not be created.
            ContainerCreationFailed: The container could not be replaced or started.
        """
        decide = confirm_recreate or _never_recreate
        actions: list[str] = []
        name = request.container_name

        # 1. Availability
        if not self._env.is_available():
            raise EnvironmentUnavailable("Docker is not installed or the daemon is not running")
        console.print("[green][PROVISIONER] Docker found[/green]")

        # 2. Existing container: recreate or reuse
        reuse = False
        state = self._inspect_container(name)
        if state is not ContainerState.ABSENT:
            console.print(f"[yellow][PROVISIONER] Container '{name}' already exists.[/yellow]")
            if decide(name):
                self._remove_existing(name, state, actions)
            else:
                console.print("[yellow][PROVISIONER] Using existing container...[/yellow]")
                if state is ContainerState.STOPPED:
                    self._start_existing(name, actions)
                reuse = True

        # 3. Volume, always checked
        volume_created = self._ensure_volume(request.volume_name, actions)

        # 4. New container
        if not reuse:
            self._create_container(request, actions)

        # 5. Readiness grace period
        self._sleep(READINESS_DELAY_SECONDS)

        # 6. Advisory CLI probe
        cli_detected = self._probe_cli(name)

        # 7. Best-effort plugin helper
        auxiliary = run_plugin_helper(self._env, name)
        if not auxiliary.succeeded:
            console.print(f"[yellow][PROVISIONER] Plugin helper warning: {auxiliary.detail}[/yellow]")

        # 8. Outcome
        return ProvisioningOutcome(
            container_name=name,
            volume_name=request.volume_name,
            work_dir=request.work_dir,
            image_reference=request.image_reference,
            container_created=not reuse,
            volume_created=volume_created,
            cli_detected=cli_detected,
            auxiliary=auxiliary,
            actions=actions,
        )

    def _inspect_container(self, name: str) -> ContainerState:
        try:
            return self._env.container_state(name)
        except DockerOperationError as e:
            raise ContainerCreationFailed(
                f"Could not inspect container '{name}': {e}", resource=name, cause=e
            ) from e

    def _remove_existing(self, name: str, state: ContainerState, actions: list[str]) -> None:
        """Stop and remove the existing container so the name is free again."""
        console.print("[yellow][PROVISIONER] Stopping and removing existing container...[/yellow]")

        if state is ContainerState.RUNNING:
            try:
                self._env.stop_container(name)
                actions.append(f"container.stop:{name}")
            except DockerOperationError as e:
                # remove() below decides whether this matters
                console.print(f"[yellow][PROVISIONER] Stop failed, removing anyway: {e}[/yellow]")

        try:
            self._env.remove_container(name)
        except DockerOperationError as e:
            raise ContainerCreationFailed(
                f"Could not remove existing container '{name}': {e}", resource=name, cause=e
            ) from e
        actions.append(f"container.remove:{name}")

        if self._inspect_container(name) is not ContainerState.ABSENT:
            raise ContainerCreationFailed(
                f"Container name '{name}' is still in use after removal", resource=name
            )
        console.print("[green][PROVISIONER] Container removed[/green]")

    def _start_existing(self, name: str, actions: list[str]) -> None:
        console.print("[yellow][PROVISIONER] Starting existing container...[/yellow]")
        try:
            self._env.start_container(name)
        except DockerOperationError as e:
            raise ContainerCreationFailed(
                f"Could not start existing container '{name}': {e}", resource=name, cause=e
            ) from e
        actions.append(f"container.start:{name}")

    def _ensure_volume(self, volume: str, actions: list[str]) -> bool:
        """Create the volume if it is missing. Returns True if it was created."""
        try:
            if self._env.volume_exists(volume):
                console.print(f"[green][PROVISIONER] Volume '{volume}' already exists[/green]")
                return False

            console.print(f"[yellow][PROVISIONER] Creating named volume: {volume}[/yellow]")
            self._env.create_volume(volume)
        except DockerOperationError as e:
            raise VolumeCreationFailed(
                f"Could not create volume '{volume}': {e}", resource=volume, cause=e
            ) from e

        actions.append(f"volume.create:{volume}")
        console.print("[green][PROVISIONER] Volume created[/green]")
        return True

    def _create_container(self, request: ProvisioningRequest, actions: list[str]) -> None:
        name = request.container_name
        console.print("[yellow][PROVISIONER] Starting Docker container...[/yellow]")
        console.print(f"[blue]  Container name: {name}[/blue]")
        console.print(f"[blue]  Image: {request.image_reference}[/blue]")
        console.print(f"[blue]  Volume: {request.volume_name}[/blue]")
        console.print(f"[blue]  Work directory: {request.work_dir}[/blue]")

        try:
            self._env.create_container(
                name,
                image=request.image_reference,
                volume=request.volume_name,
                work_dir=request.work_dir,
            )
        except DockerOperationError as e:
            raise ContainerCreationFailed(
                f"Could not create container '{name}': {e}", resource=name, cause=e
            ) from e

        actions.append(f"container.create:{name}")
        console.print("[green][PROVISIONER] Container started successfully[/green]")

    def _probe_cli(self, name: str) -> bool:
        """Advisory: an inconclusive probe counts as 'not installed'."""
        console.print("[yellow][PROVISIONER] Checking for Claude Code installation...[/yellow]")
        try:
            result = self._env.exec_in_container(name, CLI_PROBE_COMMAND)
        except DockerOperationError as e:
            console.print(f"[dim][PROVISIONER] CLI probe inconclusive: {e}[/dim]")
            return False

        if result.ok:
            console.print("[green][PROVISIONER] Claude Code is already installed[/green]")
            return True

        console.print("[yellow][PROVISIONER] Claude Code not found in container.[/yellow]")
        return False
