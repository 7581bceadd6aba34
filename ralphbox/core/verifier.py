# -----------------------------------------------------------------------------
# THE VERIFIER - POST-SETUP CHECKS
# -----------------------------------------------------------------------------
# Responsibility: Black-box validation of a provisioned container through the
# same DockerEnvironment the Provisioner uses. Every check produces a
# CheckResult; nothing here raises once the environment is reachable.
#
# Checks:
# - container running, volume present
# - working directory, Node.js and npm
# - volume write/read, persistence across a stop/start cycle
# - optional tools (bash, git, curl) -> warnings only
# -----------------------------------------------------------------------------

import time
import uuid
from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, Field
from rich.console import Console

from ralphbox.core.provisioner import READINESS_DELAY_SECONDS
from ralphbox.domain.models import ContainerState, ExecResult, ProvisioningRequest
from ralphbox.infra.docker_client import DockerEnvironment, DockerOperationError

console = Console()

EXPECTED_TOOLS = ["bash", "git", "curl"]
PROBE_CONTENT = "ralphbox verification data"


class CheckStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class CheckResult(BaseModel):
    """Outcome of a single verification check."""

    name: str
    status: CheckStatus
    detail: str = ""


class VerificationReport(BaseModel):
    """All checks run against one container, in order."""

    container_name: str
    volume_name: str
    checks: list[CheckResult] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(check.status is not CheckStatus.FAIL for check in self.checks)

    def count(self, status: CheckStatus) -> int:
        return sum(1 for check in self.checks if check.status is status)


class Verifier:
    """Runs the setup validation suite against a live container."""

    def __init__(
        self, env: DockerEnvironment, sleep: Callable[[float], None] | None = None
    ) -> None:
        self._env = env
        self._sleep = sleep or time.sleep

    def verify(self, request: ProvisioningRequest, restart: bool = True) -> VerificationReport:
        """
        Validate the container described by request.

        Args:
            request: Names and work directory to check.
            restart: Also stop/start the container and confirm data survives.

        Returns:
            VerificationReport. Inspect .passed for the verdict.
        """
        report = VerificationReport(
            container_name=request.container_name, volume_name=request.volume_name
        )
        name = request.container_name

        if not self._env.is_available():
            self._record(report, "Docker daemon", CheckStatus.FAIL, "Docker is not reachable")
            return report
        self._record(report, "Docker daemon", CheckStatus.PASS, "Docker daemon is running")

        if not self._check_running(report, name):
            # Nothing else can be exec'd
            self._check_volume(report, request.volume_name)
            return report
        self._check_volume(report, request.volume_name)

        self._check_output(report, name, "Working directory", ["pwd"], expected=request.work_dir)
        self._check_output(report, name, "Node.js", ["node", "--version"])
        self._check_output(report, name, "npm", ["npm", "--version"])

        probe_path = f"{request.work_dir.rstrip('/')}/.ralphbox-verify-{uuid.uuid4().hex[:8]}"
        try:
            if self._check_persistence(report, name, probe_path) and restart:
                self._check_restart(report, name, probe_path)
        finally:
            self._remove_probe(name, probe_path)

        for tool in EXPECTED_TOOLS:
            result = self._exec(name, ["which", tool])
            if result.ok:
                self._record(report, f"Tool: {tool}", CheckStatus.PASS, result.output.strip())
            else:
                self._record(report, f"Tool: {tool}", CheckStatus.WARN, "not available (optional)")

        return report

    def _record(self, report: VerificationReport, name: str, status: CheckStatus, detail: str) -> None:
        report.checks.append(CheckResult(name=name, status=status, detail=detail))
        style = {CheckStatus.PASS: "green", CheckStatus.FAIL: "red", CheckStatus.WARN: "yellow"}[status]
        console.print(f"[{style}][VERIFIER] {status.value.upper()}: {name} - {detail}[/{style}]")

    def _exec(self, name: str, command: list[str]) -> ExecResult:
        """Run a command, mapping API errors to a failed result."""
        try:
            return self._env.exec_in_container(name, command)
        except DockerOperationError as e:
            return ExecResult(exit_code=-1, output=str(e))

    def _check_running(self, report: VerificationReport, name: str) -> bool:
        try:
            state = self._env.container_state(name)
        except DockerOperationError as e:
            self._record(report, "Container running", CheckStatus.FAIL, str(e))
            return False

        if state is ContainerState.RUNNING:
            self._record(report, "Container running", CheckStatus.PASS, f"'{name}' is running")
            return True
        self._record(report, "Container running", CheckStatus.FAIL, f"'{name}' is {state.value}")
        return False

    def _check_volume(self, report: VerificationReport, volume: str) -> None:
        try:
            exists = self._env.volume_exists(volume)
        except DockerOperationError as e:
            self._record(report, "Volume exists", CheckStatus.FAIL, str(e))
            return

        if exists:
            self._record(report, "Volume exists", CheckStatus.PASS, f"'{volume}' is inspectable")
        else:
            self._record(report, "Volume exists", CheckStatus.FAIL, f"'{volume}' does not exist")

    def _check_output(
        self,
        report: VerificationReport,
        name: str,
        label: str,
        command: list[str],
        expected: str | None = None,
    ) -> None:
        result = self._exec(name, command)
        output = result.output.strip()
        if not result.ok:
            self._record(report, label, CheckStatus.FAIL, output or f"exit code {result.exit_code}")
        elif expected is not None and output != expected:
            self._record(report, label, CheckStatus.FAIL, f"got {output!r}, expected {expected!r}")
        else:
            self._record(report, label, CheckStatus.PASS, output)

    def _read_probe(self, name: str, probe_path: str) -> str:
        return self._exec(name, ["cat", probe_path]).output.strip()

    def _check_persistence(self, report: VerificationReport, name: str, probe_path: str) -> bool:
        written = self._exec(name, ["bash", "-c", f"echo '{PROBE_CONTENT}' > {probe_path}"])
        if not written.ok:
            self._record(report, "Volume write/read", CheckStatus.FAIL, "could not write to volume")
            return False

        if self._read_probe(name, probe_path) != PROBE_CONTENT:
            self._record(report, "Volume write/read", CheckStatus.FAIL, "content mismatch")
            return False

        self._record(report, "Volume write/read", CheckStatus.PASS, probe_path)
        return True

    def _remove_probe(self, name: str, probe_path: str) -> None:
        """Delete the probe file, starting the container once more if a restart left it down."""
        try:
            if self._env.container_state(name) is not ContainerState.RUNNING:
                self._env.start_container(name)
        except DockerOperationError as e:
            console.print(f"[yellow][VERIFIER] Could not remove {probe_path}: {e}[/yellow]")
            return

        removed = self._exec(name, ["rm", "-f", probe_path])
        if not removed.ok:
            detail = removed.output.strip() or f"exit code {removed.exit_code}"
            console.print(f"[yellow][VERIFIER] Could not remove {probe_path}: {detail}[/yellow]")

    def _check_restart(self, report: VerificationReport, name: str, probe_path: str) -> None:
        try:
            self._env.stop_container(name)
            self._env.start_container(name)
        except DockerOperationError as e:
            self._record(report, "Restart persistence", CheckStatus.FAIL, str(e))
            return

        self._sleep(READINESS_DELAY_SECONDS)

        if self._read_probe(name, probe_path) == PROBE_CONTENT:
            self._record(report, "Restart persistence", CheckStatus.PASS, "data persisted after restart")
        else:
            self._record(report, "Restart persistence", CheckStatus.FAIL, "data lost after restart")
