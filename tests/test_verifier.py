# =============================================================================
# RALPHBOX VERIFIER TESTS
# =============================================================================
# Tests for the post-setup validation checks.
# =============================================================================

import pytest

from conftest import FakeContainer
from ralphbox.core.provisioner import READINESS_DELAY_SECONDS, Provisioner
from ralphbox.core.verifier import CheckStatus, Verifier
from ralphbox.domain.models import ExecResult, ProvisioningRequest
from ralphbox.infra.docker_client import DockerOperationError


@pytest.fixture
def request_c1():
    return ProvisioningRequest(container_name="c1", volume_name="v1", image_reference="img:tag")


@pytest.fixture
def provisioned(fake_env, no_sleep, request_c1):
    """Environment after a successful provisioning run."""
    Provisioner(fake_env, sleep=no_sleep).provision(request_c1)
    fake_env.calls.clear()
    no_sleep.reset_mock()
    return fake_env


def _status(report, name):
    return next(check.status for check in report.checks if check.name == name)


class TestVerifierHappyPath:
    """Verification of a healthy container."""

    def test_all_checks_pass(self, provisioned, no_sleep, request_c1):
        """A freshly provisioned container passes everything."""
        report = Verifier(provisioned, sleep=no_sleep).verify(request_c1)

        assert report.passed is True
        assert report.count(CheckStatus.FAIL) == 0
        assert report.count(CheckStatus.WARN) == 0

    def test_check_names(self, provisioned, no_sleep, request_c1):
        """Checks run in a stable order."""
        report = Verifier(provisioned, sleep=no_sleep).verify(request_c1)

        assert [check.name for check in report.checks] == [
            "Docker daemon",
            "Container running",
            "Volume exists",
            "Working directory",
            "Node.js",
            "npm",
            "Volume write/read",
            "Restart persistence",
            "Tool: bash",
            "Tool: git",
            "Tool: curl",
        ]

    def test_versions_reported(self, provisioned, no_sleep, request_c1):
        """Node and npm versions appear in the details."""
        report = Verifier(provisioned, sleep=no_sleep).verify(request_c1)
        details = {check.name: check.detail for check in report.checks}

        assert details["Node.js"] == "v20.11.0"
        assert details["npm"] == "10.2.4"

    def test_restart_cycle(self, provisioned, no_sleep, request_c1):
        """Restart check stops and starts the container, then waits."""
        Verifier(provisioned, sleep=no_sleep).verify(request_c1)

        assert provisioned.calls_to("stop_container") == [("stop_container", "c1")]
        assert provisioned.calls_to("start_container") == [("start_container", "c1")]
        no_sleep.assert_called_once_with(READINESS_DELAY_SECONDS)
        assert provisioned.containers["c1"].running is True

    def test_no_restart(self, provisioned, no_sleep, request_c1):
        """restart=False skips the stop/start cycle."""
        report = Verifier(provisioned, sleep=no_sleep).verify(request_c1, restart=False)

        assert provisioned.calls_to("stop_container") == []
        assert "Restart persistence" not in [check.name for check in report.checks]

    def test_probe_file_cleaned_up(self, provisioned, no_sleep, request_c1):
        """The probe file does not linger in the user's volume."""
        provisioned.volumes["v1"]["mine.txt"] = "user data\n"

        Verifier(provisioned, sleep=no_sleep).verify(request_c1)

        assert provisioned.volumes["v1"] == {"mine.txt": "user data\n"}


class TestVerifierFailures:
    """Verification of broken setups."""

    def test_docker_unavailable(self, fake_env, no_sleep, request_c1):
        """Unreachable Docker fails and stops."""
        fake_env.available = False

        report = Verifier(fake_env, sleep=no_sleep).verify(request_c1)

        assert report.passed is False
        assert len(report.checks) == 1

    def test_container_missing(self, fake_env, no_sleep, request_c1):
        """Missing container fails, volume is still reported."""
        report = Verifier(fake_env, sleep=no_sleep).verify(request_c1)

        assert report.passed is False
        assert _status(report, "Container running") is CheckStatus.FAIL
        assert _status(report, "Volume exists") is CheckStatus.FAIL
        assert fake_env.calls_to("exec_in_container") == []

    def test_container_stopped(self, provisioned, no_sleep, request_c1):
        """A stopped container fails the running check."""
        provisioned.containers["c1"].running = False

        report = Verifier(provisioned, sleep=no_sleep).verify(request_c1)

        assert _status(report, "Container running") is CheckStatus.FAIL
        assert _status(report, "Volume exists") is CheckStatus.PASS

    def test_wrong_work_dir(self, fake_env, no_sleep, request_c1):
        """A container started elsewhere fails the working directory check."""
        fake_env.volumes["v1"] = {}
        fake_env.containers["c1"] = FakeContainer("img:tag", "v1", "/app")

        report = Verifier(fake_env, sleep=no_sleep).verify(request_c1)

        assert _status(report, "Working directory") is CheckStatus.FAIL
        assert report.passed is False

    def test_missing_tools_only_warn(self, provisioned, no_sleep, request_c1):
        """Optional tools produce warnings, not failures."""
        provisioned.tools = {"bash"}

        report = Verifier(provisioned, sleep=no_sleep).verify(request_c1)

        assert report.passed is True
        assert _status(report, "Tool: git") is CheckStatus.WARN
        assert _status(report, "Tool: curl") is CheckStatus.WARN

    def test_restart_failure(self, provisioned, no_sleep, request_c1):
        """A container that cannot be restarted fails the persistence check."""
        provisioned.fail_on.add("start_container")

        report = Verifier(provisioned, sleep=no_sleep).verify(request_c1)

        assert _status(report, "Restart persistence") is CheckStatus.FAIL

    def test_verify_file_removed_after_failed_restart(
        self, provisioned, no_sleep, request_c1, monkeypatch
    ):
        """A restart that leaves the container down still cleans the volume."""
        start = provisioned.start_container
        attempts = []

        def start_once_failing(name):
            attempts.append(name)
            if len(attempts) == 1:
                raise DockerOperationError("start failed (simulated)")
            start(name)

        monkeypatch.setattr(provisioned, "start_container", start_once_failing)

        report = Verifier(provisioned, sleep=no_sleep).verify(request_c1)

        assert _status(report, "Restart persistence") is CheckStatus.FAIL
        assert attempts == ["c1", "c1"]
        assert provisioned.containers["c1"].running is True
        assert provisioned.volumes["v1"] == {}

    def test_verify_file_removed_after_mismatch(self, provisioned, no_sleep, request_c1, monkeypatch):
        """A file that reads back wrong is still deleted."""
        original_exec = provisioned.exec_in_container

        def garbled_cat(name, command):
            result = original_exec(name, command)
            if command[0] == "cat":
                return ExecResult(exit_code=0, output="garbled\n")
            return result

        monkeypatch.setattr(provisioned, "exec_in_container", garbled_cat)

        report = Verifier(provisioned, sleep=no_sleep).verify(request_c1)

        assert _status(report, "Volume write/read") is CheckStatus.FAIL
        assert provisioned.volumes["v1"] == {}
