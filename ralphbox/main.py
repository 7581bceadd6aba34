# -----------------------------------------------------------------------------
# RALPHBOX - COMMAND LINE INTERFACE
# -----------------------------------------------------------------------------
# Responsibility: The entry point. Reads configuration (environment, .env,
# flags), drives the Provisioner or Verifier, and prints the results.
#
# Commands:
# - setup (default): create/reuse the container and volume
# - verify: run the post-setup validation checks
# - examples: show configuration examples
#
# Environment Variables:
# - CLAUDE_CONTAINER_NAME (default: claude-code-ralph)
# - CLAUDE_IMAGE (default: node:20-bookworm)
# - CLAUDE_VOLUME (default: claude-code-data)
# - DOCKER_HOST: optional daemon URL
# -----------------------------------------------------------------------------

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console, Group
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table
from rich.text import Text

from ralphbox.core.plugins import PLUGIN_COMMANDS
from ralphbox.core.provisioner import Provisioner, ResourceCreationFailed
from ralphbox.core.verifier import CheckStatus, VerificationReport, Verifier
from ralphbox.domain.models import (
    ENV_CONTAINER_NAME,
    ENV_IMAGE,
    ENV_VOLUME_NAME,
    ProvisioningOutcome,
    ProvisioningRequest,
)
from ralphbox.infra.docker_client import DockerSdkEnvironment, EnvironmentUnavailable

console = Console()

SYSTEM_NAME = "Claude Code + Smart Ralph Docker Setup"

EXAMPLES = [
    ("Default configuration", "ralphbox"),
    ("Custom container name", f"{ENV_CONTAINER_NAME}=my-claude ralphbox"),
    ("Use Alpine Linux (smaller image)", f"{ENV_IMAGE}=node:20-alpine ralphbox"),
    ("Custom volume name", f"{ENV_VOLUME_NAME}=my-claude-data ralphbox"),
    (
        "All custom settings",
        f"{ENV_CONTAINER_NAME}=dev-claude {ENV_IMAGE}=node:20-alpine "
        f"{ENV_VOLUME_NAME}=dev-data ralphbox",
    ),
    ("Always start fresh (no prompt)", "ralphbox setup --recreate"),
    ("Validate an existing setup", "ralphbox verify"),
]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ralphbox",
        description="Set up a Docker container for Claude Code with Smart Ralph plugins.",
    )
    sub = parser.add_subparsers(dest="command")

    def add_target_options(p: argparse.ArgumentParser) -> None:
        p.add_argument("--name", help=f"Container name (env: {ENV_CONTAINER_NAME})")
        p.add_argument("--image", help=f"Base image for a new container (env: {ENV_IMAGE})")
        p.add_argument("--volume", help=f"Named volume (env: {ENV_VOLUME_NAME})")

    setup = sub.add_parser("setup", help="Create or reuse the container and volume (default)")
    add_target_options(setup)
    choice = setup.add_mutually_exclusive_group()
    choice.add_argument(
        "--recreate",
        dest="recreate",
        action="store_true",
        default=None,
        help="Remove an existing container and start fresh",
    )
    choice.add_argument(
        "--reuse",
        dest="recreate",
        action="store_false",
        default=None,
        help="Keep an existing container as-is",
    )

    verify = sub.add_parser("verify", help="Validate a provisioned container")
    add_target_options(verify)
    verify.add_argument(
        "--no-restart",
        dest="restart",
        action="store_false",
        help="Skip the stop/start persistence check",
    )

    sub.add_parser("examples", help="Show configuration examples")
    return parser


def request_from_args(args: argparse.Namespace) -> ProvisioningRequest:
    """Merge command-line flags over the environment."""
    return ProvisioningRequest.from_env(
        container_name=getattr(args, "name", None),
        image_reference=getattr(args, "image", None),
        volume_name=getattr(args, "volume", None),
    )


def recreate_decision(recreate: bool | None):
    """
    Build the recreate-vs-reuse decision function.

    An explicit flag always wins. Otherwise ask on a terminal, and reuse
    when nobody is there to answer.
    """
    if recreate is not None:
        return lambda name: recreate

    def ask(name: str) -> bool:
        if not sys.stdin.isatty():
            return False
        return Confirm.ask("Do you want to remove it and start fresh?", default=False)

    return ask


def render_summary(outcome: ProvisioningOutcome) -> Panel:
    """Build the final 'Setup Complete' panel."""
    name = outcome.container_name
    status = "newly created" if outcome.container_created else "reused existing container"
    lines = [
        Text("Container Information:", style="bold blue"),
        Text(f"  Name: {name}"),
        Text(f"  Volume: {outcome.volume_name}"),
        Text(f"  Work Directory: {outcome.work_dir}"),
        Text(f"  Status: {status}"),
        Text(""),
        Text("To access the container:", style="bold blue"),
        Text(f"  docker exec -it {name} bash", style="green"),
        Text(""),
    ]

    if not outcome.cli_detected:
        lines += [
            Text("Claude Code not found in container.", style="yellow"),
            Text("Please install Claude Code inside the container manually, then", style="yellow"),
            Text("follow the Claude Code installation instructions.", style="yellow"),
            Text(""),
        ]

    lines.append(Text("After Claude Code is installed, run these commands:", style="bold blue"))
    lines += [Text(f"  {cmd}", style="green") for cmd in PLUGIN_COMMANDS]
    lines += [
        Text(""),
        Text("To stop the container:", style="bold blue"),
        Text(f"  docker stop {name}", style="green"),
        Text("To start the container again:", style="bold blue"),
        Text(f"  docker start {name}", style="green"),
        Text("To remove the container (keeps volume):", style="bold blue"),
        Text(f"  docker rm -f {name}", style="green"),
        Text("To remove the volume (deletes all data):", style="bold blue"),
        Text(f"  docker volume rm {outcome.volume_name}", style="green"),
    ]
    return Panel(Group(*lines), title="Setup Complete!", border_style="green")


def render_report(report: VerificationReport) -> Table:
    """Build the verification results table."""
    styles = {CheckStatus.PASS: "green", CheckStatus.FAIL: "red", CheckStatus.WARN: "yellow"}
    table = Table(title=f"Verification: {report.container_name}")
    table.add_column("Check")
    table.add_column("Result")
    table.add_column("Detail", overflow="fold")
    for check in report.checks:
        style = styles[check.status]
        table.add_row(check.name, f"[{style}]{check.status.value.upper()}[/{style}]", check.detail)
    return table


def cmd_setup(args: argparse.Namespace) -> int:
    request = request_from_args(args)
    console.rule(f"[bold blue]{SYSTEM_NAME}[/bold blue]")

    provisioner = Provisioner(DockerSdkEnvironment())
    try:
        outcome = provisioner.provision(request, recreate_decision(args.recreate))
    except EnvironmentUnavailable as e:
        console.print(f"[bold red][ERROR] {e}[/bold red]")
        console.print("[yellow]Please install Docker first: https://docs.docker.com/get-docker/[/yellow]")
        return 1
    except ResourceCreationFailed as e:
        console.print(f"[bold red][ERROR] {e}[/bold red]")
        console.print("[yellow]Re-running ralphbox is safe once the problem is fixed.[/yellow]")
        return 1

    console.print(render_summary(outcome))
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    request = request_from_args(args)
    console.rule(f"[bold blue]Docker Setup Verification: {request.container_name}[/bold blue]")

    report = Verifier(DockerSdkEnvironment()).verify(request, restart=args.restart)
    console.print(render_report(report))

    passed = report.count(CheckStatus.PASS)
    failed = report.count(CheckStatus.FAIL)
    if report.passed:
        console.print(f"[bold green]All checks passed ({passed} passed)[/bold green]")
        return 0
    console.print(f"[bold red]{failed} check(s) failed, {passed} passed[/bold red]")
    return 1


def cmd_examples(args: argparse.Namespace) -> int:
    for index, (title, command) in enumerate(EXAMPLES, start=1):
        console.print(f"[bold blue]Example {index}: {title}[/bold blue]")
        console.print(f"  {command}", markup=False)
        console.print()
    console.print("[bold blue]After setup, connect to the container:[/bold blue]")
    console.print("  docker exec -it claude-code-ralph bash")
    console.print()
    console.print("[bold blue]For rootless Docker users:[/bold blue]")
    console.print("  Named volumes work with rootless Docker. No special configuration needed!")
    return 0


COMMANDS = {"setup": cmd_setup, "verify": cmd_verify, "examples": cmd_examples}


def main(argv: list[str] | None = None) -> int:
    load_dotenv(Path.cwd() / ".env")

    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in COMMANDS and argv[0] not in ("-h", "--help"):
        argv.insert(0, "setup")
    args = parser.parse_args(argv)

    try:
        return COMMANDS[args.command](args)
    except ValidationError as e:
        console.print("[bold red][ERROR] Invalid configuration:[/bold red]")
        console.print(str(e), markup=False)
        return 2


if __name__ == "__main__":
    sys.exit(main())
