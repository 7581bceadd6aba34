# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# THE PLUGIN HELPER - SMART RALPH BOOTSTRAP
# -----------------------------------------------------------------------------
# Responsibility: Injects a small helper script into the container and runs
# it. Plugin installation needs an interactive Claude Code session, so the
# helper only checks for the CLI and prints the commands to run.
#
# Best-effort: every failure is folded into an AuxiliaryResult. Nothing in
# this module raises out of run_plugin_helper().
# -----------------------------------------------------------------------------

from rich.console import Console

from ralphbox.domain.models import AuxiliaryResult
from ralphbox.infra.docker_client import DockerEnvironment, DockerOperationError

console = Console()

# Where the helper lands inside the container
HELPER_PATH = "/tmp/install_plugins.sh"

# Slash commands to run inside an interactive Claude Code session
PLUGIN_COMMANDS = [
    "/plugin install ralph-wiggum@claude-plugins-official",
    "/plugin marketplace add tzachbon/smart-ralph",
    "/plugin install ralph-specum@smart-ralph",
    "/plugin install ralph-speckit@smart-ralph",
]

_SCRIPT_TEMPLATE = """#!/bin/bash
set -e

echo "Checking for Claude Code CLI..."
if command -v claude &> /dev/null; then
    echo "Claude Code found!"
    echo ""
    echo "NOTE: Plugin installation typically requires an interactive session."
    echo "Please run these commands manually in Claude Code:"
    echo ""
{commands}
else
    echo "Claude Code CLI not available yet."
    echo ""
    echo "After installing Claude Code, run these commands:"
{commands}
fi
"""


def render_install_script() -> str:
    """Render the bash helper that prints the plugin commands."""
    commands = "\n".join(f'    echo "  {cmd}"' for cmd in PLUGIN_COMMANDS)
    return _SCRIPT_TEMPLATE.format(commands=commands)


def run_plugin_helper(env: DockerEnvironment, container_name: str) -> AuxiliaryResult:
    """
    Copy the helper into the container and execute it.

    Args:
        env: Docker capability set.
        container_name: Target container (must be running).

    Returns:
        AuxiliaryResult describing success or the recorded failure.
    """
    console.print("[yellow][PLUGINS] Installing Ralph Loop plugin helper (ralph-wiggum)...[/yellow]")
    script = render_install_script().encode("utf-8")

    try:
        env.copy_into_container(container_name, HELPER_PATH, script, mode=0o755)
        result = env.exec_in_container(container_name, ["bash", HELPER_PATH])
    except DockerOperationError as e:
        console.print(
            f"[yellow][PLUGINS] Plugin installation requires interactive Claude Code session ({e})[/yellow]"
        )
        return AuxiliaryResult(succeeded=False, detail=str(e))

    if result.output.strip():
        console.print(result.output.rstrip(), style="dim", markup=False)

    if not result.ok:
        console.print(
            "[yellow][PLUGINS] Plugin installation requires interactive Claude Code session[/yellow]"
        )
        return AuxiliaryResult(
            succeeded=False, detail=f"Helper exited with code {result.exit_code}"
        )

    return AuxiliaryResult(succeeded=True, detail="Helper completed")
