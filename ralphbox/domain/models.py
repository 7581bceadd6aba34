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
# DOMAIN MODELS - PROVISIONING CONTRACT
# -----------------------------------------------------------------------------
# These Pydantic models define what the Provisioner is asked to build and
# what it reports back. The request is validated once at the gate and is
# never mutated afterwards; all durable state lives in Docker itself.
# -----------------------------------------------------------------------------

import os
from collections.abc import Mapping
from enum import Enum

from pydantic import BaseModel, Field

# Configuration defaults (overridable through the environment)
DEFAULT_CONTAINER_NAME = "claude-code-ralph"
DEFAULT_IMAGE = "node:20-bookworm"
DEFAULT_VOLUME_NAME = "claude-code-data"

# Fixed mount point inside the container, not user-configurable
WORK_DIR = "/workspace"

# Docker's own naming rule for containers and volumes
DOCKER_NAME_PATTERN = r"^[a-zA-Z0-9][a-zA-Z0-9_.-]+$"

ENV_CONTAINER_NAME = "CLAUDE_CONTAINER_NAME"
ENV_IMAGE = "CLAUDE_IMAGE"
ENV_VOLUME_NAME = "CLAUDE_VOLUME"


class ContainerState(str, Enum):
    """Observed state of a named container in the Docker environment."""

    ABSENT = "absent"
    RUNNING = "running"
    STOPPED = "stopped"


class ProvisioningRequest(BaseModel):
    """
    The desired end state: one running container with a named volume
    mounted at the work directory.

    Built once per invocation from configuration input and discarded when
    the run completes.
    """

    container_name: str = Field(
        default=DEFAULT_CONTAINER_NAME,
        pattern=DOCKER_NAME_PATTERN,
        description="Target container identifier",
    )
    image_reference: str = Field(
        default=DEFAULT_IMAGE,
        min_length=1,
        description="Base image used only when a new container must be created",
    )
    volume_name: str = Field(
        default=DEFAULT_VOLUME_NAME,
        pattern=DOCKER_NAME_PATTERN,
        description="Named persistent volume",
    )
    work_dir: str = Field(
        default=WORK_DIR,
        pattern=r"^/",
        description="Absolute mount point and working directory inside the container",
    )

    class Config:
        """Pydantic configuration: requests are immutable inputs."""

        frozen = True
        str_strip_whitespace = True

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: str | None
    ) -> "ProvisioningRequest":
        """
        Build a request from environment variables.

        Empty values fall back to the defaults. Keyword overrides (e.g. from
        command-line flags) win over the environment when they are not None.
        """
        if environ is None:
            environ = os.environ

        values = {
            "container_name": environ.get(ENV_CONTAINER_NAME) or DEFAULT_CONTAINER_NAME,
            "image_reference": environ.get(ENV_IMAGE) or DEFAULT_IMAGE,
            "volume_name": environ.get(ENV_VOLUME_NAME) or DEFAULT_VOLUME_NAME,
        }
        for key, value in overrides.items():
            if key not in values:
                raise TypeError(f"Unknown request field: {key}")
            if value:
                values[key] = value

        return cls(**values)


class ExecResult(BaseModel):
    """Exit status and decoded output of a command run inside a container."""

    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class AuxiliaryResult(BaseModel):
    """
    Result of a best-effort action.

    The failure variant is recorded here instead of being raised, so it can
    never change the overall provisioning outcome.
    """

    succeeded: bool
    detail: str = ""


class ProvisioningOutcome(BaseModel):
    """Structured summary returned by a successful provisioning run."""

    container_name: str
    volume_name: str
    work_dir: str
    image_reference: str
    container_created: bool = Field(
        ..., description="True if a new container was created, False if reused"
    )
    volume_created: bool = False
    cli_detected: bool = False
    auxiliary: AuxiliaryResult = Field(
        default_factory=lambda: AuxiliaryResult(succeeded=False, detail="not attempted")
    )
    actions: list[str] = Field(
        default_factory=list, description="External mutations performed, in order"
    )

    @property
    def reused(self) -> bool:
        return not self.container_created
