# -----------------------------------------------------------------------------
# INFRASTRUCTURE LAYER
# -----------------------------------------------------------------------------
# Contains low-level infrastructure wrappers:
# - DockerProvider: Docker SDK connection with fail-fast reporting
# - DockerSdkEnvironment: the provisioning capability set over the SDK
# -----------------------------------------------------------------------------

from .docker_client import (
    DockerEnvironment,
    DockerOperationError,
    DockerProvider,
    DockerProviderError,
    DockerSdkEnvironment,
    EnvironmentUnavailable,
)

__all__ = [
    "DockerEnvironment",
    "DockerOperationError",
    "DockerProvider",
    "DockerProviderError",
    "DockerSdkEnvironment",
    "EnvironmentUnavailable",
]
