# -----------------------------------------------------------------------------
# DOMAIN LAYER
# -----------------------------------------------------------------------------
# Contains the Pydantic models that define the contract between the CLI
# and the Provisioner: what to build, and what was built.
# -----------------------------------------------------------------------------

from .models import (
    AuxiliaryResult,
    ContainerState,
    ExecResult,
    ProvisioningOutcome,
    ProvisioningRequest,
)

__all__ = [
    "AuxiliaryResult",
    "ContainerState",
    "ExecResult",
    "ProvisioningOutcome",
    "ProvisioningRequest",
]
