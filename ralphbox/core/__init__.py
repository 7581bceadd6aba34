# -----------------------------------------------------------------------------
# CORE LAYER
# -----------------------------------------------------------------------------
# The business logic of ralphbox:
# - Provisioner: idempotent volume + container setup
# - Plugin helper: best-effort Smart Ralph bootstrap inside the container
# - Verifier: post-setup validation checks
# -----------------------------------------------------------------------------

from .plugins import PLUGIN_COMMANDS, run_plugin_helper
from .provisioner import (
    ContainerCreationFailed,
    Provisioner,
    ResourceCreationFailed,
    VolumeCreationFailed,
)
from .verifier import CheckStatus, VerificationReport, Verifier

__all__ = [
    "PLUGIN_COMMANDS", "run_plugin_helper",
    "Provisioner", "ResourceCreationFailed", "VolumeCreationFailed", "ContainerCreationFailed",
    "Verifier", "VerificationReport", "CheckStatus",
]
