"""
Shipline Domain Models

Clean dataclass-based models for type-safe data handling.
"""

from .pipeline import (
    PipelineState,
    Step,
    Stage,
    WorkingContext,
)
from .deployment import (
    ImageRef,
    BuiltImage,
    CredentialRef,
    RegistryCredentials,
    SSHCredentials,
    DeploymentTarget,
)
from .results import (
    ExecutionResult,
    HealthStatus,
    HealthResult,
    PushAck,
    DeployResult,
    PipelineReport,
)

__all__ = [
    # Pipeline
    "PipelineState",
    "Step",
    "Stage",
    "WorkingContext",
    # Deployment
    "ImageRef",
    "BuiltImage",
    "CredentialRef",
    "RegistryCredentials",
    "SSHCredentials",
    "DeploymentTarget",
    # Results
    "ExecutionResult",
    "HealthStatus",
    "HealthResult",
    "PushAck",
    "DeployResult",
    "PipelineReport",
]
