"""
Shipline Services Layer

Collaborators the pipeline sequencer drives.
"""

from .secret_service import SecretStore
from .step_runner import StepRunner
from .health_waiter import HealthWaiter, tcp_probe, command_probe
from .ssh_service import RemoteExecutor
from .deployment_client import DeploymentClient
from .docker_service import ImageBuilder, RegistryClient

__all__ = [
    "SecretStore",
    "StepRunner",
    "HealthWaiter",
    "tcp_probe",
    "command_probe",
    "RemoteExecutor",
    "DeploymentClient",
    "ImageBuilder",
    "RegistryClient",
]
