"""
Shipline Base Command Classes

Abstract base classes for consistent command structure.
"""

from .base_command import BaseCommand
from .pipeline_command import PipelineCommand

__all__ = [
    "BaseCommand",
    "PipelineCommand",
]
