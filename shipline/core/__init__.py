"""
Shipline Core

Pipeline configuration, sequencing and triggers.
"""

from .config_loader import PipelineConfig, load_pipeline_config
from .sequencer import HealthCheck, PipelineDefinition, PipelineSequencer
from .triggers import PipelineTrigger
from .pipeline_factory import build_definition, create_sequencer

__all__ = [
    "PipelineConfig",
    "load_pipeline_config",
    "HealthCheck",
    "PipelineDefinition",
    "PipelineSequencer",
    "PipelineTrigger",
    "build_definition",
    "create_sequencer",
]
