"""
Pipeline Command Base Class

Base class for commands that operate on a shipline.yml pipeline.
"""

from pathlib import Path
from typing import Optional

from .base_command import BaseCommand
from shipline.core import PipelineConfig, load_pipeline_config
from shipline.services import SecretStore


class PipelineCommand(BaseCommand):
    """
    Base class for pipeline commands.

    Provides:
    - Config loading and validation
    - A SecretStore reading the environment and the .env next to the config
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(verbose=verbose, json_output=json_output)
        self.config_path = Path(config_path) if config_path else None
        self.config: Optional[PipelineConfig] = None

    def load_config(self) -> PipelineConfig:
        """Load and validate the pipeline config."""
        if self.config is None:
            self.config = load_pipeline_config(self.config_path)
        return self.config

    def secret_store(self) -> SecretStore:
        """SecretStore bound to this command's logger."""
        config = self.load_config()
        return SecretStore(env_file=config.base_dir / ".env", logger=self.logger)
