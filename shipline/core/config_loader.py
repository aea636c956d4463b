"""Configuration management for Shipline pipelines"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from shipline.constants import (
    DEFAULT_BUILD_CONTEXT,
    DEFAULT_CONFIG_FILE,
    DEFAULT_HEALTH_INTERVAL,
    DEFAULT_HEALTH_MAX_ATTEMPTS,
    DEFAULT_RESTART_POLICY,
    SECRET_DEPLOY_HOST,
    SECRET_DEPLOY_KEY,
    SECRET_DEPLOY_USER,
    SECRET_DOCKER_PASSWORD,
    SECRET_DOCKER_USERNAME,
)
from shipline.exceptions import ConfigurationError
from shipline.models.deployment import (
    CredentialRef,
    DeploymentTarget,
    RegistryCredentials,
    SSHCredentials,
)
from shipline.models.pipeline import Stage, Step

DEFAULT_SECRET_NAMES = {
    "registry_username": SECRET_DOCKER_USERNAME,
    "registry_password": SECRET_DOCKER_PASSWORD,
    "deploy_host": SECRET_DEPLOY_HOST,
    "deploy_user": SECRET_DEPLOY_USER,
    "deploy_key": SECRET_DEPLOY_KEY,
}


class PipelineConfig:
    """Represents a loaded and validated pipeline configuration"""

    def __init__(self, config_dict: dict, config_path: Optional[Path] = None):
        """
        Initialize pipeline configuration

        Args:
            config_dict: Raw configuration dictionary from shipline.yml
            config_path: Path the config was loaded from (optional)
        """
        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration must be a mapping",
                context=str(config_path) if config_path else None,
            )
        self.raw_config = config_dict
        self.config_path = config_path
        self.base_dir = config_path.parent if config_path else Path.cwd()
        self._apply_defaults()
        self._validate()

    def _apply_defaults(self) -> None:
        """Apply default values to configuration"""
        for section in ("pipeline", "test", "build", "push", "deploy", "secrets"):
            if self.raw_config.get(section) is None:
                self.raw_config[section] = {}

        self.raw_config["test"].setdefault("steps", [])
        self.raw_config["test"].setdefault("env", {})
        self.raw_config["build"].setdefault("context", DEFAULT_BUILD_CONTEXT)
        self.raw_config["push"].setdefault("enabled", True)
        self.raw_config["deploy"].setdefault("ports", [])
        self.raw_config["deploy"].setdefault("env", {})
        self.raw_config["deploy"].setdefault("restart_policy", DEFAULT_RESTART_POLICY)

        health = self.raw_config["test"].get("health")
        if health is not None:
            health.setdefault("interval", DEFAULT_HEALTH_INTERVAL)
            health.setdefault("max_attempts", DEFAULT_HEALTH_MAX_ATTEMPTS)

        for key, default in DEFAULT_SECRET_NAMES.items():
            self.raw_config["secrets"].setdefault(key, default)

    def _error(self, message: str, context: Optional[str] = None) -> ConfigurationError:
        where = str(self.config_path) if self.config_path else "configuration"
        return ConfigurationError(message, context=context or f"File: {where}")

    def _validate(self) -> None:
        """Validate configuration"""
        pipeline = self.raw_config["pipeline"]
        if not pipeline.get("name"):
            raise self._error("Missing required field: 'pipeline.name'")
        if not pipeline.get("branch"):
            raise self._error("Missing required field: 'pipeline.branch'")

        if not self.raw_config["build"].get("repository"):
            raise self._error("Missing required field: 'build.repository'")

        if not self.raw_config["deploy"].get("container_name"):
            raise self._error("Missing required field: 'deploy.container_name'")

        if not isinstance(self.raw_config["deploy"]["ports"], list):
            raise self._error("'deploy.ports' must be a list (e.g. ['80:8000'])")

        steps = self.raw_config["test"]["steps"]
        if not isinstance(steps, list):
            raise self._error("'test.steps' must be a list")
        seen = set()
        for index, step in enumerate(steps):
            if not isinstance(step, dict) or not step.get("run"):
                raise self._error(f"Test step #{index + 1} needs a 'run' command")
            name = step.get("name") or f"step-{index + 1}"
            if name in seen:
                raise self._error(f"Duplicate test step name: '{name}'")
            seen.add(name)
            timeout = step.get("timeout")
            if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
                raise self._error(f"Test step '{name}' timeout must be a positive number")

        health = self.raw_config["test"].get("health")
        if health is not None:
            if not isinstance(health, dict):
                raise self._error("'test.health' must be a mapping")
            if ("tcp" in health) == ("command" in health):
                raise self._error("'test.health' needs exactly one of 'tcp' or 'command'")
            if "tcp" in health:
                tcp = health["tcp"] or {}
                if not tcp.get("host") or not isinstance(tcp.get("port"), int):
                    raise self._error("'test.health.tcp' needs 'host' and an integer 'port'")
            if not isinstance(health["max_attempts"], int) or health["max_attempts"] < 1:
                raise self._error("'test.health.max_attempts' must be a positive integer")
            if not isinstance(health["interval"], (int, float)) or health["interval"] < 0:
                raise self._error("'test.health.interval' must not be negative")

    @property
    def name(self) -> str:
        return self.raw_config["pipeline"]["name"]

    @property
    def branch(self) -> str:
        return self.raw_config["pipeline"]["branch"]

    @property
    def build_context(self) -> Path:
        """Build context resolved against the config file's directory."""
        context = Path(self.raw_config["build"]["context"])
        if context.is_absolute():
            return context
        return (self.base_dir / context).resolve()

    @property
    def repository(self) -> str:
        return self.raw_config["build"]["repository"]

    @property
    def dockerfile(self) -> Optional[str]:
        return self.raw_config["build"].get("dockerfile")

    @property
    def build_args(self) -> Dict[str, str]:
        return {str(k): str(v) for k, v in (self.raw_config["build"].get("args") or {}).items()}

    @property
    def push_enabled(self) -> bool:
        return bool(self.raw_config["push"]["enabled"])

    @property
    def test_env(self) -> Dict[str, str]:
        return {str(k): str(v) for k, v in self.raw_config["test"]["env"].items()}

    @property
    def health(self) -> Optional[Dict[str, Any]]:
        return self.raw_config["test"].get("health")

    def test_stage(self) -> Stage:
        """Build the test stage from 'test.steps'."""
        steps: List[Step] = []
        for index, raw in enumerate(self.raw_config["test"]["steps"]):
            steps.append(
                Step(
                    name=raw.get("name") or f"step-{index + 1}",
                    command=raw["run"],
                    env=raw.get("env") or {},
                    expected_exit_code=int(raw.get("expected_exit_code", 0)),
                    timeout=raw.get("timeout"),
                    cwd=raw.get("cwd"),
                )
            )
        return Stage(name="test", steps=tuple(steps))

    def secret(self, key: str) -> CredentialRef:
        """Get the handle for one of the configured secrets."""
        return CredentialRef(self.raw_config["secrets"][key])

    def registry_credentials(self) -> RegistryCredentials:
        return RegistryCredentials(
            username=self.secret("registry_username"),
            password=self.secret("registry_password"),
            registry=self.raw_config["push"].get("registry"),
        )

    def deployment_target(self) -> DeploymentTarget:
        deploy = self.raw_config["deploy"]
        return DeploymentTarget(
            host=self.secret("deploy_host"),
            credentials=SSHCredentials(
                user=self.secret("deploy_user"),
                key=self.secret("deploy_key"),
            ),
            container_name=deploy["container_name"],
            ports=tuple(deploy["ports"]),
            env=deploy["env"],
            env_file=deploy.get("env_file"),
            restart_policy=deploy["restart_policy"],
        )

    def secret_refs(self) -> List[CredentialRef]:
        """All handles the pipeline needs."""
        return [self.secret(key) for key in DEFAULT_SECRET_NAMES]

    def __repr__(self) -> str:
        return f"PipelineConfig(name={self.name}, branch={self.branch})"


def load_pipeline_config(path: Optional[Path] = None) -> PipelineConfig:
    """
    Load shipline.yml.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_path = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_FILE
    if not config_path.exists():
        raise ConfigurationError(
            f"Config file not found: {config_path}",
            context=f"Create {DEFAULT_CONFIG_FILE} or pass --config",
        )

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}", context=str(e)) from e

    return PipelineConfig(data, config_path=config_path.resolve())
