"""Wires a PipelineConfig to concrete collaborators."""

import threading
from typing import Iterable, Optional

from shipline.core.config_loader import PipelineConfig
from shipline.core.sequencer import HealthCheck, PipelineDefinition, PipelineSequencer
from shipline.models.deployment import BuiltImage
from shipline.models.pipeline import Step, WorkingContext
from shipline.services import (
    DeploymentClient,
    HealthWaiter,
    ImageBuilder,
    RegistryClient,
    RemoteExecutor,
    SecretStore,
    StepRunner,
    command_probe,
    tcp_probe,
)


def build_health_check(config: PipelineConfig, logger=None) -> Optional[HealthCheck]:
    """Turn 'test.health' into a HealthCheck, or None when unset."""
    health = config.health
    if health is None:
        return None

    if "tcp" in health:
        host, port = health["tcp"]["host"], health["tcp"]["port"]
        probe = tcp_probe(host, port)
        name = health.get("name") or f"{host}:{port}"
    else:
        # Probe attempts go to their own runner so expected failures
        # while waiting never show up as failed test steps
        probe = command_probe(
            StepRunner(logger=logger),
            Step(name="health-check", command=health["command"], timeout=30),
            WorkingContext(stage="health", env=config.test_env),
        )
        name = health.get("name") or "health-check"

    return HealthCheck(
        probe=probe,
        interval=float(health["interval"]),
        max_attempts=int(health["max_attempts"]),
        name=name,
    )


def build_definition(
    config: PipelineConfig,
    logger=None,
    skip_stages: Iterable[str] = (),
    image: Optional[BuiltImage] = None,
) -> PipelineDefinition:
    """Build the run definition from config."""
    skip = set(skip_stages)
    if not config.push_enabled:
        skip.add("push")

    return PipelineDefinition(
        name=config.name,
        test=config.test_stage(),
        target=config.deployment_target(),
        registry_credentials=config.registry_credentials(),
        build_context=config.build_context,
        test_env=config.test_env,
        health=build_health_check(config, logger) if "test" not in skip else None,
        skip_stages=frozenset(skip),
        image=image,
    )


def create_sequencer(
    config: PipelineConfig,
    secrets: SecretStore,
    logger=None,
    skip_stages: Iterable[str] = (),
    image: Optional[BuiltImage] = None,
    cancel_event: Optional[threading.Event] = None,
) -> PipelineSequencer:
    """Create a sequencer with real docker / ssh collaborators."""
    runner = StepRunner(logger=logger)
    return PipelineSequencer(
        definition=build_definition(config, logger, skip_stages, image),
        runner=runner,
        health_waiter=HealthWaiter(logger=logger),
        image_builder=ImageBuilder(
            runner,
            config.repository,
            dockerfile=config.dockerfile,
            build_args=config.build_args,
        ),
        registry=RegistryClient(runner, secrets),
        deployment_client=DeploymentClient(
            RemoteExecutor(secrets, logger=logger), logger=logger, secrets=secrets
        ),
        logger=logger,
        cancel_event=cancel_event,
    )
