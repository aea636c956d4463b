"""
Trigger surface

Push and pull-request events on the configured branch both start the
same pipeline run. Events for any other branch are ignored.
"""

from typing import Callable, Optional

from shipline.models.results import PipelineReport

EVENT_PUSH = "push"
EVENT_PULL_REQUEST = "pull_request"
EVENTS = (EVENT_PUSH, EVENT_PULL_REQUEST)


def normalize_branch(branch: str) -> str:
    """Strip the refs/heads/ prefix CI systems send."""
    branch = branch.strip()
    if branch.startswith("refs/heads/"):
        return branch[len("refs/heads/"):]
    return branch


class PipelineTrigger:
    """Maps repository events onto sequencer invocations."""

    def __init__(self, branch: str, sequencer_factory: Callable, logger=None):
        """
        Initialize trigger.

        Args:
            branch: Branch the pipeline runs for
            sequencer_factory: Callable returning a fresh PipelineSequencer
            logger: PipelineLogger
        """
        self.branch = normalize_branch(branch)
        self.sequencer_factory = sequencer_factory
        self.logger = logger

    def matches(self, branch: str) -> bool:
        return normalize_branch(branch) == self.branch

    def on_push(self, branch: str) -> Optional[PipelineReport]:
        """Run the pipeline for a push; None if the branch does not match."""
        return self._invoke(EVENT_PUSH, branch)

    def on_pull_request(self, branch: str) -> Optional[PipelineReport]:
        """Run the pipeline for a pull request targeting branch."""
        return self._invoke(EVENT_PULL_REQUEST, branch)

    def dispatch(self, event: str, branch: str) -> Optional[PipelineReport]:
        """Route an event name to its entry point."""
        if event == EVENT_PUSH:
            return self.on_push(branch)
        if event == EVENT_PULL_REQUEST:
            return self.on_pull_request(branch)
        raise ValueError(f"Unknown event '{event}', expected one of: {', '.join(EVENTS)}")

    def _invoke(self, event: str, branch: str) -> Optional[PipelineReport]:
        if not self.matches(branch):
            if self.logger:
                self.logger.log(
                    f"Ignoring {event} on '{branch}' (pipeline runs on '{self.branch}')"
                )
            return None

        if self.logger:
            self.logger.log(f"Triggered by {event} on '{self.branch}'")
        return self.sequencer_factory().run()
