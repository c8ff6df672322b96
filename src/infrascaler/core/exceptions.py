#!/usr/bin/env python3
"""
Error taxonomy for the orchestrator

Transient errors (metrics, health probes) are handled inside the periodic
loops. Operation errors (initialize, deploy, scale) propagate to the caller.
"""

from typing import Optional, Sequence, Union


class InfrastructureError(Exception):
    """Base class for all orchestrator errors"""


class PlatformUnavailable(InfrastructureError):
    """The external container platform cannot be reached"""


class MetricsUnavailable(InfrastructureError):
    """A performance sample could not be produced for this tick"""


class HealthProbeFailed(InfrastructureError):
    """A health probe against a single instance failed"""

    def __init__(self, container_id: str, message: str):
        self.container_id = container_id
        super().__init__(f"Health probe failed for {container_id}: {message}")


class DeploymentFailed(InfrastructureError):
    """An external platform command returned a failure"""

    def __init__(
        self,
        command: Union[str, Sequence[str]],
        exit_code: Optional[int] = None,
        output: str = ""
    ):
        self.command = command if isinstance(command, str) else " ".join(command)
        self.exit_code = exit_code
        self.output = output
        message = f"Command '{self.command}' failed"
        if exit_code is not None:
            message += f" with exit code {exit_code}"
        if output:
            message += f": {output.strip()}"
        super().__init__(message)

    @property
    def exit_info(self) -> dict:
        return {"exit_code": self.exit_code, "output": self.output}


class DeploymentTimeout(DeploymentFailed):
    """Deployed services did not become healthy in time"""

    def __init__(self, timeout: float, detail: str = ""):
        super().__init__("wait for healthy", None, detail)
        self.timeout = timeout
        message = f"Services did not become healthy within {timeout:.0f}s"
        if detail:
            message += f" ({detail})"
        self.args = (message,)


class ScalingTimeout(InfrastructureError):
    """The fleet did not reach the target instance count in time"""

    def __init__(self, target: int, observed: int, timeout: float):
        self.target = target
        self.observed = observed
        self.timeout = timeout
        super().__init__(
            f"Scaling to {target} instances did not complete within {timeout:.0f}s "
            f"(observed {observed})"
        )


class DriverNotImplemented(InfrastructureError, NotImplementedError):
    """The configured orchestrator kind does not support this operation"""

    def __init__(self, orchestrator: str, operation: str):
        self.orchestrator = orchestrator
        self.operation = operation
        super().__init__(f"{orchestrator} driver does not implement {operation}")


class InvalidStateTransition(InfrastructureError):
    """The operation is not allowed in the orchestrator's current state"""


class ScalingInProgress(InfrastructureError):
    """Another scaling operation currently holds the scaling gate"""


class InvalidScaleTarget(InfrastructureError, ValueError):
    """Requested instance count is outside the configured bounds"""
