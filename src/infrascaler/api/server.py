#!/usr/bin/env python3
"""
FastAPI server module for orchestrator status and control endpoints
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from infrascaler import __version__
from infrascaler.config.settings import InfrastructureConfig
from infrascaler.core.exceptions import (
    DeploymentFailed,
    DeploymentTimeout,
    DriverNotImplemented,
    InfrastructureError,
    InvalidScaleTarget,
    InvalidStateTransition,
    PlatformUnavailable,
    ScalingInProgress,
    ScalingTimeout,
)
from infrascaler.core.orchestrator import InfrastructureOrchestrator, OrchestratorState

logger = logging.getLogger(__name__)

SERVING_STATES = {
    OrchestratorState.READY,
    OrchestratorState.RUNNING,
    OrchestratorState.SCALING_IN_FLIGHT,
}


class ScaleRequest(BaseModel):
    target_instances: int = Field(..., ge=0, description="Desired number of running instances")
    reason: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def http_error(error: InfrastructureError) -> HTTPException:
    """Map an orchestrator error onto an HTTP status code"""
    if isinstance(error, InvalidScaleTarget):
        status_code = 400
    elif isinstance(error, (ScalingInProgress, InvalidStateTransition)):
        status_code = 409
    elif isinstance(error, DriverNotImplemented):
        status_code = 501
    elif isinstance(error, (ScalingTimeout, DeploymentTimeout)):
        status_code = 504
    elif isinstance(error, (DeploymentFailed, PlatformUnavailable)):
        status_code = 502
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail=str(error))


class APIServer:
    """FastAPI server for orchestrator endpoints"""

    def __init__(
        self,
        orchestrator: InfrastructureOrchestrator,
        config: InfrastructureConfig,
        shutdown_callback: Optional[Callable[[], None]] = None
    ):
        """
        Initialize API server

        Args:
            orchestrator: InfrastructureOrchestrator instance
            config: Infrastructure configuration
            shutdown_callback: Called after a shutdown requested through the API
        """
        self.orchestrator = orchestrator
        self.config = config
        self.shutdown_callback = shutdown_callback
        self.app = FastAPI(
            title="Infrascaler API",
            description="Status and control API for the infrastructure orchestrator",
            version=__version__
        )
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes"""

        @self.app.get("/")
        async def root():
            """Root endpoint"""
            return {
                "service": "Infrascaler",
                "version": __version__,
                "timestamp": _now()
            }

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint"""
            state = self.orchestrator.state
            healthy = state in SERVING_STATES
            return JSONResponse(
                content={
                    "status": "healthy" if healthy else "unhealthy",
                    "state": state.value,
                    "timestamp": _now()
                },
                status_code=200 if healthy else 503
            )

        @self.app.get("/status")
        async def get_status(history_limit: int = Query(10, ge=0)):
            """Get detailed orchestrator status"""
            status = self.orchestrator.get_status(history_limit=history_limit)
            return status.model_dump(mode="json")

        @self.app.get("/performance")
        async def get_performance():
            """Get the latest performance sample"""
            sample = self.orchestrator.get_performance_metrics()
            return {
                "metrics": sample.model_dump(mode="json"),
                "target_factor": self.config.monitoring.performance_target_factor,
                "target_met": sample.improvement_factor >= self.config.monitoring.performance_target_factor,
                "timestamp": _now()
            }

        @self.app.get("/performance/history")
        async def get_performance_history(limit: int = Query(100, ge=0)):
            """Get recorded performance samples, oldest first"""
            samples = self.orchestrator.get_metrics_history(limit)
            return {
                "samples": [s.model_dump(mode="json") for s in samples],
                "count": len(samples),
                "limit": limit
            }

        @self.app.get("/containers")
        async def get_containers():
            """Get tracked containers"""
            containers = self.orchestrator.get_containers()
            return {
                "containers": [c.model_dump(mode="json") for c in containers],
                "count": len(containers),
                "timestamp": _now()
            }

        @self.app.get("/history")
        async def get_scaling_history(limit: int = Query(50, ge=0)):
            """Get scaling decision history, oldest first"""
            history = self.orchestrator.get_scaling_history(limit)
            return {
                "decisions": [d.model_dump(mode="json") for d in history],
                "count": len(history),
                "limit": limit
            }

        @self.app.get("/config")
        async def get_config():
            """Get current configuration (sanitized)"""
            return self.config.summary()

        @self.app.post("/scale")
        async def manual_scale(request: ScaleRequest):
            """Scale the fleet to an exact instance count"""
            try:
                decision = await self.orchestrator.scale(
                    request.target_instances,
                    reason=request.reason or "Manual scaling via API"
                )
            except InfrastructureError as e:
                logger.error(f"Error in manual scaling: {e}")
                raise http_error(e)

            if decision is None:
                return {
                    "message": f"Already running {request.target_instances} instance(s)",
                    "decision": None,
                    "timestamp": _now()
                }
            return {
                "message": f"Scaled to {decision.target_instances} instance(s)",
                "decision": decision.model_dump(mode="json"),
                "timestamp": _now()
            }

        @self.app.post("/deploy")
        async def deploy():
            """Deploy the service and wait until it is healthy"""
            try:
                await self.orchestrator.deploy()
            except InfrastructureError as e:
                logger.error(f"Error deploying: {e}")
                raise http_error(e)
            return {
                "message": "Deployment complete",
                "state": self.orchestrator.state.value,
                "timestamp": _now()
            }

        @self.app.post("/shutdown")
        async def shutdown():
            """Shut the orchestrator down"""
            try:
                await self.orchestrator.shutdown()
            except InfrastructureError as e:
                logger.error(f"Error shutting down: {e}")
                raise http_error(e)
            finally:
                if self.shutdown_callback is not None:
                    self.shutdown_callback()
            return {
                "message": "Orchestrator shut down",
                "timestamp": _now()
            }

    def create_server(self, host: str = "0.0.0.0", port: int = 8080) -> uvicorn.Server:
        """Build a uvicorn server for the API, to be served on the caller's event loop"""
        logger.info(f"API server configured on {host}:{port}")
        return uvicorn.Server(uvicorn.Config(self.app, host=host, port=port, log_level="info"))
