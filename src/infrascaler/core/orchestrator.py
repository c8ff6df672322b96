#!/usr/bin/env python3
"""
Infrastructure orchestrator: lifecycle state machine, periodic loops,
serialized scaling and the status surface
"""

import asyncio
import inspect
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from infrascaler.config.settings import InfrastructureConfig
from infrascaler.core import instrumentation
from infrascaler.core.exceptions import (
    DeploymentFailed,
    DeploymentTimeout,
    DriverNotImplemented,
    InfrastructureError,
    InvalidScaleTarget,
    InvalidStateTransition,
    MetricsUnavailable,
    ScalingInProgress,
    ScalingTimeout,
)
from infrascaler.core.health import HealthMonitor
from infrascaler.core.logging_config import log_section, log_separator
from infrascaler.core.metrics import MetricsHistory, MetricsSource, create_metrics_source
from infrascaler.core.registry import ContainerRegistry
from infrascaler.core.scaling import ScalingHistory, ScalingPolicy
from infrascaler.core.tasks import PeriodicTask
from infrascaler.drivers import DeploymentDriver, create_driver
from infrascaler.events import (
    Deployed,
    Event,
    EventBus,
    Initialized,
    MetricsCollected,
    Scaled,
    ScalingFailed,
    Shutdown,
)
from infrascaler.models.containers import ContainerStatus
from infrascaler.models.metrics import PerformanceSample
from infrascaler.models.scaling import ScalingAction, ScalingDecision
from infrascaler.models.status import InfrastructureStatus

logger = logging.getLogger(__name__)

ArtifactHook = Callable[[InfrastructureConfig], Any]


class OrchestratorState(str, Enum):
    """Lifecycle states of the orchestrator"""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DEPLOYING = "deploying"
    RUNNING = "running"
    SCALING_IN_FLIGHT = "scaling_in_flight"
    SHUTTING_DOWN = "shutting_down"
    SHUTDOWN = "shutdown"
    FAILED = "failed"


class InfrastructureOrchestrator:
    """Keeps a fleet of service instances deployed, healthy and sized to its load"""

    def __init__(
        self,
        config: InfrastructureConfig,
        driver: Optional[DeploymentDriver] = None,
        metrics_source: Optional[MetricsSource] = None,
        event_bus: Optional[EventBus] = None,
        prepare_artifacts: Optional[ArtifactHook] = None
    ):
        """
        Initialize the orchestrator

        Args:
            config: Immutable infrastructure configuration
            driver: Deployment driver (built from config.orchestrator when None)
            metrics_source: Metrics source (built from config.metrics_source when None)
            event_bus: Event bus receiving lifecycle, scaling and health events
            prepare_artifacts: Optional hook run during initialize() before any deploy
        """
        self.config = config
        self.driver = driver or create_driver(config)
        self.metrics_source = metrics_source or create_metrics_source(config)
        self.event_bus = event_bus or EventBus()
        self.prepare_artifacts = prepare_artifacts

        self.registry = ContainerRegistry()
        self.metrics_history = MetricsHistory(cap=config.monitoring.history_size)
        self.scaling_history = ScalingHistory()
        self.policy = ScalingPolicy(config.scaling)
        self.health_monitor = HealthMonitor(
            probe=self.driver.probe_health,
            event_bus=self.event_bus,
            timeout=config.monitoring.probe_timeout,
            max_concurrency=config.monitoring.max_concurrent_probes
        )

        self._state = OrchestratorState.UNINITIALIZED
        self._initialized = False
        self._started_at: Optional[float] = None
        self._scale_lock = asyncio.Lock()
        self._tasks: Dict[str, PeriodicTask] = {}
        instrumentation.ORCHESTRATOR_STATE.state(self._state.value)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def tasks(self) -> Dict[str, PeriodicTask]:
        return dict(self._tasks)

    def _set_state(self, state: OrchestratorState):
        if state != self._state:
            logger.info(f"State: {self._state.value} -> {state.value}")
            self._state = state
            instrumentation.ORCHESTRATOR_STATE.state(state.value)

    def _return_to_running(self):
        # shutdown may have started while the scale was in flight
        if self._state == OrchestratorState.SCALING_IN_FLIGHT:
            self._set_state(OrchestratorState.RUNNING)

    async def _emit(self, event: Event):
        await self.event_bus.publish(event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self):
        """
        Validate the platform, prepare artifacts and start the periodic loops

        Raises:
            InvalidStateTransition: not uninitialized or failed
            PlatformUnavailable: the platform failed validation
        """
        if self._state not in (OrchestratorState.UNINITIALIZED, OrchestratorState.FAILED):
            raise InvalidStateTransition(f"Cannot initialize from state {self._state.value}")

        log_separator(logger, "INITIALIZING INFRASTRUCTURE")
        await self._stop_tasks()
        self._set_state(OrchestratorState.INITIALIZING)

        try:
            log_section(logger, f"Validating {self.config.orchestrator.value} platform")
            await self.driver.validate()

            if self.prepare_artifacts is not None:
                log_section(logger, "Preparing deployment artifacts")
                result = self.prepare_artifacts(self.config)
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            instrumentation.ERRORS.labels(type="initialize").inc()
            logger.error(f"Initialization failed: {e}")
            self._set_state(OrchestratorState.FAILED)
            raise

        self._start_tasks()
        self._initialized = True
        self._started_at = time.monotonic()
        self._set_state(OrchestratorState.READY)
        logger.info(f"Infrastructure initialized in {self.config.mode.value} mode")
        await self._emit(Initialized(data={"config": self.config.summary()}))

    async def deploy(self):
        """
        Deploy min_instances replicas and wait until they are running and healthy

        Raises:
            InvalidStateTransition: the orchestrator is not ready to deploy
            DeploymentFailed: the driver command failed
            DeploymentTimeout: the fleet did not become healthy in time
            DriverNotImplemented: the orchestrator kind cannot deploy
        """
        if self._state in (OrchestratorState.UNINITIALIZED, OrchestratorState.FAILED):
            await self.initialize()
        if self._state != OrchestratorState.READY:
            raise InvalidStateTransition(f"Cannot deploy from state {self._state.value}")

        min_instances = self.config.scaling.min_instances
        log_separator(logger, "DEPLOYING SERVICES")
        self._set_state(OrchestratorState.DEPLOYING)
        try:
            await self.driver.deploy(min_instances)
            await self._wait_for_healthy(min_instances)
        except Exception as e:
            instrumentation.ERRORS.labels(type="deploy").inc()
            logger.error(f"Deployment failed: {e}")
            if self._state == OrchestratorState.DEPLOYING:
                self._set_state(OrchestratorState.FAILED)
            raise

        if self._state != OrchestratorState.DEPLOYING:
            raise InvalidStateTransition(f"Deployment interrupted: state is now {self._state.value}")

        self._check_performance_target()
        running = self.registry.running_count()
        self.scaling_history.append(ScalingDecision(
            action=ScalingAction.MAINTAIN,
            current_instances=running,
            target_instances=running,
            reason="Initial deployment",
            metrics_snapshot=self.metrics_history.latest(),
        ))
        instrumentation.CURRENT_INSTANCES.set(running)
        self._set_state(OrchestratorState.RUNNING)
        logger.info(f"Deployment complete with {running} running instance(s)")
        await self._emit(Deployed(data={"containers": self.registry.snapshot()}))

    async def _wait_for_healthy(self, min_instances: int):
        timeout = self.config.deployment.deployment_timeout
        poll_interval = self.config.deployment.health_poll_interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            await self._refresh_registry()
            await self.health_monitor.check(self.registry)
            running = self.registry.running_count()
            if running >= min_instances and self.registry.all_healthy():
                return

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise DeploymentTimeout(
                    timeout,
                    f"{running}/{min_instances} running, {self.registry.unhealthy_count()} unhealthy"
                )
            logger.info(f"Waiting for services: {running}/{min_instances} running")
            await asyncio.sleep(min(poll_interval, remaining))

    def _check_performance_target(self) -> bool:
        """Log whether the latest sample meets the improvement target"""
        sample = self.metrics_history.latest()
        target = self.config.monitoring.performance_target_factor
        if sample.improvement_factor >= target:
            logger.info(f"Performance target met: {sample.improvement_factor:.2f}x (target {target}x)")
            return True
        logger.warning(f"Performance below target: {sample.improvement_factor:.2f}x (target {target}x)")
        return False

    async def shutdown(self):
        """
        Stop the loops, stop every replica and release the driver

        The state becomes shutdown even when stopping the replicas fails; that
        error is raised afterwards.
        """
        if self._state in (OrchestratorState.SHUTDOWN, OrchestratorState.SHUTTING_DOWN):
            logger.debug(f"Shutdown requested while {self._state.value}; nothing to do")
            return

        previous_state = self._state
        log_separator(logger, "SHUTTING DOWN INFRASTRUCTURE")
        self._set_state(OrchestratorState.SHUTTING_DOWN)

        await self._stop_tasks()
        # Wait for a manual scale that is still in flight
        async with self._scale_lock:
            pass

        stop_error: Optional[Exception] = None
        try:
            await self.driver.stop_all()
        except DriverNotImplemented as e:
            logger.warning(f"Replicas left running: {e}")
        except Exception as e:
            instrumentation.ERRORS.labels(type="shutdown").inc()
            logger.error(f"Failed to stop services: {e}")
            stop_error = e

        try:
            await self.driver.close()
            self.metrics_source.close()
        except Exception as e:
            logger.error(f"Error releasing driver resources: {e}")

        self.registry.clear()
        instrumentation.CURRENT_INSTANCES.set(0)
        self._set_state(OrchestratorState.SHUTDOWN)
        logger.info("Infrastructure shutdown complete")
        await self._emit(Shutdown(data={"previous_state": previous_state.value}))

        if stop_error is not None:
            raise stop_error

    # ------------------------------------------------------------------
    # Periodic loops
    # ------------------------------------------------------------------

    def _start_tasks(self):
        monitoring = self.config.monitoring
        if self.config.metrics_loop_enabled:
            self._tasks["metrics"] = PeriodicTask("metrics", monitoring.metrics_interval, self._collect_metrics)
        if self.config.health_loop_enabled:
            self._tasks["health"] = PeriodicTask("health", monitoring.health_interval, self._run_health_checks)
        if self.config.scaling_loop_enabled:
            self._tasks["scaling"] = PeriodicTask(
                "scaling", self.config.scaling.evaluation_interval, self._evaluate_scaling
            )
        for task in self._tasks.values():
            task.start()

    async def _stop_tasks(self):
        for name in ("metrics", "health"):
            task = self._tasks.pop(name, None)
            if task is not None:
                await task.stop(grace=0)
        scaling = self._tasks.pop("scaling", None)
        if scaling is not None:
            # An in-flight scaling tick is allowed to finish
            await scaling.stop(grace=None)

    async def _collect_metrics(self):
        try:
            sample = await self.metrics_source.sample()
        except MetricsUnavailable as e:
            instrumentation.METRICS_SAMPLES.labels(status="unavailable").inc()
            logger.warning(f"Skipping metrics tick: {e}")
            return

        self.metrics_history.record(sample)
        instrumentation.METRICS_SAMPLES.labels(status="ok").inc()
        instrumentation.LATEST_CPU.set(sample.cpu_utilization_percent)
        instrumentation.LATEST_MEMORY.set(sample.memory_utilization_percent)
        instrumentation.IMPROVEMENT_FACTOR.set(sample.improvement_factor)
        await self._emit(MetricsCollected(data={"sample": sample}))

    async def _refresh_registry(self) -> bool:
        """Refresh the registry from the driver; False when the listing failed"""
        try:
            listing = await self.driver.list_containers()
        except InfrastructureError as e:
            instrumentation.ERRORS.labels(type="list_containers").inc()
            logger.warning(f"Could not list containers: {e}")
            return False
        self.registry.refresh(listing)
        instrumentation.CURRENT_INSTANCES.set(self.registry.running_count())
        return True

    async def _run_health_checks(self):
        if self._state in (OrchestratorState.SHUTTING_DOWN, OrchestratorState.SHUTDOWN):
            return
        await self._refresh_registry()
        await self.health_monitor.check(self.registry)

    async def _evaluate_scaling(self):
        if self._state != OrchestratorState.RUNNING:
            return
        if self._scale_lock.locked():
            logger.debug("Scaling evaluation dropped: another scale is in flight")
            return

        async with self._scale_lock:
            if self._state != OrchestratorState.RUNNING:
                return
            log_section(logger, "Scaling evaluation")
            sample = self.metrics_history.latest()
            decision = self.policy.evaluate(sample, self.registry.running_count())
            instrumentation.SCALING_DECISIONS.labels(decision=decision.action.value).inc()
            logger.info(f"Decision: {decision.action.value} ({decision.reason})")
            if not decision.changes_fleet:
                return
            try:
                await self._execute_decision(decision)
            except InfrastructureError:
                # already logged and reported through a scaling_failed event
                return

    # ------------------------------------------------------------------
    # Scaling
    # ------------------------------------------------------------------

    async def scale(self, target_instances: int, reason: Optional[str] = None) -> Optional[ScalingDecision]:
        """
        Scale the fleet to an exact instance count

        Args:
            target_instances: Desired number of running instances
            reason: Reason recorded in the scaling history

        Returns:
            The executed decision, or None when the fleet already has that size

        Raises:
            InvalidScaleTarget: target outside [min_instances, max_instances]
            ScalingInProgress: another scaling operation holds the gate
            InvalidStateTransition: the orchestrator is not running
            ScalingTimeout: the fleet did not converge in time
            DeploymentFailed: the driver command failed
        """
        bounds = self.config.scaling
        if not bounds.min_instances <= target_instances <= bounds.max_instances:
            raise InvalidScaleTarget(
                f"Target {target_instances} outside bounds "
                f"[{bounds.min_instances}, {bounds.max_instances}]"
            )
        if self._scale_lock.locked() or self._state == OrchestratorState.SCALING_IN_FLIGHT:
            raise ScalingInProgress("A scaling operation is already in flight")
        if self._state != OrchestratorState.RUNNING:
            raise InvalidStateTransition(f"Cannot scale in state {self._state.value}")

        async with self._scale_lock:
            current = self.registry.running_count()
            if target_instances == current:
                logger.info(f"Already running {current} instance(s); nothing to scale")
                return None

            action = ScalingAction.SCALE_UP if target_instances > current else ScalingAction.SCALE_DOWN
            decision = ScalingDecision(
                action=action,
                current_instances=current,
                target_instances=target_instances,
                reason=reason or "Manual scale request",
                metrics_snapshot=self.metrics_history.latest(),
            )
            instrumentation.SCALING_DECISIONS.labels(decision=action.value).inc()
            await self._execute_decision(decision)
            return decision

    async def _execute_decision(self, decision: ScalingDecision):
        """Run a fleet-changing decision; caller holds the scaling gate"""
        self.scaling_history.append(decision)
        self._set_state(OrchestratorState.SCALING_IN_FLIGHT)
        logger.info(
            f"Scaling {decision.action.value}: {decision.current_instances} -> "
            f"{decision.target_instances} ({decision.reason})"
        )
        started = time.monotonic()

        try:
            await self.driver.execute_scale(decision.target_instances)
            running = await self._wait_for_instance_count(decision.target_instances)
        except (ScalingTimeout, DeploymentFailed) as e:
            instrumentation.ERRORS.labels(type="scale").inc()
            logger.error(f"Scaling failed: {e}")
            self._return_to_running()
            data = {"decision": decision, "error": str(e)}
            if isinstance(e, DeploymentFailed):
                data["exit_info"] = e.exit_info
            await self._emit(ScalingFailed(data=data))
            raise
        except Exception as e:
            instrumentation.ERRORS.labels(type="scale").inc()
            logger.error(f"Scaling failed unrecoverably: {e}")
            if self._state == OrchestratorState.SCALING_IN_FLIGHT:
                self._set_state(OrchestratorState.FAILED)
            await self._emit(ScalingFailed(data={"decision": decision, "error": str(e)}))
            raise

        instrumentation.SCALING_DURATION.observe(time.monotonic() - started)
        if decision.action == ScalingAction.SCALE_UP:
            instrumentation.SCALE_UP_EVENTS.inc()
        else:
            instrumentation.SCALE_DOWN_EVENTS.inc()
        self._return_to_running()
        logger.info(f"Scaling complete: {running} running instance(s)")
        await self._emit(Scaled(data={"decision": decision, "running_instances": running}))

    async def _wait_for_instance_count(self, target_instances: int) -> int:
        timeout = self.config.scaling.scaling_timeout
        poll_interval = self.config.scaling.poll_interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            await self._refresh_registry()
            running = self.registry.running_count()
            if running == target_instances:
                return running

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ScalingTimeout(target_instances, running, timeout)
            logger.debug(f"Waiting for scale: {running}/{target_instances} running")
            await asyncio.sleep(min(poll_interval, remaining))

    # ------------------------------------------------------------------
    # Status surface
    # ------------------------------------------------------------------

    def uptime_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    def get_status(self, history_limit: int = 10) -> InfrastructureStatus:
        """Read-only snapshot of the orchestrator"""
        return InfrastructureStatus(
            initialized=self._initialized,
            state=self._state.value,
            containers=self.registry.snapshot(),
            latest_metrics=self.metrics_history.latest(),
            scaling_history=list(self.scaling_history.tail(history_limit)),
            uptime_seconds=self.uptime_seconds(),
        )

    def get_performance_metrics(self) -> PerformanceSample:
        return self.metrics_history.latest()

    def get_metrics_history(self, limit: Optional[int] = None) -> Tuple[PerformanceSample, ...]:
        return self.metrics_history.snapshot(limit)

    def get_scaling_history(self, limit: Optional[int] = None) -> Tuple[ScalingDecision, ...]:
        return self.scaling_history.tail(limit)

    def get_containers(self) -> list[ContainerStatus]:
        return self.registry.snapshot()
