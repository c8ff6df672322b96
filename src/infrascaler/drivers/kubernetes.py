#!/usr/bin/env python3
"""
Kubernetes deployment driver

Validation, pod listing and readiness probes use the kubernetes client.
Deploying and scaling workloads on Kubernetes is not supported yet.
"""

import asyncio
import concurrent.futures
import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

import urllib3
from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from infrascaler.config.settings import KubernetesSettings, OrchestratorKind
from infrascaler.core.exceptions import HealthProbeFailed, PlatformUnavailable
from infrascaler.drivers.base import DeploymentDriver
from infrascaler.models.containers import ContainerStatus, HealthState, LifecycleState

logger = logging.getLogger(__name__)

LIFECYCLE_BY_PHASE = {
    "Pending": LifecycleState.STARTING,
    "Running": LifecycleState.RUNNING,
    "Succeeded": LifecycleState.STOPPED,
    "Failed": LifecycleState.ERROR,
    "Unknown": LifecycleState.ERROR,
}


def pod_readiness(pod) -> HealthState:
    """Map the pod's Ready condition onto a health state"""
    for condition in (pod.status.conditions or []):
        if condition.type == "Ready":
            return HealthState.HEALTHY if condition.status == "True" else HealthState.UNHEALTHY
    return HealthState.UNKNOWN


class KubernetesDriver(DeploymentDriver):
    """Observes pods of the managed workload in one namespace"""

    kind = OrchestratorKind.KUBERNETES

    def __init__(self, settings: KubernetesSettings, api: Optional[client.CoreV1Api] = None):
        self.settings = settings
        self.k8s_api = api
        self.thread_pool = concurrent.futures.ThreadPoolExecutor(max_workers=2, thread_name_prefix="kubernetes-driver")

    def _init_kubernetes_client(self):
        """Initialize Kubernetes API client"""
        if self.settings.in_cluster:
            logger.info("Loading in-cluster config")
            k8s_config.load_incluster_config()
        else:
            kubeconfig_path = self.settings.kubeconfig_path
            if kubeconfig_path and not os.path.exists(kubeconfig_path):
                raise PlatformUnavailable(f"Kubeconfig file not found: {kubeconfig_path}")
            logger.info(f"Loading kubeconfig from: {kubeconfig_path or 'default location'}")
            k8s_config.load_kube_config(config_file=kubeconfig_path)
        self.k8s_api = client.CoreV1Api()

    def _list_pods(self, limit: Optional[int] = None):
        kwargs = {"label_selector": self.settings.label_selector}
        if limit is not None:
            kwargs["limit"] = limit
        return self.k8s_api.list_namespaced_pod(self.settings.namespace, **kwargs)

    def _connect(self):
        if self.k8s_api is None:
            self._init_kubernetes_client()
        self._list_pods(limit=1)

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.thread_pool, func, *args)

    async def validate(self):
        try:
            await self._run_blocking(self._connect)
        except (ApiException, ConfigException, urllib3.exceptions.HTTPError) as e:
            raise PlatformUnavailable(f"Kubernetes API is not reachable: {e}") from e
        logger.info(f"Kubernetes API reachable (namespace {self.settings.namespace})")

    async def deploy(self, desired_instances: int):
        raise self.not_implemented("deploy")

    async def execute_scale(self, target_instances: int):
        raise self.not_implemented("execute_scale")

    async def stop_all(self):
        raise self.not_implemented("stop_all")

    def _to_status(self, pod) -> ContainerStatus:
        lifecycle = LIFECYCLE_BY_PHASE.get(pod.status.phase, LifecycleState.ERROR)
        uptime = 0.0
        if pod.status.start_time is not None and lifecycle == LifecycleState.RUNNING:
            uptime = max((datetime.now(timezone.utc) - pod.status.start_time).total_seconds(), 0.0)
        return ContainerStatus(
            id=pod.metadata.uid or pod.metadata.name,
            name=pod.metadata.name,
            lifecycle_state=lifecycle,
            uptime_seconds=uptime,
            health=pod_readiness(pod),
        )

    async def list_containers(self) -> List[ContainerStatus]:
        if self.k8s_api is None:
            raise PlatformUnavailable("Kubernetes client not initialized; call validate() first")
        try:
            pods = await self._run_blocking(self._list_pods)
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise PlatformUnavailable(f"Failed to list pods: {e}") from e
        return [self._to_status(pod) for pod in pods.items]

    def _find_pod(self, container_id: str):
        for pod in self._list_pods().items:
            if container_id in (pod.metadata.uid, pod.metadata.name):
                return pod
        return None

    async def probe_health(self, container_id: str) -> HealthState:
        if self.k8s_api is None:
            raise HealthProbeFailed(container_id, "Kubernetes client not initialized")
        try:
            pod = await self._run_blocking(self._find_pod, container_id)
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise HealthProbeFailed(container_id, str(e)) from e
        if pod is None:
            raise HealthProbeFailed(container_id, "pod no longer exists")
        return pod_readiness(pod)

    async def close(self):
        if self.k8s_api is not None:
            self.k8s_api.api_client.close()
            self.k8s_api = None
        self.thread_pool.shutdown(wait=False)
