"""
Collect build logs from Kubernetes pods.
"""

import logging
from typing import Optional
from kubernetes.client.rest import ApiException

from controller.src.k8s.client import get_core_api
from controller.src.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

MAX_LOG_LINES = 1000

def get_job_pod_name(job_name: str) -> Optional[str]:
    """Get the pod name for a job."""
    core_v1 = get_core_api()

    try:
        pods = core_v1.list_namespaced_pod(
            namespace=settings.k8s_namespace,
            label_selector=f"job-name={job_name}",
        )

        if pods.items:
            return pods.items[0].metadata.name
        return None
    except ApiException as e:
        logger.error(f"Failed to get pod for job {job_name}: {e}")
        return None

def collect_logs(job_name: str) -> str:
    """Collect the tail of a build job's pod logs."""
    core_v1 = get_core_api()

    pod_name = get_job_pod_name(job_name)
    if not pod_name:
        return "No pod found for job"

    try:
        return core_v1.read_namespaced_pod_log(
            name=pod_name,
            namespace=settings.k8s_namespace,
            tail_lines=MAX_LOG_LINES,
        )
    except ApiException as e:
        if e.status == 400:
            # Pod never started (image pull failure, deadline hit while pending)
            return "Pod did not start"
        logger.error(f"Failed to collect logs for {pod_name}: {e}")
        return f"Error collecting logs: {e.reason}"
