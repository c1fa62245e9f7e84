"""
Kubernetes API access for build jobs.
"""

from kubernetes import client, config
from kubernetes.client.rest import ApiException
import logging

from controller.src.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

_batch_v1 = None
_core_v1 = None

def init_k8s_client() -> bool:
    """Load cluster credentials and check that the API server answers."""
    global _batch_v1, _core_v1

    try:
        if settings.k8s_in_cluster:
            config.load_incluster_config()
        else:
            config.load_kube_config()

        api_client = client.ApiClient()
        _batch_v1 = client.BatchV1Api(api_client)
        _core_v1 = client.CoreV1Api(api_client)

        _core_v1.list_namespace(limit=1)
    except Exception as e:
        logger.error(f"Failed to initialize Kubernetes client: {e}")
        return False

    source = "in-cluster" if settings.k8s_in_cluster else "kubeconfig"
    logger.info(f"Kubernetes client initialized from {source} config")
    return True

def get_batch_api() -> client.BatchV1Api:
    if _batch_v1 is None and not init_k8s_client():
        raise RuntimeError("Kubernetes client is not available")
    return _batch_v1

def get_core_api() -> client.CoreV1Api:
    if _core_v1 is None and not init_k8s_client():
        raise RuntimeError("Kubernetes client is not available")
    return _core_v1

def ensure_namespace():
    """Create the build namespace if missing."""
    core_v1 = get_core_api()

    try:
        core_v1.read_namespace(name=settings.k8s_namespace)
        return
    except ApiException as e:
        if e.status != 404:
            raise

    core_v1.create_namespace(
        body=client.V1Namespace(metadata=client.V1ObjectMeta(name=settings.k8s_namespace))
    )
    logger.info(f"Created namespace '{settings.k8s_namespace}'")

def ensure_workspace_claim():
    """Fail early when the shared build workspace volume claim does not exist."""
    try:
        get_core_api().read_namespaced_persistent_volume_claim(
            name=settings.build_workspace_pvc,
            namespace=settings.k8s_namespace,
        )
    except ApiException as e:
        if e.status == 404:
            raise RuntimeError(
                f"Workspace claim '{settings.build_workspace_pvc}' not found "
                f"in namespace '{settings.k8s_namespace}'"
            )
        raise

def delete_job(job_name: str):
    """Delete a build job together with its pods."""
    try:
        get_batch_api().delete_namespaced_job(
            name=job_name,
            namespace=settings.k8s_namespace,
            body=client.V1DeleteOptions(propagation_policy="Foreground"),
        )
        logger.info(f"Deleted job {job_name}")
    except ApiException as e:
        if e.status != 404:
            logger.error(f"Failed to delete job {job_name}: {e}")

def submit_job(job: client.V1Job):
    """Create a job, replacing a leftover job of the same name."""
    batch_v1 = get_batch_api()
    job_name = job.metadata.name

    try:
        batch_v1.create_namespaced_job(namespace=settings.k8s_namespace, body=job)
    except ApiException as e:
        if e.status != 409:
            raise
        # Leftover from an earlier attempt of the same run
        logger.warning(f"Job {job_name} already exists, replacing it")
        delete_job(job_name)
        batch_v1.create_namespaced_job(namespace=settings.k8s_namespace, body=job)

    logger.info(f"Created job {job_name}")

def read_job(job_name: str) -> client.V1Job:
    return get_batch_api().read_namespaced_job(
        name=job_name,
        namespace=settings.k8s_namespace,
    )
