from controller.src.k8s.client import (
    init_k8s_client,
    get_batch_api,
    get_core_api,
    ensure_namespace,
    ensure_workspace_claim,
    delete_job,
    submit_job,
    read_job,
)
from controller.src.k8s.job_builder import (
    build_job,
    build_job_name,
    get_job_status,
    get_job_failure_reason,
)

__all__ = [
    "init_k8s_client",
    "get_batch_api",
    "get_core_api",
    "ensure_namespace",
    "ensure_workspace_claim",
    "delete_job",
    "submit_job",
    "read_job",
    "build_job",
    "build_job_name",
    "get_job_status",
    "get_job_failure_reason",
]
