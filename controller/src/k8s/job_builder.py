"""
Kubernetes Job builder for release builds.
"""

from kubernetes import client
from typing import Dict, Optional
import hashlib

from controller.src.config import get_settings

settings = get_settings()

WORKSPACE_VOLUME = "workspace"

def build_job_name(run_id: str, commit_sha: str) -> str:
    """Generate a unique job name."""
    # K8s names must be lowercase, alphanumeric, max 63 chars
    safe_commit = "".join(c for c in commit_sha.lower() if c.isalnum())[:12]

    # Use short hash of run_id for uniqueness
    run_hash = hashlib.md5(run_id.encode()).hexdigest()[:8]

    return f"rt-build-{run_hash}-{safe_commit}"

def build_job(
    run_id: str,
    commit_sha: str,
    image: str,
    script: str,
    env_vars: Optional[Dict[str, str]] = None,
    timeout: int = 900,
) -> client.V1Job:
    """
    Build a Kubernetes Job that checks out the snapshot, runs the build
    procedure and leaves the package in the shared workspace volume.
    """
    job_name = build_job_name(run_id, commit_sha)

    env = [
        client.V1EnvVar(name="RELEASETRAIN_RUN_ID", value=run_id),
        client.V1EnvVar(name="RELEASETRAIN_COMMIT", value=commit_sha),
    ]

    if env_vars:
        for key, value in env_vars.items():
            env.append(client.V1EnvVar(name=key, value=value))

    labels = {
        "app": "releasetrain",
        "run-id": run_id,
        "stage": "build",
    }

    container = client.V1Container(
        name="build",
        image=image,
        command=["/bin/sh", "-c"],
        args=[script],
        env=env,
        volume_mounts=[
            client.V1VolumeMount(name=WORKSPACE_VOLUME, mount_path=settings.build_workspace),
        ],
        resources=client.V1ResourceRequirements(
            requests={"cpu": "500m", "memory": "1Gi"},
            limits={"cpu": "2", "memory": "4Gi"},
        ),
    )

    pod_spec = client.V1PodSpec(
        containers=[container],
        restart_policy="Never",
        volumes=[
            client.V1Volume(
                name=WORKSPACE_VOLUME,
                persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                    claim_name=settings.build_workspace_pvc,
                ),
            ),
        ],
    )

    template = client.V1PodTemplateSpec(
        metadata=client.V1ObjectMeta(labels=labels),
        spec=pod_spec,
    )

    job_spec = client.V1JobSpec(
        template=template,
        backoff_limit=0,  # A failed build is a failed stage, never retried
        active_deadline_seconds=timeout,
        ttl_seconds_after_finished=settings.job_ttl_after_finished,
    )

    return client.V1Job(
        api_version="batch/v1",
        kind="Job",
        metadata=client.V1ObjectMeta(
            name=job_name,
            namespace=settings.k8s_namespace,
            labels=labels,
        ),
        spec=job_spec,
    )

def get_job_status(job: client.V1Job) -> str:
    """
    Determine job status from Kubernetes Job object.
    Returns: 'pending', 'running', 'succeeded', 'failed'
    """
    if job.status is None:
        return "pending"

    if job.status.succeeded and job.status.succeeded > 0:
        return "succeeded"

    if job.status.failed and job.status.failed > 0:
        return "failed"

    if job.status.active and job.status.active > 0:
        return "running"

    return "pending"

def get_job_failure_reason(job: client.V1Job) -> str:
    """Pull the reason out of a failed Job's conditions."""
    conditions = (job.status.conditions or []) if job.status else []
    for condition in conditions:
        if condition.type == "Failed" and condition.status == "True":
            return condition.reason or condition.message or "Failed"
    return "Failed"
