from api.src.services.github import (
    verify_signature,
    parse_webhook_payload,
    is_branch_deletion,
)
from api.src.services.queue import (
    enqueue_trigger,
    get_run_status,
    get_queue_length,
)
from api.src.services.runs import queue_pipeline_run

__all__ = [
    "verify_signature",
    "parse_webhook_payload",
    "is_branch_deletion",
    "enqueue_trigger",
    "get_run_status",
    "get_queue_length",
    "queue_pipeline_run",
]
