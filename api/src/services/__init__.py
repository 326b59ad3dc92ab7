from api.src.services.github import (
    verify_signature,
    parse_webhook_payload,
    event_from_webhook,
)
from api.src.services.queue import (
    enqueue_pipeline_run,
    get_run_status,
    get_queue_length,
)
from api.src.services.runs import create_run, queue_run

__all__ = [
    "verify_signature",
    "parse_webhook_payload",
    "event_from_webhook",
    "enqueue_pipeline_run",
    "get_run_status",
    "get_queue_length",
    "create_run",
    "queue_run",
]
