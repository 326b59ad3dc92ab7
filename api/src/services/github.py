"""
GitHub service for webhook validation and payload parsing.
"""

import hmac
import hashlib
from typing import Optional, Dict, Any, List

from controller.src.models.pipeline import Event, EventKind

NULL_SHA = "0" * 40

def verify_signature(payload: bytes, signature: Optional[str], secret: str) -> bool:
    """Verify GitHub webhook signature."""
    if not secret:
        # Skip verification if no secret configured (development)
        return True

    if not signature:
        return False

    expected = "sha256=" + hmac.new(
        secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature)

def changed_paths(payload: Dict[str, Any]) -> List[str]:
    """Files added, modified or removed by the pushed commits."""
    paths = set()
    for commit in payload.get("commits") or []:
        for key in ("added", "modified", "removed"):
            paths.update(commit.get(key) or [])
    return sorted(paths)

def parse_webhook_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Extract relevant info from GitHub webhook payload."""
    repo = payload.get("repository") or {}
    head_commit = payload.get("head_commit") or {}

    # Get branch from ref (refs/heads/main -> main)
    ref = payload.get("ref", "")
    branch = ref.replace("refs/heads/", "") if ref.startswith("refs/heads/") else ref

    return {
        "repo_name": repo.get("name", ""),
        "repo_full_name": repo.get("full_name", ""),
        "clone_url": repo.get("clone_url", ""),
        "commit_sha": head_commit.get("id", payload.get("after", "")),
        "branch": branch,
        "commit_message": head_commit.get("message", ""),
        "pusher": (payload.get("pusher") or {}).get("name", ""),
        "deleted": bool(payload.get("deleted")) or payload.get("after") == NULL_SHA,
        "changed_paths": changed_paths(payload),
    }

def event_from_webhook(webhook_data: Dict[str, Any]) -> Event:
    return Event(
        kind=EventKind.PUSH,
        ref=webhook_data["branch"],
        sha=webhook_data["commit_sha"],
        actor=webhook_data["pusher"],
        repository=webhook_data["clone_url"],
        changed_paths=tuple(webhook_data["changed_paths"]),
    )
