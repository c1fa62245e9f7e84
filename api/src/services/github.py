"""
GitHub webhook validation and parsing.
"""

import hmac
import hashlib
from typing import Dict, Any

from api.src.config import get_settings

settings = get_settings()

def verify_signature(payload: bytes, signature: str, secret: str = None) -> bool:
    """Verify GitHub webhook signature."""
    secret = settings.github_webhook_secret if secret is None else secret
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

def parse_webhook_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Extract the release trigger from a GitHub push payload."""
    repo = payload.get("repository", {})
    head_commit = payload.get("head_commit") or {}

    # Get branch from ref (refs/heads/main -> main)
    ref = payload.get("ref", "")
    branch = ref.replace("refs/heads/", "") if ref.startswith("refs/heads/") else ref

    owner = repo.get("owner", {}).get("login") or repo.get("owner", {}).get("name", "")
    full_name = repo.get("full_name", "")
    if not owner and "/" in full_name:
        owner = full_name.split("/", 1)[0]

    return {
        "owner": owner,
        "repo": repo.get("name", ""),
        "branch": branch,
        "commit_ref": head_commit.get("id", payload.get("after", "")),
        "triggered_by": payload.get("pusher", {}).get("name", ""),
    }

def is_branch_deletion(payload: Dict[str, Any]) -> bool:
    """Pushes that delete a branch carry an all-zero 'after' SHA."""
    return bool(payload.get("deleted")) or set(payload.get("after", "")) == {"0"}
