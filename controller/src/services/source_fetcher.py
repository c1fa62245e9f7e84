"""
GitHub source fetcher - resolves a trigger to an immutable source snapshot.
"""

import logging
from typing import Optional

import httpx

from controller.src.errors import SourceUnavailable
from controller.src.models.stage import SourceSnapshot, Trigger

logger = logging.getLogger(__name__)

class SourceFetcher:
    """
    Resolves the trigger's commit (or branch head) through the GitHub API.
    Never touches compute units or artifacts.
    """

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        token: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self._client = client
        self._timeout = timeout

    def _headers(self):
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def fetch(self, trigger: Trigger) -> SourceSnapshot:
        ref = trigger.commit_ref or trigger.branch
        if not ref:
            raise SourceUnavailable("Trigger carries neither a commit nor a branch")

        url = f"{self.api_url}/repos/{trigger.owner}/{trigger.repo}/commits/{ref}"
        client = self._client or httpx.AsyncClient(timeout=self._timeout)

        try:
            response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"Cannot reach source control: {e}")
        finally:
            if self._client is None:
                await client.aclose()

        if response.status_code in (401, 403):
            raise SourceUnavailable(
                f"Access to {trigger.owner}/{trigger.repo} denied ({response.status_code})"
            )
        if response.status_code in (404, 422):
            raise SourceUnavailable(
                f"Reference '{ref}' not found in {trigger.owner}/{trigger.repo}"
            )
        if response.status_code >= 400:
            raise SourceUnavailable(
                f"Source control returned {response.status_code} for '{ref}'"
            )

        commit_sha = response.json().get("sha")
        if not commit_sha:
            raise SourceUnavailable(f"Reference '{ref}' did not resolve to a commit")

        logger.info(f"Resolved {trigger.owner}/{trigger.repo}@{ref} to {commit_sha}")

        return SourceSnapshot(
            owner=trigger.owner,
            repo=trigger.repo,
            branch=trigger.branch,
            commit_sha=commit_sha,
            clone_url=f"https://github.com/{trigger.owner}/{trigger.repo}.git",
        )
