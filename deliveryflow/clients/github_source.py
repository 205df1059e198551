# ============================================
# 📁 clients/github_source.py
# ============================================
import logging
from typing import Optional

import httpx

from deliveryflow.core.exceptions import CollaboratorFailedError, CollaboratorUnavailableError
from deliveryflow.interfaces.collaborators import SourcePayload

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com"


class GitHubSourceCollaborator:
    """
    Resolves the head commit of a branch through the GitHub REST API. The payload
    reference handed to later stages is the tarball URL pinned to that commit.
    """

    def __init__(self, api_url: str = DEFAULT_GITHUB_API_URL, client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 30.0):
        self.api_url = api_url.rstrip("/")
        self._client = client
        self.timeout = timeout

    def _headers(self, credential: Optional[str]):
        headers = {"Accept": "application/vnd.github+json"}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        return headers

    async def _get(self, url: str, credential: Optional[str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, headers=self._headers(credential), timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, headers=self._headers(credential))

    async def pull(self, repository: str, branch: str, credential: Optional[str]) -> SourcePayload:
        url = f"{self.api_url}/repos/{repository}/branches/{branch}"
        try:
            response = await self._get(url, credential)
        except httpx.TransportError as e:
            raise CollaboratorUnavailableError(f"GitHub unreachable: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise CollaboratorUnavailableError(f"GitHub returned HTTP {response.status_code} for {repository}@{branch}")
        if response.status_code >= 400:
            raise CollaboratorFailedError(
                f"GitHub rejected {repository}@{branch} with HTTP {response.status_code}: {response.text[:200]}"
            )

        sha = response.json()["commit"]["sha"]
        logger.info(f"Resolved {repository}@{branch} to {sha[:12]}")
        return SourcePayload(payload_ref=f"{self.api_url}/repos/{repository}/tarball/{sha}", revision_id=sha)
