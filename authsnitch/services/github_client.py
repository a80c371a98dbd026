"""
GitHub client.

Fetches pull request metadata, diffs and changed files from the GitHub REST
API and posts PR comments. Calls go through a circuit breaker, and transient
failures (network errors, 429 and 5xx responses) are retried with
exponential backoff.
"""

import json
import os
from typing import Any, Dict, List, Optional

import httpx

from authsnitch.exceptions import PermanentGitHubError, TransientGitHubError
from authsnitch.models.file_change import ChangedFile
from authsnitch.models.pr_info import PRContext, PRInfo
from authsnitch.utils.logging import get_logger
from authsnitch.utils.metrics import AnalysisMetrics, track_api_call
from authsnitch.utils.resilience import (
    CircuitBreaker,
    create_github_circuit_breaker,
    retry_with_backoff,
)


logger = get_logger(__name__)

GITHUB_API_URL = "https://api.github.com"
DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
JSON_MEDIA_TYPE = "application/vnd.github+json"
FILES_PER_PAGE = 100
# GitHub caps the files listing at 3000 entries
MAX_FILE_PAGES = 30


class GitHubClient:
    """Async client for the subset of the GitHub API used by the action."""

    def __init__(
        self,
        token: str,
        base_url: str = GITHUB_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        metrics: Optional[AnalysisMetrics] = None,
    ):
        """
        Initialize the client.

        Args:
            token: GitHub token
            base_url: API root
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
            circuit_breaker: Optional CircuitBreaker instance
            metrics: Optional run metrics to record call latency into
        """
        self.circuit_breaker = circuit_breaker or create_github_circuit_breaker()
        self.metrics = metrics
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": JSON_MEDIA_TYPE,
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "authsnitch",
            },
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    @retry_with_backoff(max_retries=3, base_delay=1.0, exceptions=(TransientGitHubError,))
    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        accept: Optional[str] = None,
    ) -> httpx.Response:
        headers = {"Accept": accept} if accept else None

        async def _execute() -> httpx.Response:
            try:
                response = await self._http.request(
                    method, path, params=params, json=json_body, headers=headers
                )
            except httpx.TransportError as e:
                raise TransientGitHubError(f"{method} {path} failed: {e}") from e

            if response.status_code == 429 or response.status_code >= 500:
                raise TransientGitHubError(
                    f"{method} {path} returned HTTP {response.status_code}"
                )
            if response.status_code >= 400:
                raise PermanentGitHubError(
                    f"{method} {path} returned HTTP {response.status_code}: {response.text[:200]}"
                )
            return response

        async with track_api_call(self.metrics, "github", logger, endpoint=path, method=method):
            return await self.circuit_breaker.call(_execute)

    async def pull_request(self, repo: str, pr_number: int) -> PRInfo:
        """
        Fetch pull request metadata.

        Args:
            repo: Repository in "owner/repo" form
            pr_number: Pull request number

        Returns:
            PRInfo with title, author and URL
        """
        response = await self._request("GET", f"/repos/{repo}/pulls/{pr_number}")
        data = response.json()
        return PRInfo(
            repo=repo,
            number=pr_number,
            title=data.get("title"),
            author=(data.get("user") or {}).get("login"),
            url=data.get("html_url"),
        )

    async def pull_request_diff(self, repo: str, pr_number: int) -> str:
        """Fetch the unified diff of a pull request."""
        response = await self._request(
            "GET", f"/repos/{repo}/pulls/{pr_number}", accept=DIFF_MEDIA_TYPE
        )
        return response.text

    async def pull_request_files(self, repo: str, pr_number: int) -> List[ChangedFile]:
        """
        Fetch every changed file of a pull request, following pagination.

        Files without a ``patch`` (binary or too large) are returned with
        ``patch=None``.
        """
        files: List[ChangedFile] = []
        for page in range(1, MAX_FILE_PAGES + 1):
            response = await self._request(
                "GET",
                f"/repos/{repo}/pulls/{pr_number}/files",
                params={"per_page": FILES_PER_PAGE, "page": page},
            )
            batch = response.json()
            for item in batch:
                files.append(ChangedFile(
                    filename=item["filename"],
                    status=item.get("status", "modified"),
                    patch=item.get("patch"),
                ))
            if len(batch) < FILES_PER_PAGE:
                break

        logger.info(
            f"Fetched {len(files)} changed files",
            extra={"repo": repo, "pr_number": pr_number},
        )
        return files

    async def create_pr_comment(self, repo: str, pr_number: int, body: str) -> Dict[str, Any]:
        """Post a markdown comment on a pull request."""
        response = await self._request(
            "POST",
            f"/repos/{repo}/issues/{pr_number}/comments",
            json_body={"body": body},
        )
        return response.json()


def pr_context_from_env(
    event_path: Optional[str] = None,
    repository: Optional[str] = None,
) -> Optional[PRContext]:
    """
    Read the repository and PR number from the GitHub Actions event.

    Args:
        event_path: Event payload path (defaults to $GITHUB_EVENT_PATH)
        repository: "owner/repo" (defaults to $GITHUB_REPOSITORY)

    Returns:
        PRContext, or None when this is not a pull request event
    """
    event_path = event_path or os.environ.get("GITHUB_EVENT_PATH")
    repository = repository or os.environ.get("GITHUB_REPOSITORY")
    if not event_path or not os.path.isfile(event_path):
        return None

    try:
        with open(event_path, "r", encoding="utf-8") as f:
            event = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read event payload {event_path}: {e}")
        return None

    pr_data = event.get("pull_request") if isinstance(event, dict) else None
    if not pr_data or not repository or pr_data.get("number") is None:
        return None

    return PRContext(repo=repository, pr_number=int(pr_data["number"]))
