"""
GitHub Service component.

Talks to the GitHub REST API on behalf of the requester: resolves the
authenticated user, looks up a repository's default branch and opens pull
requests.
"""

import time
from typing import Any, Dict, Optional

import httpx

from cicd_bot.models.user import User
from cicd_bot.services.errors import RemoteApiError
from cicd_bot.utils.logging import get_logger, log_api_call

logger = get_logger(__name__)


class GithubService:
    """GitHub REST API client."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        github_host: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the GitHub Service.

        Args:
            api_url: GitHub API base URL. If None, will load from settings.
            github_host: GitHub web URL used for display links. If None,
                will load from settings.
            timeout: Per-request timeout in seconds. If None, will load from settings.
            transport: Optional httpx transport (used by tests)
        """
        if api_url is None or github_host is None or timeout is None:
            from cicd_bot.config import settings
            api_url = api_url or settings.github_api_url
            github_host = github_host or settings.github_host
            timeout = timeout if timeout is not None else settings.github_timeout_seconds

        self.api_url = api_url.rstrip("/")
        self.github_host = github_host.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def pull_request_url(self, organization_name: str, project_name: str, pull_request_number: int) -> str:
        """Web URL of a pull request."""
        return f"{self.github_host}/{organization_name}/{project_name}/pull/{pull_request_number}"

    async def get_authenticated_user(self, github_token: str) -> User:
        """
        Resolve the user owning a GitHub token.

        Raises:
            RemoteApiError: If GitHub rejects the token or the call fails
        """
        data = await self._request("GET", "/user", github_token)

        return User(
            login=data["login"],
            name=data.get("name"),
            email=data.get("email"),
            github_token=github_token,
        )

    async def get_default_branch(self, user: User, organization_name: str, project_name: str) -> str:
        """
        Look up a repository's default branch.

        Raises:
            RemoteApiError: If the repository cannot be read
        """
        data = await self._request("GET", f"/repos/{organization_name}/{project_name}", user.github_token)
        return data.get("default_branch") or "main"

    async def create_pull_request(
        self,
        user: User,
        organization_name: str,
        project_name: str,
        title: str,
        branch_name: str,
        body: str
    ) -> int:
        """
        Open a pull request from a branch into the default branch.

        Args:
            user: Requester
            organization_name: Repository owner
            project_name: Repository name
            title: Pull request title
            branch_name: Head branch
            body: Pull request description

        Returns:
            Pull request number

        Raises:
            RemoteApiError: If GitHub refuses the pull request
        """
        base_branch = await self.get_default_branch(user, organization_name, project_name)

        logger.info(f"Creating pull request {branch_name} -> {base_branch} on {organization_name}/{project_name}")

        data = await self._request(
            "POST",
            f"/repos/{organization_name}/{project_name}/pulls",
            user.github_token,
            json={
                "title": title,
                "head": branch_name,
                "base": base_branch,
                "body": body,
            },
        )
        return int(data["number"])

    async def _request(
        self,
        method: str,
        endpoint: str,
        github_token: str,
        json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Perform one GitHub API call.

        Returns:
            Decoded JSON body

        Raises:
            RemoteApiError: On transport errors and non-2xx responses
        """
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {github_token}",
            "User-Agent": "cicd-bot",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        start_time = time.time()

        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, endpoint, headers=headers, json=json)
        except httpx.HTTPError as e:
            log_api_call(
                logger,
                service="github",
                endpoint=endpoint,
                method=method,
                duration_ms=(time.time() - start_time) * 1000,
                error=str(e),
            )
            raise RemoteApiError(f"GitHub API request {method} {endpoint} failed: {e}") from e

        duration_ms = (time.time() - start_time) * 1000

        if response.is_error:
            message = self._error_message(response)
            log_api_call(
                logger,
                service="github",
                endpoint=endpoint,
                method=method,
                status_code=response.status_code,
                duration_ms=duration_ms,
                error=message,
            )
            raise RemoteApiError(
                f"GitHub API {method} {endpoint} returned {response.status_code}: {message}",
                status_code=response.status_code,
            )

        log_api_call(
            logger,
            service="github",
            endpoint=endpoint,
            method=method,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason_phrase

        message = data.get("message", "") if isinstance(data, dict) else ""
        errors = data.get("errors") if isinstance(data, dict) else None
        if errors:
            details = "; ".join(
                error.get("message", str(error)) if isinstance(error, dict) else str(error)
                for error in errors
            )
            message = f"{message} ({details})" if message else details
        return message or response.reason_phrase
