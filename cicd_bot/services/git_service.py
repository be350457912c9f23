"""
Git Service component.

Clones GitHub repositories, creates branches, commits and pushes using the
git command line, authenticated with the requester's GitHub token.
"""

import asyncio
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import urlsplit, urlunsplit, quote

from cicd_bot.models.user import User
from cicd_bot.services.errors import RepositoryError
from cicd_bot.utils.logging import get_logger

logger = get_logger(__name__)

MASK = "****"


@dataclass
class GitRepository:
    """Handle on a cloned repository."""

    working_dir: Path
    organization_name: str
    project_name: str
    branch: Optional[str] = None
    secrets: List[str] = field(default_factory=list, repr=False)


class GitService:
    """Runs git operations against a working directory."""

    def __init__(self, github_host: Optional[str] = None, git_command: Optional[str] = None):
        """
        Initialize the Git Service.

        Args:
            github_host: Base URL of the git host. If None, will load from settings.
            git_command: git executable. If None, will load from settings.
        """
        if github_host is None or git_command is None:
            from cicd_bot.config import settings
            github_host = github_host or settings.github_host
            git_command = git_command or settings.git_command

        self.github_host = github_host.rstrip("/")
        self.git_command = git_command

    def remote_url(self, user: Optional[User], organization_name: str, project_name: str) -> str:
        """
        Build the remote URL of a repository.

        HTTP(S) URLs embed the user's token as credentials; other schemes
        (file, ssh) are returned as is.
        """
        url = f"{self.github_host}/{organization_name}/{project_name}.git"
        parts = urlsplit(url)

        if user is None or parts.scheme not in ("http", "https"):
            return url

        netloc = f"x-access-token:{quote(user.github_token, safe='')}@{parts.netloc}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    async def clone_repository(
        self,
        user: User,
        working_dir: Path,
        organization_name: str,
        project_name: str
    ) -> GitRepository:
        """
        Clone a repository into the working directory.

        The requester becomes the committer of the local repository.

        Raises:
            RepositoryError: If the clone fails
        """
        logger.info(f"Cloning {organization_name}/{project_name} into {working_dir}")

        repository = GitRepository(
            working_dir=Path(working_dir),
            organization_name=organization_name,
            project_name=project_name,
            secrets=[user.github_token],
        )

        await self._run_git(
            repository,
            ["clone", self.remote_url(user, organization_name, project_name), "."],
            operation="clone",
        )
        await self._run_git(repository, ["config", "user.name", user.display_name], operation="clone")
        await self._run_git(repository, ["config", "user.email", user.commit_email], operation="clone")

        return repository

    async def create_branch(self, repository: GitRepository, branch_name: str) -> None:
        """
        Create and check out a branch.

        Raises:
            RepositoryError: If the branch cannot be created
        """
        logger.info(f"Creating branch {branch_name}")
        await self._run_git(repository, ["checkout", "-b", branch_name], operation="branch")
        repository.branch = branch_name

    async def add_all_files(self, repository: GitRepository, working_dir: Path) -> None:
        """
        Stage every change of the working directory.

        Raises:
            RepositoryError: If staging fails
        """
        await self._run_git(repository, ["add", "--all", "."], cwd=working_dir, operation="add")

    async def commit(self, repository: GitRepository, working_dir: Path, message: str) -> None:
        """
        Commit staged changes.

        Raises:
            RepositoryError: If the commit fails
        """
        logger.info(f"Committing: {message}")
        await self._run_git(repository, ["commit", "-m", message], cwd=working_dir, operation="commit")

    async def push(
        self,
        repository: GitRepository,
        working_dir: Path,
        user: User,
        organization_name: str,
        project_name: str
    ) -> None:
        """
        Push the current branch to the same branch name on the remote.

        Raises:
            RepositoryError: If the push fails
        """
        if user.github_token not in repository.secrets:
            repository.secrets.append(user.github_token)

        logger.info(f"Pushing {repository.branch or 'HEAD'} to {organization_name}/{project_name}")
        await self._run_git(
            repository,
            ["push", self.remote_url(user, organization_name, project_name), "HEAD"],
            cwd=working_dir,
            operation="push",
        )

    async def _run_git(
        self,
        repository: GitRepository,
        args: Sequence[str],
        operation: str,
        cwd: Optional[Path] = None
    ) -> str:
        """
        Run one git command in a worker thread.

        Args:
            repository: Repository the command applies to
            args: git arguments
            operation: Operation name used in error messages
            cwd: Directory to run in, defaults to the repository's

        Returns:
            Command standard output

        Raises:
            RepositoryError: If git is missing or exits with a non-zero code
        """
        command = [self.git_command, *args]
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                command,
                cwd=str(cwd or repository.working_dir),
                env=env,
                capture_output=True,
                text=True,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise RepositoryError(f"Unable to run git: {e}", step=operation) from e

        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            message = f"git {operation} failed: {output}" if output else f"git {operation} failed"
            raise RepositoryError(self._mask(message, repository.secrets), step=operation)

        return result.stdout

    @staticmethod
    def _mask(text: str, secrets: Sequence[str]) -> str:
        for secret in secrets:
            if secret:
                text = text.replace(secret, MASK)
                text = text.replace(quote(secret, safe=''), MASK)
        return text
