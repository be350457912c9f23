"""
CI/CD Service component.

Adds a CI/CD configuration to an existing GitHub repository: clones it,
creates a branch, generates the configuration, commits, pushes and opens a
pull request. Progress and outcome are reported only through the request's
log stream; runs are dispatched fire-and-forget.
"""

import asyncio
from typing import Optional, Set

from cicd_bot.models.ci_cd import (
    PULL_REQUEST_BODY,
    CiCdRequest,
    build_commit_message,
    build_pull_request_title,
)
from cicd_bot.models.log_entry import LogEvent
from cicd_bot.services.errors import error_message, to_error_record
from cicd_bot.services.generator_service import GeneratorService
from cicd_bot.services.git_service import GitService
from cicd_bot.services.github_service import GithubService
from cicd_bot.services.logs_service import LogsService
from cicd_bot.services.workspace import WorkspaceManager
from cicd_bot.utils.logging import get_logger, log_error_with_context
from cicd_bot.utils.metrics import CiCdMetrics, track_step

logger = get_logger(__name__)


class CiCdService:
    """Orchestrates one CI/CD configuration run per request."""

    def __init__(
        self,
        logs_service: Optional[LogsService] = None,
        git_service: Optional[GitService] = None,
        github_service: Optional[GithubService] = None,
        generator_service: Optional[GeneratorService] = None,
        workspace: Optional[WorkspaceManager] = None,
    ):
        """Initialize the CI/CD Service with its collaborators."""
        self.logs_service = logs_service or LogsService()
        self.git_service = git_service or GitService()
        self.github_service = github_service or GithubService()
        self.generator_service = generator_service or GeneratorService()
        self.workspace = workspace or WorkspaceManager()
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, request: CiCdRequest) -> asyncio.Task:
        """
        Start a run in the background and return immediately.

        The returned task never fails; completion is observable through the
        log stream only.

        Args:
            request: CI/CD request

        Returns:
            Background task running the request
        """
        task = asyncio.create_task(
            self.configure_ci_cd(request),
            name=f"ci-cd-{request.ci_cd_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(f"Dispatched CI/CD configuration {request.ci_cd_id}", extra={"ci_cd_id": request.ci_cd_id})
        return task

    @property
    def pending_runs(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Wait for in-flight runs to complete."""
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} CI/CD configuration run(s) to complete...")
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def configure_ci_cd(self, request: CiCdRequest) -> None:
        """
        Configure CI/CD on a repository and open a pull request.

        Never raises: a failing step aborts the run, is written to the log
        stream followed by "Generation failed", and the method returns.

        Args:
            request: CI/CD request
        """
        ci_cd_id = request.ci_cd_id
        organization_name = request.organization_name
        project_name = request.project_name
        ci_cd_tool = request.ci_cd_tool
        user = request.user

        log = logger.with_context(
            ci_cd_id=ci_cd_id,
            organization=organization_name,
            project=project_name,
            ci_cd_tool=ci_cd_tool,
        )
        metrics = CiCdMetrics(ci_cd_id, organization_name, project_name, ci_cd_tool)
        metrics.start()
        step = "workspace"

        try:
            log.info(f"Beginning to configure CI with {ci_cd_tool} to {organization_name} / {project_name}")
            await self.logs_service.add_log(
                ci_cd_id,
                LogEvent.CLONE_STARTED,
                f"Cloning GitHub repository `{organization_name}/{project_name}`",
                repository=request.repository_full_name,
            )

            async with self.workspace.acquire(ci_cd_id) as working_dir:
                step = "clone"
                async with track_step(metrics, step, log):
                    repository = await self.git_service.clone_repository(
                        user, working_dir, organization_name, project_name
                    )

                step = "branch"
                branch_name = request.branch_name
                await self.logs_service.add_log(
                    ci_cd_id,
                    LogEvent.BRANCH_CREATING,
                    f"Creating branch `{branch_name}`",
                    branch=branch_name,
                )
                async with track_step(metrics, step, log):
                    await self.git_service.create_branch(repository, branch_name)

                step = "generate"
                await self.logs_service.add_log(
                    ci_cd_id,
                    LogEvent.GENERATING,
                    "Generating Continuous Integration configuration",
                    ci_cd_tool=ci_cd_tool,
                )
                async with track_step(metrics, step, log):
                    await self.generator_service.generate(ci_cd_id, working_dir, ci_cd_tool)

                step = "commit"
                async with track_step(metrics, step, log):
                    await self.git_service.add_all_files(repository, working_dir)
                    await self.git_service.commit(repository, working_dir, build_commit_message(ci_cd_tool))

                step = "push"
                await self.logs_service.add_log(
                    ci_cd_id,
                    LogEvent.PUSHING,
                    "Pushing the application to the Git remote repository",
                    branch=branch_name,
                )
                async with track_step(metrics, step, log):
                    await self.git_service.push(repository, working_dir, user, organization_name, project_name)
                await self.logs_service.add_log(ci_cd_id, LogEvent.PUSHED, "Application successfully pushed!")

                step = "pull_request"
                await self.logs_service.add_log(ci_cd_id, LogEvent.PULL_REQUEST_CREATING, "Creating Pull Request")
                async with track_step(metrics, step, log):
                    pull_request_number = await self.github_service.create_pull_request(
                        user,
                        organization_name,
                        project_name,
                        build_pull_request_title(ci_cd_tool),
                        branch_name,
                        PULL_REQUEST_BODY,
                    )

                pull_request_url = self.github_service.pull_request_url(
                    organization_name, project_name, pull_request_number
                )
                await self.logs_service.add_log(
                    ci_cd_id,
                    LogEvent.PULL_REQUEST_CREATED,
                    f"Pull Request created at {pull_request_url}",
                    pull_request_number=pull_request_number,
                    pull_request_url=pull_request_url,
                )

                step = "cleanup"

            await self.logs_service.add_log(ci_cd_id, LogEvent.FINISHED, "Generation finished")
            metrics.complete("completed")

        except Exception as e:
            error_record = to_error_record(e, step=step)
            log_error_with_context(
                log,
                f"CI/CD configuration failed during {error_record.step}: {error_record.message}",
                e,
                error_kind=error_record.kind.value,
            )
            await self.logs_service.add_log(
                ci_cd_id,
                LogEvent.ERROR,
                f"Error during generation: {error_message(e)}",
                error=error_record,
            )
            await self.logs_service.add_log(ci_cd_id, LogEvent.FAILED, "Generation failed")
            metrics.complete("failed", error_message=error_message(e))
