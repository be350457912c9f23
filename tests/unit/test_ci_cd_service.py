"""
Unit tests for the CI/CD Service orchestration.

Collaborators are replaced by recording fakes; the log stream uses
fakeredis and the working directories live under pytest's tmp_path.
"""

import asyncio
from pathlib import Path
from typing import AsyncGenerator, List, Optional, Tuple

import fakeredis
import pytest

from cicd_bot.models.ci_cd import CiCdRequest
from cicd_bot.models.error import ErrorKind
from cicd_bot.models.log_entry import LogEvent
from cicd_bot.models.user import User
from cicd_bot.services.ci_cd_service import CiCdService
from cicd_bot.services.errors import (
    GenerationError,
    RemoteApiError,
    RepositoryError,
)
from cicd_bot.services.generator_service import GeneratorService
from cicd_bot.services.git_service import GitRepository, GitService
from cicd_bot.services.github_service import GithubService
from cicd_bot.services.logs_service import LogsService
from cicd_bot.services.workspace import WorkspaceManager


SUCCESS_EVENTS = [
    LogEvent.CLONE_STARTED,
    LogEvent.BRANCH_CREATING,
    LogEvent.GENERATING,
    LogEvent.PUSHING,
    LogEvent.PUSHED,
    LogEvent.PULL_REQUEST_CREATING,
    LogEvent.PULL_REQUEST_CREATED,
    LogEvent.FINISHED,
]


class Recorder:
    """Shared call journal; raises on the configured operation."""

    def __init__(self, fail_on: Optional[str] = None, error: Optional[Exception] = None):
        self.fail_on = fail_on
        self.error = error
        self.calls: List[Tuple[str, tuple]] = []
        self.directories: List[Tuple[str, bool]] = []

    async def record(self, name: str, *args, working_dir: Optional[Path] = None):
        self.calls.append((name, args))
        if working_dir is not None:
            self.directories.append((name, Path(working_dir).is_dir()))
        await asyncio.sleep(0)
        if name == self.fail_on:
            raise self.error

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def args_of(self, name: str) -> tuple:
        return next(args for call_name, args in self.calls if call_name == name)


class FakeGitService:

    def __init__(self, recorder: Recorder):
        self.recorder = recorder

    async def clone_repository(self, user, working_dir, organization_name, project_name):
        await self.recorder.record(
            "clone", user, working_dir, organization_name, project_name, working_dir=working_dir
        )
        return GitRepository(
            working_dir=working_dir,
            organization_name=organization_name,
            project_name=project_name,
        )

    async def create_branch(self, repository, branch_name):
        await self.recorder.record("create_branch", branch_name, working_dir=repository.working_dir)
        repository.branch = branch_name

    async def add_all_files(self, repository, working_dir):
        await self.recorder.record("add_all_files", working_dir=working_dir)

    async def commit(self, repository, working_dir, message):
        await self.recorder.record("commit", message, working_dir=working_dir)

    async def push(self, repository, working_dir, user, organization_name, project_name):
        await self.recorder.record(
            "push", repository.branch, user, organization_name, project_name, working_dir=working_dir
        )


class FakeGeneratorService:

    def __init__(self, recorder: Recorder):
        self.recorder = recorder

    async def generate(self, ci_cd_id, working_dir, ci_cd_tool):
        await self.recorder.record("generate", ci_cd_id, ci_cd_tool, working_dir=working_dir)


class FakeGithubService:

    def __init__(self, recorder: Recorder, pull_request_number: int = 7):
        self.recorder = recorder
        self.pull_request_number = pull_request_number

    async def create_pull_request(self, user, organization_name, project_name, title, branch_name, body):
        await self.recorder.record(
            "create_pull_request", user, organization_name, project_name, title, branch_name, body
        )
        return self.pull_request_number

    def pull_request_url(self, organization_name, project_name, pull_request_number):
        return f"https://github.com/{organization_name}/{project_name}/pull/{pull_request_number}"


@pytest.fixture
async def logs_service() -> AsyncGenerator[LogsService, None]:
    service = LogsService(redis_url="redis://localhost:6379/0", ttl_seconds=60, retry_delay=0)
    fake_redis = fakeredis.FakeAsyncRedis(decode_responses=True)
    service._client = fake_redis

    yield service

    await fake_redis.flushdb()
    await fake_redis.aclose()


@pytest.fixture
def user() -> User:
    return User(login="octocat", github_token="gho_token")


@pytest.fixture
def request_42(user) -> CiCdRequest:
    return CiCdRequest(
        user=user,
        organization_name="acme",
        project_name="widget",
        ci_cd_tool="travis",
        ci_cd_id="42",
    )


def build_service(
    logs_service: LogsService,
    tmp_path: Path,
    recorder: Recorder,
    workspace: Optional[WorkspaceManager] = None,
) -> CiCdService:
    return CiCdService(
        logs_service=logs_service,
        git_service=FakeGitService(recorder),
        github_service=FakeGithubService(recorder),
        generator_service=FakeGeneratorService(recorder),
        workspace=workspace or WorkspaceManager(tmp_folder=tmp_path),
    )


class TestSuccessfulRun:
    """Happy path."""

    @pytest.mark.asyncio
    async def test_log_stream_order(self, logs_service, tmp_path, request_42):
        """Test the log stream of a successful run, in order and without duplicates."""
        service = build_service(logs_service, tmp_path, Recorder())

        await service.configure_ci_cd(request_42)

        entries = await logs_service.get_logs("42")
        assert [entry.event for entry in entries] == SUCCESS_EVENTS
        assert [entry.message for entry in entries] == [
            "Cloning GitHub repository `acme/widget`",
            "Creating branch `jhipster-travis-42`",
            "Generating Continuous Integration configuration",
            "Pushing the application to the Git remote repository",
            "Application successfully pushed!",
            "Creating Pull Request",
            "Pull Request created at https://github.com/acme/widget/pull/7",
            "Generation finished",
        ]

    @pytest.mark.asyncio
    async def test_steps_run_in_order(self, logs_service, tmp_path, request_42):
        recorder = Recorder()
        service = build_service(logs_service, tmp_path, recorder)

        await service.configure_ci_cd(request_42)

        assert recorder.names() == [
            "clone",
            "create_branch",
            "generate",
            "add_all_files",
            "commit",
            "push",
            "create_pull_request",
        ]

    @pytest.mark.asyncio
    async def test_names_and_messages(self, logs_service, tmp_path, request_42, user):
        """Test branch, commit and pull request wording for travis / 42."""
        recorder = Recorder()
        service = build_service(logs_service, tmp_path, recorder)

        await service.configure_ci_cd(request_42)

        assert recorder.args_of("create_branch") == ("jhipster-travis-42",)
        assert recorder.args_of("commit") == ("Configure Travis Continuous Integration",)
        assert recorder.args_of("push") == ("jhipster-travis-42", user, "acme", "widget")
        assert recorder.args_of("generate") == ("42", "travis")
        assert recorder.args_of("create_pull_request") == (
            user,
            "acme",
            "widget",
            "Configure Continuous Integration with Travis",
            "jhipster-travis-42",
            "Continuous Integration configured by JHipster",
        )

    @pytest.mark.asyncio
    async def test_pull_request_entry_carries_fields(self, logs_service, tmp_path, request_42):
        service = build_service(logs_service, tmp_path, Recorder())

        await service.configure_ci_cd(request_42)

        entries = await logs_service.get_logs("42")
        created = next(entry for entry in entries if entry.event == LogEvent.PULL_REQUEST_CREATED)
        assert created.fields["pull_request_number"] == 7
        assert created.fields["pull_request_url"] == "https://github.com/acme/widget/pull/7"

    @pytest.mark.asyncio
    async def test_working_directory_lifetime(self, logs_service, tmp_path, request_42):
        """Test the directory exists during every step and is gone afterwards."""
        recorder = Recorder()
        workspace = WorkspaceManager(tmp_folder=tmp_path)
        service = build_service(logs_service, tmp_path, recorder, workspace)

        await service.configure_ci_cd(request_42)

        assert recorder.directories
        assert all(exists for _, exists in recorder.directories)
        assert recorder.args_of("clone")[1] == workspace.path_for("42")
        assert not workspace.path_for("42").exists()


FAILURES = [
    ("clone", RepositoryError("git clone failed: repository not found"), ErrorKind.REPOSITORY,
     [LogEvent.CLONE_STARTED]),
    ("create_branch", RepositoryError("git branch failed: already exists"), ErrorKind.REPOSITORY,
     [LogEvent.CLONE_STARTED, LogEvent.BRANCH_CREATING]),
    ("generate", GenerationError("Generator exited with code 1"), ErrorKind.GENERATION,
     [LogEvent.CLONE_STARTED, LogEvent.BRANCH_CREATING, LogEvent.GENERATING]),
    ("commit", RepositoryError("git commit failed: nothing to commit"), ErrorKind.REPOSITORY,
     [LogEvent.CLONE_STARTED, LogEvent.BRANCH_CREATING, LogEvent.GENERATING]),
    ("push", RepositoryError("git push failed: rejected"), ErrorKind.REPOSITORY,
     [LogEvent.CLONE_STARTED, LogEvent.BRANCH_CREATING, LogEvent.GENERATING, LogEvent.PUSHING]),
    ("create_pull_request", RemoteApiError("Validation Failed", status_code=422), ErrorKind.REMOTE_API,
     [LogEvent.CLONE_STARTED, LogEvent.BRANCH_CREATING, LogEvent.GENERATING, LogEvent.PUSHING,
      LogEvent.PUSHED, LogEvent.PULL_REQUEST_CREATING]),
]


class TestFailedRun:
    """Failure policy."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fail_on, error, kind, events_before", FAILURES)
    async def test_failure_at_each_step(
        self, logs_service, tmp_path, request_42, fail_on, error, kind, events_before
    ):
        """Test a failing step stops the run and ends the log with error then failed."""
        recorder = Recorder(fail_on=fail_on, error=error)
        workspace = WorkspaceManager(tmp_folder=tmp_path)
        service = build_service(logs_service, tmp_path, recorder, workspace)

        await service.configure_ci_cd(request_42)

        entries = await logs_service.get_logs("42")
        assert [entry.event for entry in entries] == events_before + [LogEvent.ERROR, LogEvent.FAILED]
        assert entries[-2].message == f"Error during generation: {error}"
        assert entries[-1].message == "Generation failed"
        assert entries[-2].error.kind == kind
        assert recorder.names()[-1] == fail_on
        assert not workspace.path_for("42").exists()

    @pytest.mark.asyncio
    async def test_push_failure_scenario(self, logs_service, tmp_path, request_42):
        """Test a push failure never reaches pull request creation."""
        recorder = Recorder(fail_on="push", error=RepositoryError("git push failed: rejected", step="push"))
        service = build_service(logs_service, tmp_path, recorder)

        await service.configure_ci_cd(request_42)

        entries = await logs_service.get_logs("42")
        messages = [entry.message for entry in entries]
        assert "Creating Pull Request" not in messages
        assert "git push failed: rejected" in messages[-2]
        assert messages[-1] == "Generation failed"
        assert entries[-2].error.step == "push"
        assert "create_pull_request" not in recorder.names()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_recorded(self, logs_service, tmp_path, request_42):
        recorder = Recorder(fail_on="generate", error=RuntimeError("boom"))
        service = build_service(logs_service, tmp_path, recorder)

        await service.configure_ci_cd(request_42)

        entries = await logs_service.get_logs("42")
        assert entries[-2].error.kind == ErrorKind.UNEXPECTED
        assert entries[-2].error.step == "generate"
        assert entries[-2].error.error_type == "RuntimeError"
        assert entries[-1].event == LogEvent.FAILED

    @pytest.mark.asyncio
    async def test_error_without_message_is_named(self, logs_service, tmp_path, request_42):
        """Test an exception with no text is reported by its type name."""
        recorder = Recorder(fail_on="generate", error=asyncio.TimeoutError())
        service = build_service(logs_service, tmp_path, recorder)

        await service.configure_ci_cd(request_42)

        entries = await logs_service.get_logs("42")
        assert entries[-2].message == "Error during generation: TimeoutError"
        assert entries[-2].error.message == "TimeoutError"
        assert entries[-1].message == "Generation failed"

    @pytest.mark.asyncio
    async def test_workspace_failure(self, logs_service, tmp_path, request_42):
        """Test an unusable tmp folder aborts before cloning."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        recorder = Recorder()
        service = build_service(logs_service, tmp_path, recorder, WorkspaceManager(tmp_folder=blocker))

        await service.configure_ci_cd(request_42)

        entries = await logs_service.get_logs("42")
        assert [entry.event for entry in entries] == [LogEvent.CLONE_STARTED, LogEvent.ERROR, LogEvent.FAILED]
        assert entries[1].error.kind == ErrorKind.FILESYSTEM
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_log_store_outage_does_not_break_run(self, tmp_path, request_42):
        """Test the run completes even when no entry can be stored."""
        recorder = Recorder()
        offline_logs = LogsService(redis_url="redis://localhost:6379/0", ttl_seconds=60)
        service = build_service(offline_logs, tmp_path, recorder)

        await service.configure_ci_cd(request_42)

        assert recorder.names()[-1] == "create_pull_request"


class TestDispatch:
    """Fire-and-forget dispatch."""

    @pytest.mark.asyncio
    async def test_dispatch_returns_immediately(self, logs_service, tmp_path, request_42):
        service = build_service(logs_service, tmp_path, Recorder())

        task = service.dispatch(request_42)

        assert service.pending_runs == 1
        await task
        await asyncio.sleep(0)
        assert task.result() is None
        assert service.pending_runs == 0
        assert (await logs_service.get_logs("42"))[-1].event == LogEvent.FINISHED

    @pytest.mark.asyncio
    async def test_dispatched_failure_does_not_raise(self, logs_service, tmp_path, request_42):
        recorder = Recorder(fail_on="clone", error=RepositoryError("git clone failed"))
        service = build_service(logs_service, tmp_path, recorder)

        await service.dispatch(request_42)

        assert (await logs_service.get_logs("42"))[-1].event == LogEvent.FAILED

    @pytest.mark.asyncio
    async def test_concurrent_runs_use_distinct_directories(self, logs_service, tmp_path, user):
        """Test two requests run side by side without sharing a directory."""
        recorder = Recorder()
        workspace = WorkspaceManager(tmp_folder=tmp_path)
        service = build_service(logs_service, tmp_path, recorder, workspace)
        requests = [
            CiCdRequest(user=user, organization_name="acme", project_name="widget",
                        ci_cd_tool="travis", ci_cd_id="ci-1"),
            CiCdRequest(user=user, organization_name="acme", project_name="gadget",
                        ci_cd_tool="gitlab", ci_cd_id="ci-2"),
        ]

        for request in requests:
            service.dispatch(request)
        await service.shutdown()

        clone_dirs = [args[1] for name, args in recorder.calls if name == "clone"]
        assert sorted(clone_dirs) == sorted([workspace.path_for("ci-1"), workspace.path_for("ci-2")])
        for request in requests:
            entries = await logs_service.get_logs(request.ci_cd_id)
            assert [entry.event for entry in entries] == SUCCESS_EVENTS
            assert not workspace.path_for(request.ci_cd_id).exists()
        assert "Creating branch `jhipster-gitlab-ci-2`" in [
            entry.message for entry in await logs_service.get_logs("ci-2")
        ]

    @pytest.mark.asyncio
    async def test_shutdown_without_runs(self, logs_service, tmp_path):
        service = build_service(logs_service, tmp_path, Recorder())

        await service.shutdown()


def test_default_collaborators():
    """Test a bare service is wired to the configured collaborators."""
    service = CiCdService()

    assert isinstance(service.logs_service, LogsService)
    assert isinstance(service.git_service, GitService)
    assert isinstance(service.github_service, GithubService)
    assert isinstance(service.generator_service, GeneratorService)
    assert isinstance(service.workspace, WorkspaceManager)
    assert service.pending_runs == 0
