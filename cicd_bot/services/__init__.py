"""Business logic services package."""

from cicd_bot.services.errors import (
    CiCdError,
    FilesystemError,
    RepositoryError,
    RemoteApiError,
    GenerationError,
    error_message,
    to_error_record,
)
from cicd_bot.services.logs_service import LogsService, LogStoreConnectionError
from cicd_bot.services.workspace import WorkspaceManager
from cicd_bot.services.git_service import GitService, GitRepository
from cicd_bot.services.github_service import GithubService
from cicd_bot.services.generator_service import (
    GeneratorService,
    SUPPORTED_CI_CD_TOOLS,
)
from cicd_bot.services.ci_cd_service import CiCdService

__all__ = [
    'CiCdError',
    'FilesystemError',
    'RepositoryError',
    'RemoteApiError',
    'GenerationError',
    'error_message',
    'to_error_record',
    'LogsService',
    'LogStoreConnectionError',
    'WorkspaceManager',
    'GitService',
    'GitRepository',
    'GithubService',
    'GeneratorService',
    'SUPPORTED_CI_CD_TOOLS',
    'CiCdService'
]
