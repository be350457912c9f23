"""
Working directory lifecycle for CI/CD configuration runs.

Every run gets its own directory keyed by request id. The directory is
created when the run acquires it and removed on every exit path.
"""

import asyncio
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from cicd_bot.services.errors import FilesystemError
from cicd_bot.utils.logging import get_logger

logger = get_logger(__name__)


class WorkspaceManager:
    """Creates and removes per-request working directories."""

    def __init__(self, tmp_folder: Optional[Union[str, Path]] = None):
        """
        Initialize the workspace manager.

        Args:
            tmp_folder: Base temporary folder. If None, will load from settings.
        """
        if tmp_folder is None:
            from cicd_bot.config import settings
            tmp_folder = settings.tmp_folder

        self.root = Path(tmp_folder) / "jhipster" / "applications"

    def path_for(self, ci_cd_id: str) -> Path:
        """Working directory of a request."""
        return self.root / ci_cd_id

    async def create(self, ci_cd_id: str) -> Path:
        """
        Create (or reuse) the working directory of a request.

        Raises:
            FilesystemError: If the directory cannot be created
        """
        path = self.path_for(ci_cd_id)

        try:
            await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Unable to create working directory {path}: {e}", step="workspace") from e

        logger.debug(f"Created working directory {path}", extra={"ci_cd_id": ci_cd_id})
        return path

    async def cleanup(self, path: Path) -> None:
        """
        Recursively remove a working directory.

        Raises:
            FilesystemError: If the directory exists and cannot be removed
        """
        if not path.exists():
            return

        try:
            await asyncio.to_thread(shutil.rmtree, path)
        except OSError as e:
            raise FilesystemError(f"Unable to remove working directory {path}: {e}", step="cleanup") from e

        logger.debug(f"Removed working directory {path}")

    @asynccontextmanager
    async def acquire(self, ci_cd_id: str) -> AsyncIterator[Path]:
        """
        Hold a request's working directory for the duration of a block.

        On success a removal failure is raised; when the block fails the
        removal failure is only logged so the original error propagates.

        Usage:
            async with workspace.acquire("ci-42") as working_dir:
                await git_service.clone_repository(user, working_dir, ...)
        """
        path = await self.create(ci_cd_id)

        try:
            yield path
        except BaseException:
            try:
                await self.cleanup(path)
            except FilesystemError as cleanup_error:
                logger.warning(
                    f"Working directory left behind after failure: {cleanup_error}",
                    extra={"ci_cd_id": ci_cd_id},
                )
            raise

        await self.cleanup(path)
