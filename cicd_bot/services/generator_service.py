"""
Generator Service component.

Generates the CI/CD configuration of a cloned application by running the
JHipster `ci-cd` sub-generator inside its working directory.
"""

import asyncio
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional

from cicd_bot.services.errors import GenerationError
from cicd_bot.utils.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_CI_CD_TOOLS = ("travis", "jenkins", "gitlab", "azure", "github", "circle")

# Output lines kept in the error message of a failed generation
ERROR_TAIL_LINES = 5


def is_supported_ci_cd_tool(ci_cd_tool: str) -> bool:
    return ci_cd_tool in SUPPORTED_CI_CD_TOOLS


class GeneratorService:
    """Runs the CI/CD configuration generator."""

    def __init__(self, command: Optional[str] = None, timeout_seconds: Optional[int] = None):
        """
        Initialize the Generator Service.

        Args:
            command: Generator command line. If None, will load from settings.
            timeout_seconds: Generation timeout. If None, will load from settings.
        """
        if command is None or timeout_seconds is None:
            from cicd_bot.config import settings
            if command is None:
                command = settings.jhipster_command
            if timeout_seconds is None:
                timeout_seconds = settings.jhipster_timeout_seconds

        self.command = command
        self.timeout_seconds = timeout_seconds

    def build_command(self, ci_cd_tool: str) -> List[str]:
        """Command line generating the configuration of a CI/CD tool."""
        return [
            *shlex.split(self.command),
            "ci-cd",
            f"--autoconfigure-{ci_cd_tool}",
            "--force",
            "--skip-install",
            "--no-insight",
        ]

    async def generate(self, ci_cd_id: str, working_dir: Path, ci_cd_tool: str) -> None:
        """
        Write the CI/CD configuration files into the working directory.

        Args:
            ci_cd_id: CI/CD request ID
            working_dir: Cloned application
            ci_cd_tool: Tool to configure

        Raises:
            GenerationError: On unsupported tool, missing generator, timeout
                or non-zero exit code
        """
        log = logger.with_context(ci_cd_id=ci_cd_id, ci_cd_tool=ci_cd_tool)

        if not is_supported_ci_cd_tool(ci_cd_tool):
            raise GenerationError(
                f"Unsupported CI/CD tool '{ci_cd_tool}', expected one of: {', '.join(SUPPORTED_CI_CD_TOOLS)}",
                step="generate",
            )

        command = self.build_command(ci_cd_tool)
        log.info(f"Running generator: {' '.join(command)}")

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                command,
                cwd=str(working_dir),
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as e:
            raise GenerationError(f"Generator not found: {command[0]}", step="generate") from e
        except subprocess.TimeoutExpired as e:
            raise GenerationError(
                f"Generator timed out after {self.timeout_seconds}s", step="generate"
            ) from e

        output_lines = [line for line in (result.stdout + result.stderr).splitlines() if line.strip()]
        for line in output_lines:
            log.debug(line)

        if result.returncode != 0:
            tail = "\n".join(output_lines[-ERROR_TAIL_LINES:])
            message = f"Generator exited with code {result.returncode}"
            raise GenerationError(f"{message}: {tail}" if tail else message, step="generate")

        log.info("CI/CD configuration generated")
