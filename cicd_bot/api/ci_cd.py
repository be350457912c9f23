"""
CI/CD configuration REST API endpoints.
"""

import logging
import uuid

from fastapi import APIRouter, Header, HTTPException, status

from cicd_bot.models.api_response import CiCdAccepted, LogsResponse
from cicd_bot.models.ci_cd import CiCdRequest
from cicd_bot.services.ci_cd_service import CiCdService
from cicd_bot.services.errors import RemoteApiError
from cicd_bot.services.generator_service import SUPPORTED_CI_CD_TOOLS, is_supported_ci_cd_tool
from cicd_bot.services.logs_service import status_of

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ci-cd", tags=["ci-cd"])

# Initialize CI/CD service
ci_cd_service = CiCdService()


def generate_ci_cd_id() -> str:
    """Generate a unique CI/CD request ID."""
    return f"ci-{uuid.uuid4().hex[:12]}"


@router.post(
    "/{organization_name}/{project_name}/{ci_cd_tool}",
    response_model=CiCdAccepted,
    status_code=status.HTTP_201_CREATED,
)
async def configure_ci_cd(
    organization_name: str,
    project_name: str,
    ci_cd_tool: str,
    x_github_token: str = Header(None, alias="X-GitHub-Token")
) -> CiCdAccepted:
    """
    Configure CI/CD on a GitHub repository.

    Resolves the requester from the GitHub token, dispatches the run in the
    background and returns its ID immediately. Progress is read from the
    logs endpoint.

    Args:
        organization_name: Repository owner
        project_name: Repository name
        ci_cd_tool: CI/CD tool to configure
        x_github_token: Requester's GitHub token

    Returns:
        Accepted response with the run ID

    Raises:
        HTTPException: 401 without a valid token, 400 for unsupported tools
    """
    if not x_github_token:
        raise HTTPException(status_code=401, detail="GitHub token required")

    if not is_supported_ci_cd_tool(ci_cd_tool):
        logger.warning(f"Rejected unsupported CI/CD tool: {ci_cd_tool}")
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported CI/CD tool '{ci_cd_tool}', expected one of: {', '.join(SUPPORTED_CI_CD_TOOLS)}"
        )

    try:
        user = await ci_cd_service.github_service.get_authenticated_user(x_github_token)
    except RemoteApiError as e:
        logger.warning(f"GitHub token rejected: {e}")
        if e.status_code in (401, 403):
            raise HTTPException(status_code=401, detail="Invalid GitHub token")
        raise HTTPException(status_code=502, detail="GitHub API unavailable")

    try:
        request = CiCdRequest(
            user=user,
            organization_name=organization_name,
            project_name=project_name,
            ci_cd_tool=ci_cd_tool,
            ci_cd_id=generate_ci_cd_id(),
        )

        ci_cd_service.dispatch(request)

        logger.info(
            f"CI/CD configuration {request.ci_cd_id} with {ci_cd_tool} accepted "
            f"for {organization_name}/{project_name} by {user.login}"
        )
        return CiCdAccepted(
            ci_cd_id=request.ci_cd_id,
            status="accepted",
            logs_url=f"{router.prefix}/{request.ci_cd_id}/logs",
        )

    except Exception as e:
        logger.error(f"Error dispatching CI/CD configuration: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{ci_cd_id}/logs", response_model=LogsResponse)
async def get_ci_cd_logs(ci_cd_id: str) -> LogsResponse:
    """
    Get the log stream of a CI/CD configuration run.

    Args:
        ci_cd_id: CI/CD request ID

    Returns:
        Run status and log entries

    Raises:
        HTTPException: If no log stream exists for the ID
    """
    try:
        entries = await ci_cd_service.logs_service.get_logs(ci_cd_id)
    except Exception as e:
        logger.error(f"Error reading logs for {ci_cd_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    if not entries:
        raise HTTPException(status_code=404, detail=f"No logs found for {ci_cd_id}")

    return LogsResponse(ci_cd_id=ci_cd_id, status=status_of(entries), entries=entries)
