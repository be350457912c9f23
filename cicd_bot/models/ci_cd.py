"""CI/CD configuration request data models."""

from pydantic import BaseModel, ConfigDict, Field

from .user import User


# Safe as a path segment and as a git ref component
SAFE_IDENTIFIER = r"^[A-Za-z0-9_-]+$"


class CiCdRequest(BaseModel):
    """One user-initiated request to add CI/CD configuration to a repository."""

    model_config = ConfigDict(frozen=True)

    user: User
    organization_name: str = Field(min_length=1)
    project_name: str = Field(min_length=1)
    ci_cd_tool: str = Field(pattern=SAFE_IDENTIFIER)
    ci_cd_id: str = Field(pattern=SAFE_IDENTIFIER)

    @property
    def branch_name(self) -> str:
        return build_branch_name(self.ci_cd_tool, self.ci_cd_id)

    @property
    def repository_full_name(self) -> str:
        return f"{self.organization_name}/{self.project_name}"


def capitalize(value: str) -> str:
    """Upper-case the first character and leave the rest unchanged."""
    return value[:1].upper() + value[1:]


def build_branch_name(ci_cd_tool: str, ci_cd_id: str) -> str:
    return f"jhipster-{ci_cd_tool}-{ci_cd_id}"


def build_commit_message(ci_cd_tool: str) -> str:
    return f"Configure {capitalize(ci_cd_tool)} Continuous Integration"


def build_pull_request_title(ci_cd_tool: str) -> str:
    return f"Configure Continuous Integration with {capitalize(ci_cd_tool)}"


PULL_REQUEST_BODY = "Continuous Integration configured by JHipster"
