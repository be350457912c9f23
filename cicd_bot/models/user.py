"""Requester identity data models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    """GitHub user on whose behalf a CI/CD configuration runs."""

    model_config = ConfigDict(frozen=True)

    login: str
    name: Optional[str] = None
    email: Optional[str] = None
    github_token: str

    @property
    def display_name(self) -> str:
        """Name used as git author/committer."""
        return self.name or self.login

    @property
    def commit_email(self) -> str:
        """Email used as git author/committer."""
        return self.email or f"{self.login}@users.noreply.github.com"
