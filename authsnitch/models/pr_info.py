"""Pull request data models."""

from typing import Optional

from pydantic import BaseModel


class PRContext(BaseModel):
    """Repository and pull request number taken from the Actions event."""

    repo: str
    pr_number: int


class PRInfo(BaseModel):
    """Pull request metadata used for summaries and notifications."""

    repo: str
    number: int
    title: Optional[str] = None
    author: Optional[str] = None
    url: Optional[str] = None
