"""File change data models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ChangeStatus(str, Enum):
    """Status of a changed file."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class ChangedFile(BaseModel):
    """Per-file record as listed by the change host."""

    filename: str
    status: str = "modified"
    patch: Optional[str] = None


class FileChange(BaseModel):
    """Parsed file change with added and removed line content."""

    model_config = ConfigDict(frozen=True)

    filename: str
    status: ChangeStatus
    added_lines: List[str] = []
    removed_lines: List[str] = []
    raw_patch: Optional[str] = None
    auth_sensitive: bool = False
