"""
Diff parser for unified diffs and per-file patch listings.

Turns raw diff text into ordered FileChange records and renders them into the
text block handed to the detector.
"""

import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from authsnitch.analyzers.sensitivity import SensitivityClassifier
from authsnitch.models.file_change import ChangedFile, ChangeStatus, FileChange


logger = logging.getLogger(__name__)

_FILE_HEADER_RE = re.compile(r"^diff --git a/(.*) b/(.*)")


def split_lines(text: str) -> List[str]:
    """
    Split diff text on newlines only.

    Form feeds and Unicode line separators inside content lines are kept.
    A trailing carriage return is stripped from each line.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def classify_lines(lines: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Split patch lines into added and removed content.

    The ``+++``/``---`` file headers are skipped, and so is any content line
    that itself begins with those markers.
    """
    added: List[str] = []
    removed: List[str] = []
    for line in lines:
        if line.startswith("+") and not line.startswith("+++"):
            added.append(line[1:])
        elif line.startswith("-") and not line.startswith("---"):
            removed.append(line[1:])
    return added, removed


def determine_status(added_lines: Sequence[str], removed_lines: Sequence[str]) -> ChangeStatus:
    """Derive a change status from the line buffers."""
    if removed_lines and not added_lines:
        return ChangeStatus.REMOVED
    if added_lines and not removed_lines:
        return ChangeStatus.ADDED
    # Both present, or neither (pure rename / mode change)
    return ChangeStatus.MODIFIED


def _map_host_status(status: Optional[str]) -> ChangeStatus:
    value = (status or "").lower()
    if value == "added":
        return ChangeStatus.ADDED
    if value == "removed":
        return ChangeStatus.REMOVED
    return ChangeStatus.MODIFIED


class DiffParser:
    """Parses diffs into FileChange records."""

    def __init__(self, classifier: Optional[SensitivityClassifier] = None):
        self.classifier = classifier or SensitivityClassifier()

    def parse(self, diff_text: Optional[str]) -> List[FileChange]:
        """
        Parse a git-style unified diff.

        Args:
            diff_text: Diff text with ``diff --git a/<old> b/<new>`` headers

        Returns:
            FileChange records in order of appearance; empty for empty or
            non-string input. Content before the first header is ignored.
        """
        if not diff_text or not isinstance(diff_text, str):
            return []

        files: List[FileChange] = []
        current_file: Optional[str] = None
        block: List[str] = []

        for line in split_lines(diff_text):
            header = _FILE_HEADER_RE.match(line)
            if header:
                if current_file is not None:
                    files.append(self._build_file_change(current_file, block))
                current_file = header.group(2)
                block = []
            elif current_file is not None:
                block.append(line)

        if current_file is not None:
            files.append(self._build_file_change(current_file, block))

        logger.debug(f"Parsed {len(files)} file blocks from diff")
        return files

    def parse_from_file_list(self, files: Optional[Iterable[ChangedFile]]) -> List[FileChange]:
        """
        Parse per-file patches as listed by the change host.

        Status is derived from the patch lines; files without a patch
        (binary or oversized) keep the host-reported status.
        """
        if not files:
            return []

        changes: List[FileChange] = []
        for changed in files:
            if changed.patch is None:
                changes.append(FileChange(
                    filename=changed.filename,
                    status=_map_host_status(changed.status),
                    auth_sensitive=self.classifier.is_sensitive(changed.filename),
                ))
                continue

            added, removed = classify_lines(split_lines(changed.patch))
            changes.append(FileChange(
                filename=changed.filename,
                status=determine_status(added, removed),
                added_lines=added,
                removed_lines=removed,
                raw_patch=changed.patch,
                auth_sensitive=self.classifier.is_sensitive(changed.filename),
            ))

        return changes

    def extract_changes_for_analysis(self, file_changes: Sequence[FileChange]) -> str:
        """
        Render file changes into the detector payload.

        Each file becomes a block::

            === path/to/file ===
            (Auth-sensitive file)
            Added lines:
            + ...
            Removed lines:
            - ...

        The sensitivity note and empty sections are omitted; blocks are joined
        by a blank line in input order.
        """
        blocks = []
        for change in file_changes:
            sections = [f"=== {change.filename} ==="]
            if change.auth_sensitive:
                sections.append("(Auth-sensitive file)")

            if change.added_lines:
                sections.append("Added lines:")
                sections.extend(f"+ {line}" for line in change.added_lines)

            if change.removed_lines:
                sections.append("Removed lines:")
                sections.extend(f"- {line}" for line in change.removed_lines)

            blocks.append("\n".join(sections))

        return "\n\n".join(blocks)

    def count_auth_sensitive(self, file_changes: Sequence[FileChange]) -> int:
        """Count records flagged as auth-sensitive."""
        return sum(1 for change in file_changes if change.auth_sensitive)

    def _build_file_change(self, filename: str, block: List[str]) -> FileChange:
        added, removed = classify_lines(block)
        return FileChange(
            filename=filename,
            status=determine_status(added, removed),
            added_lines=added,
            removed_lines=removed,
            raw_patch="\n".join(block) if block else None,
            auth_sensitive=self.classifier.is_sensitive(filename),
        )
