"""Literal keyword matching against diff content."""

from typing import Iterable, List, Optional


def detect_keywords(content: Optional[str], keywords: Iterable[str]) -> List[str]:
    """
    Find configured keywords that appear in the content.

    Args:
        content: Text to search (usually the raw diff)
        keywords: Keywords to look for

    Returns:
        Matching keywords in the order given, case-insensitive, without duplicates
    """
    if not content:
        return []

    haystack = content.lower()
    found: List[str] = []
    for keyword in keywords:
        if keyword and keyword.lower() in haystack and keyword not in found:
            found.append(keyword)
    return found
