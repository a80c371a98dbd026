"""
Sensitivity classifier for changed file paths.

A file is auth-sensitive when any rule in an ordered table matches its path
(case-insensitive search). The default table is deliberately broad: the
"auth" rule matches any path containing those letters, so files such as
``app/models/author.rb`` are reported as sensitive. Precision is traded for
recall; new rules are appended, existing rules are never narrowed.
"""

import logging
import re
from typing import List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict


logger = logging.getLogger(__name__)


class SensitivityRule(BaseModel):
    """Named path pattern."""

    model_config = ConfigDict(frozen=True)

    name: str
    pattern: str

    def matches(self, filename: str) -> bool:
        return re.search(self.pattern, filename, re.IGNORECASE) is not None


DEFAULT_SENSITIVITY_RULES: List[SensitivityRule] = [
    # Controllers/Routes
    SensitivityRule(name="auth_controller", pattern=r"controllers?.*(?:auth|session|login|user)"),
    SensitivityRule(name="routes", pattern=r"routes"),
    # Middleware
    SensitivityRule(name="middleware", pattern=r"middleware"),
    # Models/Entities
    SensitivityRule(name="identity_model", pattern=r"models?.*(?:user|account|credential|token|session)"),
    # Auth-specific directories
    SensitivityRule(name="auth", pattern=r"auth"),
    SensitivityRule(name="authentication", pattern=r"authentication"),
    SensitivityRule(name="authorization", pattern=r"authorization"),
    # Configuration files
    SensitivityRule(name="auth_config", pattern=r"config.*(?:auth|oauth|saml|oidc|devise|passport)"),
    SensitivityRule(name="auth_initializer", pattern=r"initializers?.*(?:auth|devise|warden|omniauth)"),
    # Security-related
    SensitivityRule(name="security", pattern=r"security"),
    SensitivityRule(name="identity", pattern=r"identity"),
]


class SensitivityClassifier:
    """Decides whether a file path is authentication-sensitive."""

    def __init__(
        self,
        rules: Optional[Sequence[SensitivityRule]] = None,
        extra_patterns: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize the classifier.

        Args:
            rules: Ordered rule table (defaults to DEFAULT_SENSITIVITY_RULES)
            extra_patterns: Additional name -> regex rules appended after the table;
                patterns that do not compile are skipped
        """
        self.rules: List[SensitivityRule] = list(
            DEFAULT_SENSITIVITY_RULES if rules is None else rules
        )

        for name, pattern in (extra_patterns or {}).items():
            try:
                re.compile(pattern)
            except re.error as e:
                logger.warning(f"Ignoring invalid sensitivity pattern {name!r}: {e}")
                continue
            self.rules.append(SensitivityRule(name=name, pattern=pattern))

    def is_sensitive(self, filename: Optional[str]) -> bool:
        """Return True if any rule matches the filename."""
        if not filename:
            return False
        return any(rule.matches(filename) for rule in self.rules)

    def matching_rules(self, filename: Optional[str]) -> List[str]:
        """Return the names of all rules matching the filename, in table order."""
        if not filename:
            return []
        return [rule.name for rule in self.rules if rule.matches(filename)]
