"""Exception hierarchy for AuthSnitch."""


class AuthSnitchError(Exception):
    """Base exception for AuthSnitch errors."""
    pass


class ConfigurationError(AuthSnitchError):
    """Raised when required configuration is missing or invalid."""
    pass


class GitHubAPIError(AuthSnitchError):
    """Base exception for GitHub API errors."""
    pass


class TransientGitHubError(GitHubAPIError):
    """Transient error that may succeed on retry."""
    pass


class PermanentGitHubError(GitHubAPIError):
    """Permanent error that won't succeed on retry."""
    pass


class DetectorError(AuthSnitchError):
    """Raised when the external detector cannot produce a response."""
    pass
