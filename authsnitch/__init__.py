"""AuthSnitch: flags pull requests that touch authentication logic."""

__version__ = "1.0.0"
