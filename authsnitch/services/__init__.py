"""External collaborators and the notification gate."""

from authsnitch.services.detector import AuthChangeDetector, build_llm_client
from authsnitch.services.github_client import GitHubClient, pr_context_from_env
from authsnitch.services.notification_gate import (
    NotificationGate,
    build_channel_configs,
    record_delivery,
)
from authsnitch.services.notifier import Notifier
from authsnitch.services.summarizer import Summarizer

__all__ = [
    'AuthChangeDetector',
    'build_llm_client',
    'GitHubClient',
    'pr_context_from_env',
    'NotificationGate',
    'build_channel_configs',
    'record_delivery',
    'Notifier',
    'Summarizer',
]
