"""
Application configuration management.

Runtime settings come from environment variables (the GitHub Action inputs).
Analysis tables (keywords, prompt, scoring, extra sensitivity patterns) come
from built-in defaults, optionally overridden by a YAML file.
"""

import copy
import logging
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from authsnitch.models.detection import ParseFallback
from authsnitch.models.notification import NotificationMode


logger = logging.getLogger(__name__)


DEFAULT_RISK_SCORES: Dict[str, int] = {
    "none": 0,
    "low": 20,
    "medium": 40,
    "high": 65,
    "critical": 85,
}

DEFAULT_MODIFIERS: Dict[str, int] = {
    "multiple_auth_files": 10,
    "identity_provider_change": 15,
    "credential_handling": 20,
}

DEFAULT_RISK_LABELS: Dict[str, str] = {
    "0-24": "LOW",
    "25-49": "MEDIUM",
    "50-74": "HIGH",
    "75-100": "CRITICAL",
}

DEFAULT_RISK_COLORS: Dict[str, str] = {
    "low": "#36a64f",
    "medium": "#f2c744",
    "high": "#ff9800",
    "critical": "#dc3545",
}

IDENTITY_PROVIDER_KEYWORDS: List[str] = [
    "okta", "auth0", "cognito", "azure_ad", "active_directory", "keycloak",
    "ping_identity", "onelogin", "duo", "firebase_auth", "ldap", "saml", "oidc",
]

CREDENTIAL_KEYWORDS: List[str] = [
    "password", "secret", "credential", "api_key", "private_key",
    "access_token", "refresh_token", "secret_key", "passwd",
]

DEFAULT_KEYWORDS: Dict[str, List[str]] = {
    "authentication": [
        "login", "logout", "sign_in", "sign_out", "authenticate",
        "password", "passwd", "mfa", "2fa", "otp",
    ],
    "sessions": ["session", "cookie", "remember_me", "csrf"],
    "tokens": ["jwt", "bearer", "access_token", "refresh_token", "api_key"],
    "authorization": ["permission", "role", "rbac", "acl", "authorize", "scope"],
    "identity_providers": [
        "oauth", "oidc", "saml", "okta", "auth0", "cognito", "keycloak", "ldap",
    ],
    "cryptography": ["bcrypt", "argon2", "pbkdf2", "hmac", "private_key", "secret_key"],
}

DEFAULT_DETECTION_PROMPT = """You are a security code reviewer. Analyze the provided code diff for authentication-related changes.

Look for changes involving: {keywords}

Pay attention to login and logout flows, session and token handling, password
storage, permission checks, identity provider integrations, and secrets.

Respond with a single JSON object and nothing else, using this structure:
{
  "findings": [
    {
      "type": "short_snake_case_category",
      "file": "path/to/file",
      "code_section": "the relevant code",
      "description": "what changed",
      "security_relevance": "why it matters",
      "risk_level": "none|low|medium|high|critical",
      "recommendation": "what a reviewer should check"
    }
  ],
  "summary": "one paragraph summary",
  "auth_changes_detected": true,
  "highest_risk": "none|low|medium|high|critical"
}
"""


class ScoringConfig(BaseModel):
    """Tables used by the risk scorer."""

    risk_scores: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_RISK_SCORES))
    modifiers: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_MODIFIERS))
    risk_labels: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_RISK_LABELS))
    risk_colors: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_RISK_COLORS))
    identity_provider_keywords: List[str] = Field(
        default_factory=lambda: list(IDENTITY_PROVIDER_KEYWORDS)
    )
    credential_keywords: List[str] = Field(default_factory=lambda: list(CREDENTIAL_KEYWORDS))


class AnalysisConfig(BaseModel):
    """Resolved analysis configuration for one run."""

    keywords: Dict[str, List[str]] = Field(
        default_factory=lambda: copy.deepcopy(DEFAULT_KEYWORDS)
    )
    detection_prompt: str = DEFAULT_DETECTION_PROMPT
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    sensitivity_patterns: Dict[str, str] = Field(default_factory=dict)


def deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge overlay onto base without mutating either.

    Mappings merge recursively, lists are unioned keeping first-seen order,
    and any other value from the overlay replaces the base value.
    """
    merged = copy.deepcopy(base)
    for key, new_val in overlay.items():
        old_val = merged.get(key)
        if isinstance(old_val, dict) and isinstance(new_val, dict):
            merged[key] = deep_merge(old_val, new_val)
        elif isinstance(old_val, list) and isinstance(new_val, list):
            combined = list(old_val)
            for item in new_val:
                if item not in combined:
                    combined.append(item)
            merged[key] = combined
        else:
            merged[key] = copy.deepcopy(new_val)
    return merged


def load_analysis_config(path: Optional[str] = None) -> AnalysisConfig:
    """
    Load analysis configuration, overlaying a YAML file on the defaults.

    Args:
        path: Optional YAML file path

    Returns:
        AnalysisConfig; defaults when the file is absent or invalid
    """
    defaults = AnalysisConfig().model_dump()
    if not path:
        return AnalysisConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            overlay = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not read detection config {path}: {e}; using defaults")
        return AnalysisConfig()

    if not isinstance(overlay, dict):
        logger.warning(f"Detection config {path} is not a mapping; using defaults")
        return AnalysisConfig()

    merged = deep_merge(defaults, overlay)

    # Label ranges form one table covering 0-100; a supplied table replaces the defaults
    scoring_overlay = overlay.get("scoring")
    if isinstance(scoring_overlay, dict) and "risk_labels" in scoring_overlay:
        merged["scoring"]["risk_labels"] = copy.deepcopy(scoring_overlay["risk_labels"])

    try:
        config = AnalysisConfig.model_validate(merged)
    except ValidationError as e:
        logger.warning(f"Detection config {path} is invalid: {e}; using defaults")
        return AnalysisConfig()

    logger.info(f"Loaded detection config from {path}")
    return config


def resolve_config_path(workspace: Optional[str], relative_path: Optional[str]) -> Optional[str]:
    """
    Resolve a workspace-relative config path to an existing file.

    Args:
        workspace: Workspace root (defaults to the current directory)
        relative_path: Path relative to the workspace

    Returns:
        Full path if it points at an existing file, otherwise None
    """
    if not relative_path:
        return None

    full_path = os.path.join(workspace or ".", relative_path)
    if os.path.isfile(full_path):
        return full_path

    logger.warning(f"Detection config not found at {full_path}")
    return None


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # GitHub
    github_token: str
    github_repository: Optional[str] = None
    github_event_path: Optional[str] = None
    github_workspace: Optional[str] = None
    github_output: Optional[str] = None

    # OpenAI
    openai_api_key: Optional[str] = None
    azure_openai_endpoint: Optional[str] = None
    azure_openai_api_key: Optional[str] = None
    azure_openai_deployment: Optional[str] = None
    llm_model: str = "gpt-4o"
    llm_max_tokens: int = 4096

    # Notification channels
    post_pr_comment: bool = False
    slack_webhook_url: Optional[str] = None
    teams_webhook_url: Optional[str] = None

    # Thresholds
    risk_threshold: int = 50
    pr_comment_threshold: Optional[int] = None
    slack_threshold: Optional[int] = None
    teams_threshold: Optional[int] = None

    # Decision policy
    notification_mode: NotificationMode = NotificationMode.SCORE
    notify_on_detector_only: bool = False
    notify_on_keyword_only: bool = False
    parse_fallback: ParseFallback = ParseFallback.NEUTRAL
    use_unified_diff: bool = False

    # Customization
    custom_keywords: Optional[str] = None
    detection_prompt: Optional[str] = None
    detection_config_path: Optional[str] = None

    # Application
    log_level: str = "INFO"

    @field_validator(
        "github_repository",
        "github_event_path",
        "github_workspace",
        "github_output",
        "openai_api_key",
        "azure_openai_endpoint",
        "azure_openai_api_key",
        "azure_openai_deployment",
        "slack_webhook_url",
        "teams_webhook_url",
        "pr_comment_threshold",
        "slack_threshold",
        "teams_threshold",
        "custom_keywords",
        "detection_prompt",
        "detection_config_path",
        mode="before",
    )
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        # Unset action inputs arrive as empty strings
        if isinstance(value, str) and not value.strip():
            return None
        return value


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
