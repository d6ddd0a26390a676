"""
Configuration module for the Slack Ticket Bot.

Handles all configuration through environment variables with secure defaults.
Never stores sensitive data directly in code.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


# Load environment variables from .env file
load_dotenv()


@dataclass(frozen=True)
class SlackConfig:
    """Configuration for the Slack Web API."""

    bot_token: str = field(
        default_factory=lambda: os.getenv("SLACK_BOT_TOKEN", "")
    )
    api_base_url: str = field(
        default_factory=lambda: os.getenv("SLACK_API_BASE_URL", "https://slack.com/api")
    )

    # Request timeout in seconds
    request_timeout: int = field(
        default_factory=lambda: int(os.getenv("REQUEST_TIMEOUT", "30"))
    )


@dataclass(frozen=True)
class SearchConfig:
    """Configuration for the encrypted-content search service."""

    api_url: str = field(
        default_factory=lambda: os.getenv("SEARCH_API_URL", "")
    )
    api_key: str = field(
        default_factory=lambda: os.getenv("SEARCH_API_KEY", "")
    )
    request_timeout: int = field(
        default_factory=lambda: int(os.getenv("REQUEST_TIMEOUT", "30"))
    )


@dataclass(frozen=True)
class RosterConfig:
    """Configuration for the support roster document."""

    roster_url: str = field(
        default_factory=lambda: os.getenv("ROSTER_URL", "")
    )
    request_timeout: int = field(
        default_factory=lambda: int(os.getenv("REQUEST_TIMEOUT", "30"))
    )


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration aggregating all config sections."""

    slack: SlackConfig = field(default_factory=SlackConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    roster: RosterConfig = field(default_factory=RosterConfig)

    # Base URL of the helpdesk web app, used for ticket deep links
    app_url: str = field(
        default_factory=lambda: os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
    )

    # Logging level
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO")
    )

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of validation error messages (empty if valid).
        """
        errors = []

        if not self.slack.bot_token:
            errors.append("SLACK_BOT_TOKEN is required")
        if not self.search.api_url:
            errors.append("SEARCH_API_URL is required for keyword filters")
        if not self.roster.roster_url:
            errors.append("ROSTER_URL is required to resolve operators")
        if not self.app_url:
            errors.append("APP_URL is required for ticket links")

        return errors


def get_config() -> AppConfig:
    """
    Get application configuration.

    Returns:
        AppConfig instance with all settings loaded from environment.
    """
    return AppConfig()
