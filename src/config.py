"""
Application Configuration Module.

Manages application settings and environment variables using Pydantic for validation.
Provides centralized configuration management with type safety and validation.

Features:
- Environment variable loading and validation
- Secure credential management
- GitHub endpoint and rate-limit tuning
- Report column, ordering and filtering options
"""

from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from logger import LogManager


class Settings(BaseSettings):
    """
    Application configuration settings with validation.

    Manages and validates all application settings including:
    - Application identification and logging
    - GitHub authentication and endpoints
    - Rate limiting and range splitting policy
    - Report options (columns, ordering, limit, exclusions)

    Attributes:
        app_name (str): Name of the application
        dev (bool): Debug mode flag, logs to console only
        log_dir (str): Directory for log files
        log_level (int): Logging level (default: info)
        github_token (Optional[SecretStr]): GitHub API token
        username (str): GitHub login to build stats for
        columns (str): JSON array or comma-separated column names
        hide (str): Comma-separated ranks hidden in every rank column
        order_by (str): Either "stars" or "contributions"
        limit (int): Maximum number of rows, non-positive keeps all
        exclude (str): Comma-separated wildcard patterns of repositories to skip
    """

    # Application settings
    app_name: str = Field(default="contribstats", description="Application name")
    dev: bool = Field(default=False, description="Debug mode")
    log_dir: str = Field(default="logs", description="Logging directory")
    log_level: int = Field(default=20, description="Logging level, default info")

    # GitHub configuration
    github_token: Optional[SecretStr] = Field(default=None, description="GitHub token")
    github_graphql_url: str = Field(
        default="https://api.github.com/graphql", description="GitHub GraphQL endpoint"
    )
    github_api_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )
    request_timeout: float = Field(
        default=30.0, gt=0, description="HTTP timeout in seconds"
    )

    # Report options
    username: str = Field(default="", description="GitHub username")
    columns: str = Field(default="star_rank", description="Report columns")
    hide: str = Field(default="", description="Ranks hidden in every rank column")
    order_by: str = Field(default="stars", description="Row ordering")
    limit: int = Field(default=-1, description="Maximum number of rows")
    exclude: str = Field(
        default="", description="Comma-separated repository wildcard patterns"
    )
    combine_all_yearly_contributions: bool = Field(
        default=True, description="Aggregate every contribution year"
    )

    # Range splitting
    max_repos_per_query: int = Field(
        default=100, ge=1, le=100, description="GraphQL maxRepositories"
    )
    max_split_depth: int = Field(
        default=4, ge=0, description="Maximum range splitting recursion depth"
    )

    # Contributors API rate limiting
    min_request_interval_ms: int = Field(
        default=100, ge=0, description="Minimum interval between contributor requests"
    )
    rate_limit_fallback_wait: float = Field(
        default=60.0, ge=0, description="Wait when throttled without retry hints"
    )
    rate_limit_buffer: float = Field(
        default=1.0, ge=0, description="Safety buffer added to every rate-limit wait"
    )
    max_throttle_retries: int = Field(
        default=10, ge=0, description="Retries after throttled responses"
    )
    progress_interval: int = Field(
        default=10, ge=1, description="Log progress every N contributor requests"
    )

    @property
    def token(self) -> Optional[str]:
        """Plain GitHub token, or None when not configured."""
        if self.github_token is None:
            return None
        return self.github_token.get_secret_value() or None

    @property
    def exclude_patterns(self) -> List[str]:
        """
        Get repository exclusion patterns from configuration.

        Returns:
            List[str]: Non-empty, stripped wildcard patterns
        """
        return [p.strip() for p in self.exclude.split(",") if p.strip()]

    @property
    def hidden_ranks(self) -> List[str]:
        """Ranks hidden in every rank column."""
        return [r.strip() for r in self.hide.split(",") if r.strip()]

    @field_validator("order_by")
    def validate_order_by(cls, v: str) -> str:
        """
        Normalize and validate the ordering mode.

        Args:
            v (str): Ordering mode

        Returns:
            str: Lowercase ordering mode

        Raises:
            ValueError: If the mode is unknown
        """
        v = v.strip().lower()
        if v not in ("stars", "contributions"):
            raise ValueError(f"order_by must be 'stars' or 'contributions', got {v!r}")
        return v

    # Configure env file loading
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields in .env file
    )


# Create global settings instance
settings = Settings()

# Initialize logging configuration
logger = LogManager(
    app_name=settings.app_name.lower(),
    log_dir=settings.log_dir,
    development=settings.dev,
    level=settings.log_level,
).logger
