"""Core configuration for the orchestrator."""

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentsConfig(BaseSettings):
    """Configuration for the external agent commands."""

    default_agent: str = Field(
        default="gemini",
        description="Agent used when a caller does not name one and selection is bypassed",
    )

    # Claude CLI settings
    claude_command: str = Field(
        default="claude",
        description="Executable for the Claude agent",
    )
    claude_args: list[str] = Field(
        default_factory=lambda: ["--print", "--dangerously-skip-permissions"],
        description="Arguments passed to the Claude agent before the prompt",
    )

    # Gemini CLI settings
    gemini_command: str = Field(
        default="gemini",
        description="Executable for the Gemini agent",
    )
    gemini_args: list[str] = Field(
        default_factory=lambda: ["--yolo"],
        description="Arguments passed to the Gemini agent before the prompt",
    )

    definitions_file: Path | None = Field(
        default=None,
        description="JSON file with additional agent descriptors",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_AGENTS_",
        env_file=".env",
        extra="ignore",
    )


class CacheConfig(BaseSettings):
    """Configuration for the response cache."""

    enabled: bool = Field(
        default=True,
        description="Serve repeated (agent, role, prompt) requests from the cache",
    )
    ttl_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Lifetime of a cached response",
    )
    max_size: int = Field(
        default=50,
        gt=0,
        description="Maximum number of cached responses",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_CACHE_",
        env_file=".env",
        extra="ignore",
    )


class RetryConfig(BaseSettings):
    """Default retry policy for dispatcher-level retries."""

    attempts: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Additional attempts after a failed dispatch (0 disables retries)",
    )
    delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay in seconds before the first retry",
    )
    backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the delay after each retry",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_RETRY_",
        env_file=".env",
        extra="ignore",
    )


class MonitorConfig(BaseSettings):
    """Configuration for the background process monitor."""

    enabled: bool = Field(
        default=True,
        description="Run the background sweep when the orchestrator starts",
    )
    max_cpu_percent: float = Field(
        default=50.0,
        gt=0.0,
        description="CPU usage above which a watched agent process is terminated",
    )
    max_age_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Age above which a registered agent process is terminated",
    )
    interval_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Time between two sweeps",
    )
    grace_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Time between the graceful and the forced termination signal",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_MONITOR_",
        env_file=".env",
        extra="ignore",
    )


class OrchestratorConfig(BaseSettings):
    """Main configuration for the orchestrator."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    default_timeout: float = Field(
        default=300.0,
        gt=0.0,
        description="Per-call agent timeout in seconds",
    )
    quiescence_seconds: float = Field(
        default=0.2,
        ge=0.0,
        description="Silence required after output looks complete before the call returns",
    )
    max_concurrency: int = Field(
        default=4,
        ge=1,
        description="Maximum number of agent processes running at once",
    )
    workflows_file: Path | None = Field(
        default=None,
        description="JSON file with additional workflow definitions",
    )

    agents: AgentsConfig = Field(
        default_factory=AgentsConfig,
        description="Agent configuration",
    )
    cache: CacheConfig = Field(
        default_factory=CacheConfig,
        description="Response cache configuration",
    )
    retry: RetryConfig = Field(
        default_factory=RetryConfig,
        description="Retry configuration",
    )
    monitor: MonitorConfig = Field(
        default_factory=MonitorConfig,
        description="Process monitor configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        from cli_agent_orchestrator.orchestrator.logging import configure_logging

        configure_logging(self.log_level)

        if self.debug:
            logging.getLogger("cli_agent_orchestrator").setLevel(logging.DEBUG)
