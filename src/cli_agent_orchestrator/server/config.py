"""Configuration for the REST server."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Settings for the REST API.

    Agent, cache and monitor settings live in
    :class:`cli_agent_orchestrator.core.config.OrchestratorConfig`; this only
    covers how the API itself is served.
    """

    host: str = Field(default="127.0.0.1", validation_alias="ORCHESTRATOR_SERVER_HOST")
    port: int = Field(default=8000, ge=1, le=65535, validation_alias="ORCHESTRATOR_SERVER_PORT")

    # Override via ORCHESTRATOR_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="ORCHESTRATOR_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
