from __future__ import annotations

from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Worker MCP gateway.

    Values are loaded from plain environment variables (`API_TOKENS`,
    `SEARXNG_URL`, ...). A `.env` file in the working directory is read
    during development.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # Server
    server_host: str = "0.0.0.0"
    server_port: int = 8000
    log_level: str = "INFO"
    server_name: str = "Worker MCP Server"
    server_version: str = "1.0.0"

    # Auth
    api_tokens: Optional[str] = None

    # Storage
    storage_backend: str = "memory"
    storage_namespace: str = "default"
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None

    # Tools
    searxng_url: str = "https://seek.nuer.cc"
    tool_timeout_ms: int = Field(default=10000, gt=0)

    # Protocol
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    slow_request_threshold_ms: int = 1000

    @property
    def api_token_list(self) -> List[str]:
        if not self.api_tokens:
            return []
        return [token.strip() for token in self.api_tokens.split(",") if token.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache settings from environment."""
    return Settings()


class EnvVar(BaseModel):
    name: str
    description: str
    required: bool = False
    required_if: Optional[Callable[[Settings], bool]] = None
    example: Optional[str] = None


ENV_VARS: List[EnvVar] = [
    EnvVar(
        name="API_TOKENS",
        description="Comma separated API tokens accepted by the gateway",
        required=True,
        example="token1,token2,token3",
    ),
    EnvVar(
        name="STORAGE_BACKEND",
        description="Storage backend type",
        example="memory",
    ),
    EnvVar(
        name="STORAGE_NAMESPACE",
        description="Key prefix isolating data of different environments",
        example="prod or dev",
    ),
    EnvVar(
        name="SUPABASE_URL",
        description="Supabase project URL",
        required_if=lambda s: s.storage_backend == "supabase",
        example="https://xxxxxxxxxxxx.supabase.co",
    ),
    EnvVar(
        name="SUPABASE_SERVICE_ROLE_KEY",
        description="Supabase service role key",
        required_if=lambda s: s.storage_backend == "supabase",
    ),
    EnvVar(
        name="SEARXNG_URL",
        description="SearXNG instance used by the web search tool",
        example="https://seek.nuer.cc",
    ),
    EnvVar(
        name="TOOL_TIMEOUT_MS",
        description="Timeout for outbound tool requests in milliseconds",
        example="10000",
    ),
]

_SENSITIVE_MARKERS = ("KEY", "TOKEN", "SECRET")


class ConfigCheckResult(BaseModel):
    valid: bool
    missing: List[str] = []
    warnings: List[str] = []
    config: Dict[str, str] = {}


def _mask(value: Any) -> str:
    if not isinstance(value, str):
        return "[sensitive]"
    if len(value) <= 6:
        return "***"
    return f"{value[:3]}...{value[-3:]}"


def check_settings(settings: Settings) -> ConfigCheckResult:
    """
    Check that the settings satisfy every required variable.

    Returns the missing variables, warnings for half-configured backends,
    and a copy of the current values with secrets masked so it is safe to log.
    """
    missing: List[str] = []
    warnings: List[str] = []
    safe: Dict[str, str] = {}

    for var in ENV_VARS:
        value = getattr(settings, var.name.lower())
        required = var.required or (var.required_if is not None and var.required_if(settings))

        if required and value in (None, ""):
            missing.append(var.name)

        if value is None:
            safe[var.name] = "[unset]"
        elif any(marker in var.name for marker in _SENSITIVE_MARKERS):
            safe[var.name] = _mask(value)
        else:
            safe[var.name] = str(value)

    if settings.storage_backend == "supabase":
        if not settings.supabase_url:
            warnings.append("Supabase storage selected but SUPABASE_URL is not set")
        if not settings.supabase_service_role_key:
            warnings.append("Supabase storage selected but SUPABASE_SERVICE_ROLE_KEY is not set")

    return ConfigCheckResult(
        valid=not missing,
        missing=missing,
        warnings=warnings,
        config=safe,
    )


def config_report(settings: Settings) -> str:
    """Render `check_settings` as a human-readable report."""
    result = check_settings(settings)
    lines = [
        "=== Configuration report ===",
        f"Status: {'valid' if result.valid else 'invalid'}",
    ]

    if result.missing:
        lines.append("")
        lines.append("Missing required variables:")
        by_name = {var.name: var for var in ENV_VARS}
        for name in result.missing:
            var = by_name[name]
            lines.append(f"  - {name}: {var.description}")
            if var.example:
                lines.append(f"    example: {var.example}")

    if result.warnings:
        lines.append("")
        lines.append("Warnings:")
        lines.extend(f"  - {warning}" for warning in result.warnings)

    lines.append("")
    lines.append("Current values:")
    lines.extend(f"  - {key}: {value}" for key, value in result.config.items())

    return "\n".join(lines)
