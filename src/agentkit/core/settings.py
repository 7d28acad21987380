"""
Configuration models for agentkit using Pydantic v2 Settings.

``Settings`` is the environment-driven root (``AGENTKIT_`` prefix, ``__``
for nesting, e.g. ``AGENTKIT_BATCHING__MAX_BUFFER_SIZE=500``). The nested
groups are plain models that components also accept directly.
"""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LATEST_CONFIG_SCHEMA_VERSION = "1.0"


class CoreSettings(BaseModel):
    """Process-wide behaviour shared by every adapter."""

    internal_logging_enabled: bool = Field(
        default=True,
        description="Emit structured diagnostics for non-fatal internal errors",
    )
    diagnostics_rate_limit_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="Minimum interval between diagnostics sharing a rate-limit key",
    )
    enable_metrics: bool = Field(
        default=False,
        description="Export Prometheus counters from an isolated registry",
    )


class BatchingSettings(BaseModel):
    """Buffering, flush cadence and confirmation policy for DA logging."""

    model_config = ConfigDict(validate_default=True)

    flush_interval_ms: int = Field(
        default=10_000,
        ge=1,
        description="How often buffered records are flushed",
    )
    max_buffer_size: int = Field(
        default=1_000,
        ge=1,
        description="Record count that forces an immediate flush; also the largest batch",
    )
    submit_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Upper bound for a single submit call; a timeout counts as failure",
    )
    max_flush_attempts: int | None = Field(
        default=None,
        ge=1,
        description=(
            "Failed submits a record survives before it is dead-lettered; "
            "None retries forever"
        ),
    )
    wait_for_confirmation: bool = Field(
        default=False,
        description="Resolve completions only once the batch is confirmed",
    )
    confirmation_initial_delay_seconds: float = Field(default=60.0, ge=0.0)
    confirmation_poll_interval_seconds: float = Field(default=20.0, ge=0.0)
    confirmation_max_checks: int = Field(default=30, ge=1)
    confirmation_shutdown_grace_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description=(
            "How long shutdown() lets outstanding confirmation polls finish "
            "before failing their completions"
        ),
    )

    @property
    def flush_interval_seconds(self) -> float:
        return self.flush_interval_ms / 1000.0


class EigenDASettings(BaseModel):
    api_url: str = Field(
        default="https://api.eigenda.xyz",
        description="Base URL of the EigenDA upload API",
    )
    rpc_url: str | None = Field(default=None, description="Chain RPC used for credits")
    auth_token: str | None = Field(
        default=None,
        description="Bearer token presented to the upload API",
    )
    credits_contract_address: str | None = None
    min_balance: float = Field(
        default=0.001,
        ge=0.0,
        description="Credits top-up threshold checked by initialize()",
    )
    timeout_seconds: float = Field(default=30.0, gt=0.0)

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("api_url must not be empty")
        return value


class OpacitySettings(BaseModel):
    team_id: str | None = None
    team_name: str | None = None
    api_key: str | None = None
    opacity_prover_url: str | None = None
    model_provider: str = "openai"
    gateway_url: str | None = None


class Settings(BaseSettings):
    """Top-level configuration model with versioning and namespaced groups."""

    schema_version: str = Field(default=LATEST_CONFIG_SCHEMA_VERSION)

    core: CoreSettings = Field(default_factory=CoreSettings)
    batching: BatchingSettings = Field(default_factory=BatchingSettings)
    eigenda: EigenDASettings = Field(default_factory=EigenDASettings)
    opacity: OpacitySettings = Field(default_factory=OpacitySettings)

    model_config = SettingsConfigDict(
        env_prefix="AGENTKIT_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    def to_dict(self) -> dict[str, object]:
        from typing import cast

        return cast(
            dict[str, object],
            self.model_dump(by_alias=True, exclude_none=True),
        )


ConfigT = TypeVar("ConfigT", bound=BaseModel)


def parse_config(
    model: type[ConfigT],
    config: ConfigT | Mapping[str, Any] | None,
    **overrides: Any,
) -> ConfigT:
    """Accept a config model, a mapping, or keyword overrides uniformly."""
    if isinstance(config, model) and not overrides:
        return config
    data: dict[str, Any] = {}
    if isinstance(config, BaseModel):
        data.update(config.model_dump())
    elif config is not None:
        data.update(config)
    data.update(overrides)
    return model(**data)
