"""
Opacity adapter: verifiable inference through the Cloudflare AI Gateway.

Chat completions are routed through the gateway, which tags each request
with a ``cf-aig-log-id`` header; the Opacity prover then produces a zkTLS
proof for that log. The same gateway log store backs the (unbuffered)
logging contract.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Iterable, Mapping

import httpx
from pydantic import BaseModel, ConfigDict, model_validator

from ..clients import opacity as prover
from ..core import diagnostics
from ..core.errors import NotInitializedError, ProofGenerationError
from ..core.settings import OpacitySettings, parse_config
from ..core.types import (
    DALogEntry,
    DALogStatus,
    LogOptions,
    Proof,
    VerifiableInferenceResult,
    normalize_level,
)

LOG_ID_HEADER = "cf-aig-log-id"
GATEWAY_URL_TEMPLATE = "https://gateway.ai.cloudflare.com/v1/{team_id}/{team_name}"


class ModelProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class ModelConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    temperature: float | None = None
    max_output_tokens: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    top_p: float | None = None
    system_prompt: str | None = None


DEFAULT_MODELS: dict[ModelProvider, dict[str, ModelConfig]] = {
    ModelProvider.OPENAI: {
        "gpt-4": ModelConfig(
            name="gpt-4",
            temperature=0.7,
            max_output_tokens=2048,
            frequency_penalty=0,
            presence_penalty=0,
        ),
        "gpt-3.5-turbo": ModelConfig(
            name="gpt-3.5-turbo",
            temperature=0.7,
            max_output_tokens=2048,
            frequency_penalty=0,
            presence_penalty=0,
        ),
    },
}


class OpacityAdapterConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    team_id: str
    team_name: str
    api_key: str
    opacity_prover_url: str
    model_provider: ModelProvider = ModelProvider.OPENAI
    gateway_url: str | None = None
    timeout_seconds: float = 30.0

    @model_validator(mode="before")
    @classmethod
    def _default_gateway(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("gateway_url"):
            data = {
                **data,
                "gateway_url": GATEWAY_URL_TEMPLATE.format(
                    team_id=data.get("team_id"), team_name=data.get("team_name")
                ),
            }
        return data

    @classmethod
    def from_settings(cls, settings: OpacitySettings) -> OpacityAdapterConfig:
        return cls(**settings.model_dump(exclude_none=True))


class OpacityAdapter:
    """Verifiable inference and direct logging over the AI gateway."""

    name = prover.PROOF_TYPE

    def __init__(
        self,
        config: OpacityAdapterConfig | Mapping[str, Any] | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> None:
        self._config = parse_config(OpacityAdapterConfig, config, **kwargs)
        self._client = client
        self._owns_client = client is None

    @property
    def config(self) -> OpacityAdapterConfig:
        return self._config

    @property
    def gateway_url(self) -> str:
        assert self._config.gateway_url is not None
        return self._config.gateway_url.rstrip("/")

    @property
    def prover_url(self) -> str:
        return self._config.opacity_prover_url.rstrip("/")

    async def initialize(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_seconds)
            self._owns_client = True

    async def shutdown(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> OpacityAdapter:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.shutdown()

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise NotInitializedError()
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._config.api_key}"}

    def _status(self, log_id: str, timestamp: float) -> DALogStatus:
        return DALogStatus(
            type=self.name,
            data={"log_id": log_id, "prover_url": self.prover_url},
            timestamp=timestamp,
        )

    # Verifiable inference -------------------------------------------------

    def resolve_model(self, model: str) -> ModelConfig:
        """Look up the defaults for ``model`` under the configured provider.

        Raises:
            ValueError: For an unsupported provider or model.
        """
        provider = self._config.model_provider
        models = DEFAULT_MODELS.get(provider)
        if not models:
            raise ValueError(f"Unsupported model provider: {provider.value}")
        model_config = models.get(model)
        if model_config is None:
            raise ValueError(f"Unsupported model: {model}")
        return model_config

    async def generate_text(
        self,
        prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> VerifiableInferenceResult[str]:
        """Run a chat completion and fetch the proof of its gateway log.

        Raises:
            ValueError: For an unsupported provider or model.
            ProofGenerationError: For any request, response or proof failure.
        """
        model_config = self.resolve_model(model or "gpt-4")
        client = self._http()
        messages: list[dict[str, str]] = []
        if model_config.system_prompt:
            messages.append({"role": "system", "content": model_config.system_prompt})
        messages.append({"role": "user", "content": prompt})
        body = {
            "model": model_config.name,
            "messages": messages,
            "temperature": (
                temperature if temperature is not None else model_config.temperature
            ),
            "max_tokens": (
                max_tokens if max_tokens is not None else model_config.max_output_tokens
            ),
            "frequency_penalty": model_config.frequency_penalty,
            "presence_penalty": model_config.presence_penalty,
        }
        endpoint = f"{self.gateway_url}/{self._config.model_provider.value}/chat/completions"
        try:
            resp = await client.post(endpoint, json=body, headers=self._auth_headers())
            if resp.is_error:
                raise ProofGenerationError(
                    f"API request failed: {resp.reason_phrase}",
                    details=resp.text[:256],
                )
            log_id = resp.headers.get(LOG_ID_HEADER)
            if not log_id:
                raise ProofGenerationError("No log ID received from the gateway")
            content = resp.json()["choices"][0]["message"]["content"]
            proof = await prover.generate_proof(client, self.prover_url, log_id)
        except ProofGenerationError:
            raise
        except Exception as exc:
            raise ProofGenerationError(
                "Failed to generate text with proof", cause=exc
            ) from exc
        return VerifiableInferenceResult(content=content, proof=proof)

    async def verify_proof(self, proof: Proof) -> bool:
        """Ask the prover whether ``proof`` is valid.

        Raises:
            ValueError: If the proof is not an opacity proof or has no log id.
            ProofVerificationError: If the prover request fails.
        """
        if proof.type != prover.PROOF_TYPE:
            raise ValueError("Invalid proof type")
        log_id = proof.metadata.get("log_id")
        if not log_id:
            raise ValueError("Missing log ID in proof metadata")
        result = await prover.verify_proof(self._http(), self.prover_url, str(log_id), proof)
        return result.success

    # Logging contract -----------------------------------------------------

    async def log(
        self,
        data: Any,
        options: LogOptions | None = None,
        *,
        level: str | None = None,
        tags: Iterable[str] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> DALogEntry:
        """Store ``data`` in the gateway log; no buffering, one request per call."""
        if options is None:
            options = LogOptions(
                level=normalize_level(level),
                tags=tuple(tags or ()),
                metadata=dict(metadata or {}),
            )
        timestamp = time.time()
        resp = await self._http().post(
            f"{self.gateway_url}/logs",
            json={"data": data, **options.to_dict()},
            headers=self._auth_headers(),
        )
        resp.raise_for_status()
        log_id = resp.headers.get(LOG_ID_HEADER)
        if not log_id:
            raise ValueError("No log ID received from the gateway")
        return DALogEntry(
            id=log_id,
            content=data,
            timestamp=timestamp,
            status=self._status(log_id, timestamp),
            options=options,
        )

    async def info(self, message: str, metadata: Mapping[str, Any] | None = None) -> DALogEntry:  # fmt: skip
        return await self.log(message, level="info", metadata=metadata)

    async def warn(self, message: str, metadata: Mapping[str, Any] | None = None) -> DALogEntry:  # fmt: skip
        return await self.log(message, level="warn", metadata=metadata)

    async def error(self, message: str, metadata: Mapping[str, Any] | None = None) -> DALogEntry:  # fmt: skip
        return await self.log(message, level="error", metadata=metadata)

    async def debug(self, message: str, metadata: Mapping[str, Any] | None = None) -> DALogEntry:  # fmt: skip
        return await self.log(message, level="debug", metadata=metadata)

    async def check_availability(self, status: DALogStatus) -> bool:
        if status.type != self.name:
            return False
        log_id = status.data.get("log_id")
        prover_url = status.data.get("prover_url")
        if not log_id or not prover_url:
            return False
        try:
            resp = await self._http().get(f"{str(prover_url).rstrip('/')}/api/logs/{log_id}")
        except httpx.HTTPError as exc:
            diagnostics.warn(
                "opacity-adapter",
                "error checking log availability",
                log_id=log_id,
                error=str(exc),
            )
            return False
        return resp.is_success

    async def get_log_entry(self, id: str) -> DALogEntry | None:
        try:
            resp = await self._http().get(f"{self.prover_url}/api/logs/{id}")
            if not resp.is_success:
                return None
            body = resp.json()
            timestamp = float(body.get("timestamp") or 0.0)
            return DALogEntry(
                id=id,
                content=body.get("data"),
                timestamp=timestamp,
                status=self._status(id, timestamp),
                options=LogOptions(
                    level=normalize_level(body.get("level")),
                    tags=tuple(body.get("tags") or ()),
                    metadata=dict(body.get("metadata") or {}),
                ),
            )
        except NotInitializedError:
            raise
        except Exception as exc:
            diagnostics.warn(
                "opacity-adapter", "error retrieving log entry", id=id, error=str(exc)
            )
            return None

    async def query_logs(
        self,
        *,
        start_time: float | None = None,
        end_time: float | None = None,
        level: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[DALogEntry]:
        # The gateway exposes no log query API
        return []


__all__ = [
    "DEFAULT_MODELS",
    "ModelConfig",
    "ModelProvider",
    "OpacityAdapter",
    "OpacityAdapterConfig",
]
