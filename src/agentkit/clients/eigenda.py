"""
httpx client for the EigenDA upload API.

Implements the ``RemoteStore`` capability used by the batched logging path
plus the credit and identifier operations the adapter exposes directly.

REST mapping (paths relative to ``api_url``):

    GET  /identifiers                -> {"identifiers": ["<hex>", ...]}
    POST /identifiers                -> {"identifier": "<hex>"}
    GET  /credits/{identifier}       -> {"balance": <float>}
    POST /credits/{identifier}/topup    {"amount": <float>}
    POST /upload                     -> {"job_id": "<id>"}   (X-Identifier header)
    GET  /status/{job_id}            -> {"status": "<status>"}
    GET  /retrieve/{job_id}          -> raw payload bytes, 404 when unknown
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..core import diagnostics
from ..core.errors import AdapterNotReadyError, ConfirmationError
from ..core.retry import AsyncRetrier, RetryConfig
from ..core.settings import EigenDASettings, parse_config
from ..core.types import BatchStatus

__all__ = ["EigenDAClient", "EigenDAClientConfig", "map_status"]

_CONFIRMED = {"confirmed", "completed", "finalized"}
_FAILED = {"failed", "error", "rejected"}


def map_status(raw: str | None) -> BatchStatus:
    """Collapse the vendor's status strings onto pending/confirmed/failed."""
    value = (raw or "").strip().lower()
    if value in _CONFIRMED:
        return BatchStatus.CONFIRMED
    if value in _FAILED:
        return BatchStatus.FAILED
    return BatchStatus.PENDING


class EigenDAClientConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)  # fmt: skip

    api_url: str = "https://api.eigenda.xyz"
    rpc_url: str | None = None
    auth_token: str | None = None
    credits_contract_address: str | None = None
    min_balance: float = Field(default=0.001, ge=0.0)
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    headers: dict[str, str] = Field(default_factory=dict)
    retry: RetryConfig | None = None

    @classmethod
    def from_settings(cls, settings: EigenDASettings) -> EigenDAClientConfig:
        return cls(**settings.model_dump())


class EigenDAClient:
    """Remote store backed by the EigenDA upload API."""

    name = "eigenda"

    identifiers_path = "/identifiers"
    credits_path = "/credits/{identifier}"
    topup_path = "/credits/{identifier}/topup"
    upload_path = "/upload"
    status_path = "/status/{job_id}"
    retrieve_path = "/retrieve/{job_id}"

    def __init__(
        self,
        config: EigenDAClientConfig | Mapping[str, Any] | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> None:
        cfg = parse_config(EigenDAClientConfig, config, **kwargs)
        self._config = cfg
        self._client = client
        self._owns_client = client is None
        self._retrier: AsyncRetrier | None = (
            AsyncRetrier(cfg.retry) if cfg.retry is not None else None
        )
        self._identifier: bytes | None = None
        self._identity_lock = asyncio.Lock()

    @property
    def config(self) -> EigenDAClientConfig:
        return self._config

    @property
    def identifier(self) -> bytes | None:
        return self._identifier

    async def start(self) -> None:
        if self._client is not None:
            return
        headers = {"Accept": "application/json", **self._config.headers}
        if self._config.auth_token:
            headers["Authorization"] = f"Bearer {self._config.auth_token}"
        self._client = httpx.AsyncClient(
            base_url=self._config.api_url.rstrip("/"),
            timeout=self._config.timeout_seconds,
            headers=headers,
        )
        self._owns_client = True

    async def stop(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, path: str, *, allow_404: bool = False, **kwargs: Any
    ) -> httpx.Response | None:
        if self._client is None:
            await self.start()
        assert self._client is not None
        client = self._client

        async def _do() -> httpx.Response:
            return await client.request(method, path, **kwargs)

        resp = await (self._retrier(_do) if self._retrier else _do())
        if allow_404 and resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp

    async def get_identifiers(self) -> list[bytes]:
        resp = await self._request("GET", self.identifiers_path)
        assert resp is not None
        return [bytes.fromhex(h) for h in resp.json().get("identifiers", [])]

    async def create_identifier(self) -> bytes:
        resp = await self._request("POST", self.identifiers_path)
        assert resp is not None
        return bytes.fromhex(resp.json()["identifier"])

    async def get_balance(self, identifier: bytes) -> float:
        resp = await self._request(
            "GET", self.credits_path.format(identifier=identifier.hex())
        )
        assert resp is not None
        return float(resp.json().get("balance", 0.0))

    async def topup_credits(self, identifier: bytes, amount: float) -> None:
        await self._request(
            "POST",
            self.topup_path.format(identifier=identifier.hex()),
            json={"amount": amount},
        )

    async def ensure_identity(self) -> bytes:
        """Reuse the first existing identifier or create one, then top up credits.

        Raises:
            AdapterNotReadyError: If no identifier could be obtained.
        """
        async with self._identity_lock:
            if self._identifier is not None:
                return self._identifier
            existing = await self.get_identifiers()
            identifier = existing[0] if existing else await self.create_identifier()
            if not identifier:
                raise AdapterNotReadyError("Failed to initialize identifier")
            balance = await self.get_balance(identifier)
            if balance < self._config.min_balance:
                diagnostics.debug(
                    "eigenda-client",
                    "topping up credits",
                    balance=balance,
                    min_balance=self._config.min_balance,
                )
                await self.topup_credits(identifier, self._config.min_balance)
            self._identifier = identifier
            return identifier

    async def upload(self, content: bytes | str, identifier: bytes | None = None) -> str:
        ident = identifier or await self.ensure_identity()
        data = content.encode("utf-8") if isinstance(content, str) else content
        resp = await self._request(
            "POST",
            self.upload_path,
            content=data,
            headers={"Content-Type": "application/json", "X-Identifier": ident.hex()},
        )
        assert resp is not None
        body = resp.json()
        job_id = body.get("job_id") or body.get("jobId")
        if not job_id:
            raise ValueError("Upload response carried no job id")
        return str(job_id)

    async def submit(self, payload: bytes) -> str:
        return await self.upload(payload)

    async def get_raw_status(self, job_id: str) -> str:
        resp = await self._request("GET", self.status_path.format(job_id=job_id))
        assert resp is not None
        return str(resp.json().get("status", ""))

    async def get_status(self, handle: str) -> BatchStatus:
        return map_status(await self.get_raw_status(handle))

    async def retrieve(self, handle: str) -> bytes | None:
        resp = await self._request(
            "GET", self.retrieve_path.format(job_id=handle), allow_404=True
        )
        return None if resp is None else resp.content

    async def wait_for_status(
        self,
        job_id: str,
        target: BatchStatus = BatchStatus.CONFIRMED,
        *,
        max_checks: int = 30,
        check_interval_seconds: float = 20.0,
        initial_delay_seconds: float = 60.0,
    ) -> BatchStatus:
        """Poll until ``job_id`` reaches ``target``.

        Raises:
            ConfirmationError: If the job fails or the checks run out.
        """
        await asyncio.sleep(initial_delay_seconds)
        for check in range(max_checks):
            status = await self.get_status(job_id)
            if status is target:
                return status
            if status is BatchStatus.FAILED:
                raise ConfirmationError(f"Job {job_id} failed")
            if check < max_checks - 1:
                await asyncio.sleep(check_interval_seconds)
        raise ConfirmationError(
            f"Job {job_id} did not reach {target.value} after {max_checks} checks"
        )
