"""
Market Oracle Adapter

Read-only access to a market's resolution state. Payloads are validated at
the boundary so that nothing downstream sees an unknown status or result.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Literal, Optional, Protocol

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from whisp.exceptions import OracleError

logger = logging.getLogger(__name__)


class MarketResolution(BaseModel):
    """Status and result of one binary market."""

    market_id: str
    status: Literal["open", "closed"]
    result: Optional[Literal["yes", "no"]] = None
    raw_result: Optional[str] = None
    close_time: int = 0

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @property
    def is_resolved(self) -> bool:
        """Closed with a usable yes/no result."""
        return self.status == "closed" and self.result is not None

    @classmethod
    def from_api(cls, market_id: str, data: dict[str, Any]) -> MarketResolution:
        """Build from a prediction-market API payload, rejecting malformed data."""
        raw_result = data.get("result")
        result = raw_result.lower() if isinstance(raw_result, str) else None
        metadata = data.get("metadata") or {}

        try:
            return cls(
                market_id=data.get("marketId", market_id),
                status=data.get("status", metadata.get("status")),
                result=result if result in ("yes", "no") else None,
                raw_result=raw_result or None,
                close_time=int(data.get("closeTime") or metadata.get("closeTime") or 0),
            )
        except (ValidationError, TypeError, ValueError) as e:
            raise OracleError(f"Malformed market payload for {market_id}: {e}") from e


class MarketOracle(Protocol):
    """Anything that can report a market's current resolution."""

    async def get_market(self, market_id: str) -> MarketResolution: ...


class OracleConfig(BaseModel):
    """Configuration for the prediction-market API client."""

    base_url: str = "https://prediction-market-api.jup.ag/api/v1"
    timeout_seconds: float = 15.0
    max_connections: int = 20
    max_keepalive_connections: int = 10
    max_retries: int = 3


class JupiterMarketOracle:
    """HTTP oracle over the prediction-market API. Always fetches fresh data."""

    def __init__(self, config: OracleConfig | None = None):
        self.config = config or OracleConfig()
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> JupiterMarketOracle:
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def open(self) -> None:
        if self._client is None:
            limits = httpx.Limits(
                max_connections=self.config.max_connections,
                max_keepalive_connections=self.config.max_keepalive_connections,
            )
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                limits=limits,
                headers={"Accept": "application/json"},
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("JupiterMarketOracle must be opened before use")
        return self._client

    async def get_market(self, market_id: str) -> MarketResolution:
        data = await self._request(f"markets/{market_id}")
        return MarketResolution.from_api(market_id, data)

    async def _request(self, endpoint: str) -> dict[str, Any]:
        retry_count = 0
        last_error: Exception | None = None

        while retry_count < self.config.max_retries:
            try:
                response = await self.client.get(endpoint)

                if response.status_code == 404:
                    raise OracleError(f"Market not found: {endpoint}", status_code=404)
                elif response.status_code == 429 or response.status_code >= 500:
                    wait_time = 2 ** retry_count
                    logger.warning(
                        f"Oracle returned {response.status_code}, retrying in {wait_time}s..."
                    )
                    last_error = OracleError(f"HTTP {response.status_code}")
                    await asyncio.sleep(wait_time)
                    retry_count += 1
                    continue

                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                last_error = e
                retry_count += 1
                if retry_count < self.config.max_retries:
                    logger.warning(f"Oracle timeout, retrying ({retry_count})...")
                    await asyncio.sleep(1)

            except (httpx.HTTPStatusError, httpx.RequestError, ValueError) as e:
                last_error = e
                logger.error(f"Oracle request error for {endpoint}: {e}")
                break

        raise OracleError(f"Failed to fetch {endpoint} after {retry_count} retries: {last_error}")
