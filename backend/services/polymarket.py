import httpx
from typing import Optional

from config import settings
from models import MarketSnapshot
from utils.logger import polymarket_logger as logger
from utils.retry import RetryConfig, with_retry


class PolymarketAPIError(Exception):
    """Fetching from the Gamma API failed"""


class PolymarketUnavailableError(PolymarketAPIError):
    """Network failure or timeout that survived every retry"""


class PolymarketResponseError(PolymarketAPIError):
    """Gamma answered, but with an error status or an unusable payload"""


class PolymarketClient:
    """Client for the Polymarket Gamma API"""

    def __init__(self, gamma_url: Optional[str] = None, timeout: Optional[float] = None):
        self.gamma_url = gamma_url or settings.GAMMA_API_URL
        self.timeout = timeout if timeout is not None else float(settings.API_TIMEOUT_SECONDS)
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ==================== GAMMA API ====================

    @with_retry(config_factory=RetryConfig.from_settings)
    async def _get_json(self, path: str, params: dict) -> object:
        client = await self._get_client()
        response = await client.get(f"{self.gamma_url}{path}", params=params)
        response.raise_for_status()
        return response.json()

    async def fetch_top_markets(self, limit: int = 100) -> list[MarketSnapshot]:
        """Active markets ranked by volume, highest first"""
        params = {
            "active": "true",
            "closed": "false",
            "order": "volume",
            "ascending": "false",
            "limit": limit,
        }

        try:
            data = await self._get_json("/markets", params)
        except httpx.HTTPStatusError as e:
            raise PolymarketResponseError(
                f"Gamma API returned HTTP {e.response.status_code}"
            ) from e
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            raise PolymarketUnavailableError(f"Gamma API unreachable: {e}") from e
        except ValueError as e:
            raise PolymarketResponseError(f"Gamma API returned invalid JSON: {e}") from e

        if not isinstance(data, list):
            raise PolymarketResponseError("Gamma API returned an unexpected payload shape")

        markets: list[MarketSnapshot] = []
        for raw in data:
            if not isinstance(raw, dict) or not str(raw.get("id") or "").strip():
                logger.warning("Skipping Gamma market without id")
                continue
            markets.append(MarketSnapshot.from_gamma_response(raw))

        logger.info("Fetched top markets", requested=limit, received=len(markets))
        return markets


# Singleton instance
polymarket_client = PolymarketClient()
