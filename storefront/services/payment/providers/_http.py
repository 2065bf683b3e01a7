# storefront/services/payment/providers/_http.py
import logging
from typing import Any, Optional

import httpx

from ..provider_interface import PaymentError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class GatewayHTTPClient:
    """Thin JSON-over-HTTP helper shared by the REST gateway adapters."""

    def __init__(
        self,
        base_url: str,
        *,
        provider_name: str,
        headers: Optional[dict] = None,
        auth: Optional[Any] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.provider_name = provider_name
        self.headers = headers or {}
        self.auth = auth
        self.timeout = timeout
        self._http_client = http_client

    async def request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            if self._http_client is not None:
                response = await self._http_client.request(
                    method, url, headers=self.headers, auth=self.auth, **kwargs
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method, url, headers=self.headers, auth=self.auth, **kwargs
                    )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"{self.provider_name} API {method} {path} returned "
                f"{e.response.status_code}: {e.response.text[:500]}"
            )
            raise PaymentError(
                code="PROVIDER_ERROR",
                message=f"{self.provider_name} request failed",
                retryable=e.response.status_code >= 500,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"{self.provider_name} API {method} {path} transport error: {e}")
            raise PaymentError(
                code="NETWORK_ERROR",
                message=f"{self.provider_name} is unreachable",
                retryable=True,
            ) from e
        except ValueError as e:
            logger.error(f"{self.provider_name} API {method} {path} returned invalid JSON")
            raise PaymentError(
                code="PROVIDER_ERROR",
                message=f"{self.provider_name} returned an invalid response",
                retryable=False,
            ) from e
