"""Outbound client for the payment gateway's order API (Razorpay-compatible)."""
import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import GATEWAY_BASE_URL, GATEWAY_TIMEOUT
from app.core.exceptions import GatewayError
from app.services.outlet_directory import GatewayCredentials

log = logging.getLogger("gateway_client")


class GatewayClient:
    """
    Creates gateway-side orders that the buyer then pays against.

    Pass an ``httpx.AsyncClient`` to share a connection pool; otherwise a
    short-lived client is opened per call.
    """

    def __init__(
        self,
        base_url: str = GATEWAY_BASE_URL,
        timeout: float = GATEWAY_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    async def create_order(
        self,
        credentials: GatewayCredentials,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        POST /v1/orders. ``amount_minor`` is in the currency's smallest unit.

        Returns the gateway order (``id``, ``amount``, ``currency``, ...).
        Raises GatewayError on transport failure, timeout or a non-2xx answer.
        """
        body = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        auth = (credentials.key_id, credentials.key_secret)
        url = f"{self._base_url}/v1/orders"

        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json=body, auth=auth, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, json=body, auth=auth)
        except httpx.TimeoutException as e:
            log.error(f"Gateway timeout creating order {receipt}: {e}")
            raise GatewayError("Payment gateway timed out") from e
        except httpx.HTTPError as e:
            log.error(f"Gateway request failed for order {receipt}: {e}")
            raise GatewayError("Payment gateway unavailable") from e

        if response.status_code >= 400:
            log.error(f"Gateway rejected order {receipt}: {response.status_code} {response.text}")
            raise GatewayError(
                "Failed to create payment order",
                status_code=response.status_code,
                response_body=response.text,
            )

        data = response.json()
        if "id" not in data:
            raise GatewayError("Malformed gateway response", status_code=response.status_code, response_body=response.text)
        return data


# Default client used by the payment service
gateway_client = GatewayClient()
