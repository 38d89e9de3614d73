import base64
import httpx
import pytest
import respx

from app.core.exceptions import GatewayError
from app.services.gateway_client import GatewayClient
from app.services.outlet_directory import GatewayCredentials

BASE_URL = "https://gateway.test"


@pytest.fixture
def credentials():
    return GatewayCredentials(key_id="rzp_test_main", key_secret="main_secret")


@pytest.fixture
def client():
    return GatewayClient(base_url=BASE_URL + "/", timeout=1)


class TestGatewayClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_create_order_success(self, client, credentials):
        route = respx.post(f"{BASE_URL}/v1/orders").mock(
            return_value=httpx.Response(200, json={"id": "order_abc", "amount": 12000, "currency": "INR"})
        )

        data = await client.create_order(credentials, amount_minor=12000, currency="INR", receipt="ORD-1-abc")

        assert data["id"] == "order_abc"
        request = route.calls.last.request
        assert request.headers["authorization"] == "Basic " + base64.b64encode(b"rzp_test_main:main_secret").decode()
        assert b"ORD-1-abc" in request.content

    @pytest.mark.asyncio
    @respx.mock
    async def test_rejected_credentials(self, client, credentials):
        respx.post(f"{BASE_URL}/v1/orders").mock(
            return_value=httpx.Response(401, json={"error": {"description": "Authentication failed"}})
        )

        with pytest.raises(GatewayError) as excinfo:
            await client.create_order(credentials, amount_minor=100, currency="INR", receipt="ORD-1-abc")

        assert excinfo.value.upstream_status == 401
        assert excinfo.value.status_code == 502

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self, client, credentials):
        respx.post(f"{BASE_URL}/v1/orders").mock(side_effect=httpx.ReadTimeout("timed out"))

        with pytest.raises(GatewayError, match="timed out"):
            await client.create_order(credentials, amount_minor=100, currency="INR", receipt="ORD-1-abc")

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error(self, client, credentials):
        respx.post(f"{BASE_URL}/v1/orders").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(GatewayError, match="unavailable"):
            await client.create_order(credentials, amount_minor=100, currency="INR", receipt="ORD-1-abc")

    @pytest.mark.asyncio
    @respx.mock
    async def test_response_without_id(self, client, credentials):
        respx.post(f"{BASE_URL}/v1/orders").mock(return_value=httpx.Response(200, json={"status": "created"}))

        with pytest.raises(GatewayError, match="Malformed"):
            await client.create_order(credentials, amount_minor=100, currency="INR", receipt="ORD-1-abc")

    @pytest.mark.asyncio
    @respx.mock
    async def test_shared_http_client(self, credentials):
        respx.post(f"{BASE_URL}/v1/orders").mock(return_value=httpx.Response(200, json={"id": "order_shared"}))

        async with httpx.AsyncClient() as http_client:
            client = GatewayClient(base_url=BASE_URL, http_client=http_client)
            data = await client.create_order(credentials, amount_minor=100, currency="INR", receipt="ORD-1-abc")

        assert data["id"] == "order_shared"
