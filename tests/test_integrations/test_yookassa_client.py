import base64
import json

import httpx
import pytest

from app.core.exceptions import ClientInputError, UpstreamError
from app.integrations.yookassa_client import YooKassaApiClient
from app.schemas.yookassa import Article, Confirmation, MonetaryAmount, PaymentRequest


def _payment_request() -> PaymentRequest:
    return PaymentRequest(
        amount=MonetaryAmount(value="200.00"),
        articles=[Article(article_number=1, tru_code="SKU1", article_code="", article_name="Cap",
                          quantity=2, price=MonetaryAmount(value="100.00"))],
        confirmation=Confirmation(return_url="https://shop/account/orders"),
        description="Заказ №A1 (ЭС)",
        metadata={"order_id": "1"},
    )


@pytest.mark.asyncio
async def test_create_payment_sends_auth_and_idempotence_key(settings):
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "id": "2d1e", "status": "pending",
            "confirmation": {"type": "redirect", "confirmation_url": "https://yoomoney.ru/checkout/2d1e"},
        })

    client = YooKassaApiClient(settings, transport=httpx.MockTransport(handler))
    payment = await client.create_payment(_payment_request(), idempotence_key="key-1")
    await client.close()

    assert seen["url"] == "https://api.yookassa.ru/v3/payments"
    assert seen["headers"]["idempotence-key"] == "key-1"
    expected = base64.b64encode(b"1003537:test_secret").decode()
    assert seen["headers"]["authorization"] == f"Basic {expected}"

    body = seen["body"]
    assert body["payment_method_data"] == {"type": "electronic_certificate"}
    assert body["capture"] is True
    assert body["confirmation"] == {"type": "redirect", "return_url": "https://shop/account/orders"}
    assert "receipt" not in body
    assert payment.confirmation_url == "https://yoomoney.ru/checkout/2d1e"


@pytest.mark.asyncio
async def test_create_payment_generates_key_when_missing(settings):
    keys = []

    def handler(request: httpx.Request):
        keys.append(request.headers["idempotence-key"])
        return httpx.Response(200, json={"id": "p"})

    client = YooKassaApiClient(settings, transport=httpx.MockTransport(handler))
    await client.create_payment(_payment_request())
    await client.create_payment(_payment_request())

    assert len(keys) == 2
    assert keys[0] != keys[1]


@pytest.mark.asyncio
async def test_create_payment_error_carries_upstream_body(settings):
    error = {"type": "error", "code": "invalid_request", "parameter": "articles"}
    client = YooKassaApiClient(settings, transport=httpx.MockTransport(lambda r: httpx.Response(400, json=error)))

    with pytest.raises(UpstreamError) as exc_info:
        await client.create_payment(_payment_request())

    assert exc_info.value.status_code == 500
    assert exc_info.value.body == error


@pytest.mark.asyncio
async def test_get_payment_returns_raw_object(settings):
    def handler(request: httpx.Request):
        assert request.method == "GET"
        assert request.url.path == "/v3/payments/2d1e"
        return httpx.Response(200, json={"id": "2d1e", "status": "succeeded", "paid": True})

    client = YooKassaApiClient(settings, transport=httpx.MockTransport(handler))
    assert await client.get_payment("2d1e") == {"id": "2d1e", "status": "succeeded", "paid": True}


@pytest.mark.asyncio
@pytest.mark.parametrize("payment_id", [".", "..", "x?limit=100", "a/b", "", "2d1e#frag"])
async def test_get_payment_rejects_ids_that_change_the_path(settings, payment_id):
    requests = []
    client = YooKassaApiClient(settings, transport=httpx.MockTransport(
        lambda request: requests.append(request) or httpx.Response(200, json={})))

    with pytest.raises(ClientInputError):
        await client.get_payment(payment_id)
    assert requests == []


@pytest.mark.asyncio
async def test_get_payment_stays_under_payments_path(settings):
    payment_id = "22e12f66-000f-5000-8000-18db351245c7"
    seen = []

    def handler(request: httpx.Request):
        seen.append(request.url)
        return httpx.Response(200, json={"id": payment_id})

    client = YooKassaApiClient(settings, transport=httpx.MockTransport(handler))
    await client.get_payment(payment_id)

    assert seen[0].path == f"/v3/payments/{payment_id}"
    assert seen[0].query == b""
