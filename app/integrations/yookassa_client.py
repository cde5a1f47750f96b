import uuid

import httpx

from .base_client import BaseApiClient, path_id
from app.core.config import Settings
from app.schemas.yookassa import PaymentRequest, PaymentResponse


def new_idempotence_key() -> str:
    return str(uuid.uuid4())


class YooKassaApiClient(BaseApiClient):
    SYSTEM = "YOOKASSA"

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            base_url=settings.YOOKASSA_API_URL,
            timeout=settings.YOOKASSA_TIMEOUT,
            auth=(settings.SHOP_ID or "", settings.SECRET_KEY or ""),
            transport=transport,
        )

    async def create_payment(self, payload: PaymentRequest, idempotence_key: str | None = None) -> PaymentResponse:
        """
        Создаёт платёж. Ключ идемпотентности новый на каждый вызов,
        поэтому повтор всего запроса означает новую попытку оплаты.
        """
        headers = {"Idempotence-Key": idempotence_key or new_idempotence_key()}
        response_data = await self._request("POST", "payments", json=payload.to_payload(), headers=headers)
        return PaymentResponse.model_validate(response_data)

    async def get_payment(self, payment_id: str) -> dict:
        """Статус платежа: ответ ЮKassa отдаём как есть."""
        return await self._request("GET", f"payments/{path_id(payment_id)}")
