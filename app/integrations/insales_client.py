import logging

import httpx

from .base_client import BaseApiClient, path_id
from .order_normalizer import as_text, normalize_order, unwrap
from app.core.config import Settings
from app.core.exceptions import ClientInputError, UpstreamError
from app.schemas.insales import Order, VariantLookup

logger = logging.getLogger(__name__)


class InSalesApiClient(BaseApiClient):
    SYSTEM = "INSALES"

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            base_url=settings.insales_base_url,
            timeout=settings.INSALES_TIMEOUT,
            auth=(settings.INS_API_KEY or "", settings.INS_API_PASSWORD or ""),
            transport=transport,
        )
        self.client.headers["Accept"] = "application/json"

    async def get_order(self, order_id: str) -> Order:
        """
        Получает заказ из InSales по ID и приводит его к канонической форме.
        Ошибки не перехватываются: без заказа платёж создать нельзя.
        """
        data = await self._request("GET", f"/admin/orders/{path_id(order_id)}.json")
        return normalize_order(data)

    async def get_variant_info(self, product_id: str, variant_id: str) -> VariantLookup:
        """Ищет вариант в карточке товара и возвращает его sku/barcode."""
        data = await self._request("GET", f"/admin/products/{path_id(product_id)}.json")
        product = unwrap(data, "product")
        if not isinstance(product, dict):
            return VariantLookup.not_found()
        for variant in product.get("variants") or []:
            if isinstance(variant, dict) and str(variant.get("id")) == str(variant_id):
                return VariantLookup(
                    found=True,
                    sku=as_text(variant.get("sku")),
                    barcode=as_text(variant.get("barcode")),
                )
        return VariantLookup.not_found()

    async def find_variant(self, product_id: str, variant_id: str) -> VariantLookup:
        """
        То же, что get_variant_info, но без исключений: сбой запроса означает,
        что по этому пути TRU не найден.
        """
        try:
            return await self.get_variant_info(product_id, variant_id)
        except (UpstreamError, ClientInputError) as e:
            logger.warning("Variant lookup failed", extra={"extra": {
                "product_id": product_id, "variant_id": variant_id, "error": e.message}})
            return VariantLookup.not_found()
