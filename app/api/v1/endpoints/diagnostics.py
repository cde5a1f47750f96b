import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_payment_service, get_settings
from app.core.config import Settings
from app.core.exceptions import UpstreamError
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/env-check", summary="Какие переменные окружения заданы (без значений)")
def env_check(settings: Settings = Depends(get_settings)):
    return {
        **settings.presence(),
        "PORT": settings.PORT,
        "RECEIPT_VAT_CODE": settings.RECEIPT_VAT_CODE,
        "RECEIPT_TAX_SYSTEM": settings.RECEIPT_TAX_SYSTEM,
        "RECEIPT_POLICY": settings.RECEIPT_POLICY.value,
        "TRU_POLICY": settings.TRU_POLICY.value,
    }


@router.get("/test-order/{order_id}", summary="Показать ключевые поля заказа (sku/barcode/контакты)")
async def inspect_order(order_id: str, service: PaymentService = Depends(get_payment_service)):
    try:
        return await service.describe_order(order_id)
    except UpstreamError as e:
        logger.error("test-order error", extra={"extra": {"order_id": order_id, "error": e.render()}})
        raise HTTPException(status_code=500, detail="Не удалось получить заказ. Проверь ID и доступы API.")
