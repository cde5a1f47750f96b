import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from app.api.deps import get_payment_service
from app.core.exceptions import ClientInputError
from app.schemas.yookassa import DirectPaymentBody, DirectPaymentResult
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)
router = APIRouter()


async def _read_body(request: Request) -> dict[str, Any]:
    """Тело POST от InSales: form-urlencoded (обычно) или JSON."""
    content_type = request.headers.get("content-type", "").lower()
    if "application/json" in content_type:
        try:
            data = await request.json()
        except ValueError as e:
            raise ClientInputError(f"Некорректный JSON в теле запроса: {e}") from e
        return data if isinstance(data, dict) else {}
    if "form" in content_type:
        form = await request.form()
        return dict(form)
    return {}


@router.api_route("/insales/start", methods=["GET", "POST"], summary="Оплата заказа InSales электронным сертификатом")
async def insales_start(
    request: Request,
    order_id: str | None = Query(default=None, description="ID заказа InSales (для GET)"),
    return_url: str | None = Query(default=None, description="Куда вернуть покупателя после оплаты"),
    service: PaymentService = Depends(get_payment_service),
):
    """
    InSales отправляет сюда POST с полем order_json; для ручной проверки
    подходит GET c ?order_id=. Ответ: редирект 302 на страницу оплаты ЮKassa.
    """
    body = await _read_body(request) if request.method == "POST" else {}
    logger.info("insales/start", extra={"extra": {
        "method": request.method, "content_type": request.headers.get("content-type"),
        "body_keys": sorted(body), "order_id": order_id}})

    confirmation_url = await service.start_from_payload(
        order_json=body.get("order_json"),
        order_id=order_id or body.get("order_id"),
        return_url=return_url or body.get("return_url"),
    )
    logger.info("redirect to confirmation_url", extra={"extra": {"confirmation_url": confirmation_url}})
    return RedirectResponse(confirmation_url, status_code=302)


@router.get("/pay-by-es", summary="Ручной сценарий оплаты по ID заказа")
async def pay_by_es(
    order_id: str | None = Query(default=None),
    return_url: str | None = Query(default=None),
    service: PaymentService = Depends(get_payment_service),
):
    confirmation_url = await service.pay_by_order_id(order_id, return_url)
    return RedirectResponse(confirmation_url, status_code=302)


@router.post("/create-payment", response_model=DirectPaymentResult, summary="Создать платёж по готовым articles")
async def create_payment(
    body: DirectPaymentBody,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.create_direct_payment(body)


@router.get("/check-payment/{payment_id}", summary="Статус платежа в ЮKassa")
async def check_payment(
    payment_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.check_payment(payment_id)
