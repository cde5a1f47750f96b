import json
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)


class PaymentFlowError(Exception):
    """Базовая ошибка сценария создания платежа."""

    status_code = 500

    def __init__(self, message: str, *, body: Any = None):
        super().__init__(message)
        self.message = message
        self.body = body

    def render(self) -> str:
        if self.body is None or self.body == "":
            return self.message
        body = self.body if isinstance(self.body, str) else json.dumps(self.body, ensure_ascii=False)
        return f"{self.message}: {body}"


class ClientInputError(PaymentFlowError):
    """Ошибка во входных данных: нет заказа, нет позиций с TRU, нет контактов для чека."""

    status_code = 400


class GatewayResponseError(PaymentFlowError):
    """ЮKassa приняла запрос, но ответ непригоден (нет confirmation_url)."""

    status_code = 502


class UpstreamError(PaymentFlowError):
    """Сбой внешнего API: HTTP-ошибка, сетевая ошибка или битый ответ."""

    status_code = 500

    def __init__(self, message: str, *, body: Any = None, upstream_status: int | None = None):
        super().__init__(message, body=body)
        self.upstream_status = upstream_status


async def payment_flow_error_handler(request: Request, exc: PaymentFlowError) -> PlainTextResponse:
    logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message,
                   extra={"extra": {"status_code": exc.status_code, "upstream_body": exc.body}})
    return PlainTextResponse(exc.render(), status_code=exc.status_code)


async def unhandled_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return PlainTextResponse(f"Внутренняя ошибка: {exc}", status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PaymentFlowError, payment_flow_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
