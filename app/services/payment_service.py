import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from app.core.config import ReceiptPolicy, Settings
from app.core.exceptions import ClientInputError, GatewayResponseError
from app.core.logging import set_order_id
from app.core.observability import log_step
from app.integrations.insales_client import InSalesApiClient
from app.integrations.order_normalizer import NO_ORDER_MESSAGE, parse_order_json
from app.integrations.yookassa_client import YooKassaApiClient, new_idempotence_key
from app.schemas.insales import Order
from app.schemas.yookassa import (
    Article,
    Confirmation,
    DirectPaymentBody,
    DirectPaymentResult,
    MonetaryAmount,
    PaymentRequest,
    Receipt,
)
from .articles import amount_from_articles, build_articles, money, needs_variant_lookup, resolve_tru
from .receipt import build_receipt, pick_email, pick_phone

logger = logging.getLogger(__name__)

NO_TRU_MESSAGE = "В заказе нет позиций с TRU (проверь SKU/штрихкоды у вариантов)"
NO_CONTACT_MESSAGE = "Для чека нужен email или телефон покупателя, а в заказе их нет"
NO_CONFIRMATION_MESSAGE = "ЮKassa не вернула confirmation_url"


class PaymentService:
    """
    InSales-заказ -> платёж ЮKassa (Электронный сертификат) -> URL для редиректа.

    Экземпляр создаётся на один входящий запрос и не хранит состояния между запросами.
    """

    def __init__(self, settings: Settings, insales: InSalesApiClient, yookassa: YooKassaApiClient):
        self.settings = settings
        self.insales = insales
        self.yookassa = yookassa

    # --- точки входа ---

    async def start_from_payload(self, order_json: Any = None, order_id: str | None = None,
                                 return_url: str | None = None) -> str:
        """/insales/start: order_json из формы InSales или order_id для запроса заказа."""
        order = await self.resolve_order(order_json=order_json, order_id=order_id)
        return await self.create_payment_for_order(order, return_url or self.settings.default_return_url)

    async def pay_by_order_id(self, order_id: str | None, return_url: str | None) -> str:
        """/pay-by-es: ручной сценарий, оба параметра обязательны."""
        if not order_id or not return_url:
            raise ClientInputError("Нужны query: order_id и return_url")
        order = await self.resolve_order(order_id=order_id)
        return await self.create_payment_for_order(order, return_url)

    # --- шаги сценария ---

    @log_step("payment.resolve_order")
    async def resolve_order(self, order_json: Any = None, order_id: str | None = None) -> Order:
        if order_json:
            order = parse_order_json(order_json)
        elif order_id:
            order = await self.insales.get_order(str(order_id))
        else:
            raise ClientInputError(NO_ORDER_MESSAGE)
        set_order_id(order.id)
        return order

    @log_step("payment.create_for_order")
    async def create_payment_for_order(self, order: Order, return_url: str) -> str:
        set_order_id(order.id)

        articles = await build_articles(
            order, self.insales.find_variant,
            policy=self.settings.TRU_POLICY, currency=self.settings.CURRENCY,
        )
        if not articles:
            raise ClientInputError(NO_TRU_MESSAGE)

        amount = amount_from_articles(articles)
        receipt = build_receipt(order, self.settings)
        if receipt is None and self.settings.RECEIPT_POLICY is ReceiptPolicy.REQUIRED:
            raise ClientInputError(NO_CONTACT_MESSAGE)

        logger.info("Payment prepared", extra={"extra": {
            "amount": amount, "articles": len(articles),
            "receipt_items": len(receipt.items) if receipt else 0}})

        request = PaymentRequest(
            amount=MonetaryAmount(value=amount, currency=self.settings.CURRENCY),
            articles=articles,
            receipt=receipt,
            confirmation=Confirmation(return_url=return_url),
            description=f"Заказ №{order.display_number} (ЭС)",
            metadata={"order_id": order.id},
        )
        return await self.submit(request)

    @log_step("payment.submit")
    async def submit(self, request: PaymentRequest) -> str:
        idempotence_key = new_idempotence_key()
        payment = await self.yookassa.create_payment(request, idempotence_key=idempotence_key)

        if not payment.confirmation_url:
            logger.error("No confirmation_url in YooKassa response", extra={"extra": {
                "payment_id": payment.id, "status": payment.status, "idempotence_key": idempotence_key}})
            raise GatewayResponseError(NO_CONFIRMATION_MESSAGE, body=payment.model_dump(exclude_none=True))

        logger.info("Payment created", extra={"extra": {
            "payment_id": payment.id, "status": payment.status, "idempotence_key": idempotence_key}})
        return payment.confirmation_url

    # --- прямое создание платежа и служебные операции ---

    @log_step("payment.create_direct")
    async def create_direct_payment(self, body: DirectPaymentBody) -> DirectPaymentResult:
        """/create-payment: articles и сумма приходят готовыми, InSales не участвует."""
        if not body.articles:
            raise ClientInputError("Нужен хотя бы один элемент в articles")
        articles = self._renumber(body.articles)

        amount = self._direct_amount(body.amount, articles)
        receipt: Receipt | None = body.receipt
        request = PaymentRequest(
            amount=MonetaryAmount(value=amount, currency=self.settings.CURRENCY),
            articles=articles,
            receipt=receipt,
            confirmation=Confirmation(return_url=body.return_url),
            description=body.description or "Оплата электронным сертификатом",
            metadata=body.metadata,
        )
        payment = await self.yookassa.create_payment(request, idempotence_key=new_idempotence_key())
        if not payment.confirmation_url:
            raise GatewayResponseError(NO_CONFIRMATION_MESSAGE, body=payment.model_dump(exclude_none=True))
        return DirectPaymentResult(id=payment.id, status=payment.status,
                                   confirmation_url=payment.confirmation_url)

    @staticmethod
    def _renumber(articles: list[Article]) -> list[Article]:
        return [a.model_copy(update={"article_number": i}) for i, a in enumerate(articles, start=1)]

    @staticmethod
    def _direct_amount(raw_amount: Any, articles: list[Article]) -> str:
        if raw_amount is None or raw_amount == "":
            return amount_from_articles(articles)
        try:
            value = Decimal(str(raw_amount))
        except InvalidOperation as e:
            raise ClientInputError(f"Некорректная сумма: {raw_amount}") from e
        if not value.is_finite() or value <= 0:
            raise ClientInputError(f"Некорректная сумма: {raw_amount}")
        return money(value)

    @log_step("payment.check")
    async def check_payment(self, payment_id: str) -> dict:
        return await self.yookassa.get_payment(payment_id)

    @log_step("payment.describe_order")
    async def describe_order(self, order_id: str) -> dict:
        """Диагностика заказа: какие sku/barcode/контакты видны, без запроса карточек и без платежа."""
        order = await self.insales.get_order(order_id)
        lines = []
        for line in order.line_items:
            tru = await resolve_tru(line, None, self.settings.TRU_POLICY)
            lines.append({
                "title": line.title,
                "quantity": line.raw_quantity,
                "price": line.raw_price,
                "sku_in_line": line.sku,
                "variant_sku": line.variant_sku,
                "barcode_in_line": line.barcode,
                "variant_barcode": line.variant_barcode,
                "product_id": line.product_id,
                "variant_id": line.variant_id,
                "tru_without_lookup": tru,
                "needs_variant_lookup": needs_variant_lookup(line, self.settings.TRU_POLICY),
            })
        return {
            "order_id": order.id,
            "number": order.number,
            "email": pick_email(order.contacts.emails),
            "phone": pick_phone(order.contacts.phones),
            "email_candidates": order.contacts.emails,
            "phone_candidates": order.contacts.phones,
            "lines": lines,
        }
