"""
Формирование чека (receipt) по 54-ФЗ.

items[].amount.value это ЦЕНА ЗА ЕДИНИЦУ, quantity это количество.
В чек попадают все строки заказа, в том числе те, у которых нет TRU.
"""
import logging
import re
from typing import Iterable

from app.core.config import ReceiptPolicy, Settings
from app.schemas.insales import ContactCandidates, Order
from app.schemas.yookassa import MonetaryAmount, Receipt, ReceiptCustomer, ReceiptItem
from .articles import DEFAULT_ARTICLE_NAME, money

logger = logging.getLogger(__name__)

DESCRIPTION_MAX = 128

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str | None) -> str | None:
    """
    Телефон в формате +7XXXXXXXXXX.

    "89991234567" -> "+79991234567", "+7 (999) 123-45-67" -> "+79991234567",
    "9991234567" -> "+79991234567", "12345" -> None.
    """
    if not raw:
        return None
    s = str(raw).strip()
    digits = _NON_DIGITS.sub("", s)
    if s.startswith("+") and len(digits) >= 11:
        return "+" + digits

    if len(digits) == 11 and digits[0] == "8":
        return "+7" + digits[1:]
    if len(digits) == 11 and digits[0] == "7":
        return "+" + digits
    if len(digits) == 10:
        return "+7" + digits
    return None


def pick_email(candidates: Iterable[str]) -> str | None:
    return next((c.strip() for c in candidates if c and "@" in c), None)


def pick_phone(candidates: Iterable[str]) -> str | None:
    for candidate in candidates:
        phone = normalize_phone(candidate)
        if phone:
            return phone
    return None


def resolve_customer(contacts: ContactCandidates) -> ReceiptCustomer:
    return ReceiptCustomer(email=pick_email(contacts.emails), phone=pick_phone(contacts.phones))


def build_receipt(order: Order, settings: Settings) -> Receipt | None:
    """
    Чек для заказа или None.

    None возвращается, если чек отключён (RECEIPT_POLICY=disabled) или если
    чек обязателен, а ни email, ни телефона покупателя в заказе нет.
    """
    policy = settings.RECEIPT_POLICY
    if policy is ReceiptPolicy.DISABLED:
        return None

    customer = resolve_customer(order.contacts)
    if policy is ReceiptPolicy.REQUIRED and not (customer.email or customer.phone):
        logger.warning("Receipt contact not found", extra={"extra": {
            "order_id": order.id, "email_candidates": len(order.contacts.emails),
            "phone_candidates": len(order.contacts.phones)}})
        return None

    items = [
        ReceiptItem(
            description=(line.title or DEFAULT_ARTICLE_NAME)[:DESCRIPTION_MAX],
            quantity=line.quantity,
            amount=MonetaryAmount(value=money(line.unit_price), currency=settings.CURRENCY),
            vat_code=settings.RECEIPT_VAT_CODE,
            payment_mode=settings.RECEIPT_PAYMENT_MODE,
            payment_subject=settings.RECEIPT_PAYMENT_SUBJECT,
        )
        for line in order.line_items
    ]
    return Receipt(customer=customer, items=items, tax_system_code=settings.tax_system_code)
