# app/integrations/order_normalizer.py
# Tolerant parser for InSales order documents (webhook order_json, admin API responses).
# Maps line_items/order_lines, wrapper keys and nested variant/contact objects
# into the canonical Order/LineItem models before any business logic runs.

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List

from app.core.exceptions import ClientInputError
from app.schemas.insales import ContactCandidates, LineItem, Order, VariantRef

log = logging.getLogger(__name__)

NO_ORDER_MESSAGE = "Нет данных заказа: нужен POST с order_json (InSales) или GET c ?order_id="

# Порядок важен: первый подходящий кандидат выигрывает
EMAIL_PATHS = (
    ("email",),
    ("notification_email",),
    ("client", "email"),
    ("customer", "email"),
    ("user", "email"),
    ("contact_email",),
    ("shipping_address", "email"),
    ("billing_address", "email"),
    ("address", "email"),
)
PHONE_PATHS = (
    ("phone",),
    ("client", "phone"),
    ("customer", "phone"),
    ("user", "phone"),
    ("contact_phone",),
    ("shipping_address", "phone"),
    ("billing_address", "phone"),
    ("address", "phone"),
)


def as_text(value: Any) -> str | None:
    """Приводит id/sku/barcode к строке; пустые значения -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    s = str(value).strip()
    return s or None


def _decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def coerce_quantity(value: Any) -> int | float:
    """Количество; отсутствующее, нечисловое или неположительное -> 1."""
    d = _decimal(value)
    if d is None or d <= 0:
        return 1
    return int(d) if d == d.to_integral_value() else float(d)


def coerce_unit_price(raw_line: Dict[str, Any]) -> Decimal:
    """Цена за единицу: sale_price, затем price, иначе 0."""
    for key in ("sale_price", "price"):
        value = raw_line.get(key)
        if value is None or value == "":
            continue
        return _decimal(value) or Decimal("0")
    return Decimal("0")


def _dig(node: Any, path: Iterable[str]) -> Any:
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def collect_contacts(raw: Dict[str, Any]) -> ContactCandidates:
    emails = [v for v in (as_text(_dig(raw, p)) for p in EMAIL_PATHS) if v]
    phones = [v for v in (as_text(_dig(raw, p)) for p in PHONE_PATHS) if v]
    return ContactCandidates(emails=emails, phones=phones)


def normalize_line_item(raw: Dict[str, Any]) -> LineItem:
    variant = raw.get("variant")
    variant_ref = None
    if isinstance(variant, dict):
        variant_ref = VariantRef(sku=as_text(variant.get("sku")), barcode=as_text(variant.get("barcode")))

    return LineItem(
        title=str(raw.get("title") or ""),
        quantity=coerce_quantity(raw.get("quantity")),
        unit_price=coerce_unit_price(raw),
        sku=as_text(raw.get("sku")),
        barcode=as_text(raw.get("barcode")),
        product_id=as_text(raw.get("product_id")),
        variant_id=as_text(raw.get("variant_id")),
        variant=variant_ref,
        raw_quantity=raw.get("quantity"),
        raw_price=raw.get("sale_price") if raw.get("sale_price") is not None else raw.get("price"),
    )


def _raw_lines(raw: Dict[str, Any]) -> List[Dict[str, Any]]:
    lines = raw.get("line_items") or raw.get("order_lines") or []
    if not isinstance(lines, list):
        log.warning("line_items is not a list", extra={"extra": {"type": type(lines).__name__}})
        return []
    return [li for li in lines if isinstance(li, dict)]


def unwrap(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    """{"order": {...}} -> {...}; без обёртки возвращает как есть."""
    inner = raw.get(key) if isinstance(raw, dict) else None
    return inner if isinstance(inner, dict) else raw


def normalize_order(raw: Any) -> Order:
    if not isinstance(raw, dict):
        raise ClientInputError(NO_ORDER_MESSAGE)
    raw = unwrap(raw, "order")

    order_id = as_text(raw.get("id"))
    if not order_id:
        raise ClientInputError(NO_ORDER_MESSAGE)

    order = Order(
        id=order_id,
        number=as_text(raw.get("number")),
        line_items=[normalize_line_item(li) for li in _raw_lines(raw)],
        contacts=collect_contacts(raw),
    )
    log.debug("order normalized", extra={"extra": {
        "order_id": order.id, "lines": len(order.line_items),
        "emails": len(order.contacts.emails), "phones": len(order.contacts.phones)}})
    return order


def parse_order_json(value: Any) -> Order:
    """order_json из формы InSales: строка с JSON или уже разобранный объект."""
    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except ValueError as e:
            raise ClientInputError(f"order_json не является корректным JSON: {e}") from e
    return normalize_order(value)
