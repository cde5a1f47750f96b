import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Awaitable, Callable, Iterable

from app.core.config import TruPolicy
from app.core.exceptions import ClientInputError
from app.schemas.insales import LineItem, Order, VariantLookup
from app.schemas.yookassa import Article, MonetaryAmount

logger = logging.getLogger(__name__)

VariantFinder = Callable[[str, str], Awaitable[VariantLookup]]

CENT = Decimal("0.01")
DEFAULT_ARTICLE_NAME = "Товар"


def money(value: Any) -> str:
    """
    Сумма строкой с ровно двумя знаками: 100 -> "100.00", 1.005 -> "1.01".

    Нечисловое значение считается нулём. Число, которое нельзя округлить
    до копеек (NaN, Infinity, больше 28 значащих цифр), это ClientInputError.
    """
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value or 0))
    except ArithmeticError:
        d = Decimal("0")
    if not d.is_finite():
        raise ClientInputError(f"Некорректная цена: {value}")
    try:
        return str(d.quantize(CENT, rounding=ROUND_HALF_UP))
    except ArithmeticError as e:
        raise ClientInputError(f"Некорректная цена: {value}") from e


def _first(values: Iterable[str | None]) -> str | None:
    return next((v for v in values if v), None)


async def resolve_tru(line: LineItem, find_variant: VariantFinder | None,
                      policy: TruPolicy = TruPolicy.SKU_FIRST) -> str | None:
    """
    TRU-код строки заказа.

    sku-first:    sku -> variant.sku -> (карточка товара: sku, barcode) -> barcode -> variant.barcode
    barcode-only: barcode -> variant.barcode -> (карточка товара: barcode)

    Карточка товара запрашивается только если в строке есть и product_id, и variant_id.
    """
    tru = _first(_primary_fields(line, policy))
    if tru:
        return tru

    if find_variant is not None and line.can_lookup_variant:
        found = await find_variant(line.product_id, line.variant_id)
        if found.found:
            if policy is TruPolicy.BARCODE_ONLY:
                tru = found.barcode
            else:
                tru = found.sku or found.barcode
        if tru:
            return tru

    if policy is TruPolicy.BARCODE_ONLY:
        return None
    return _first((line.barcode, line.variant_barcode))


def _primary_fields(line: LineItem, policy: TruPolicy) -> tuple[str | None, ...]:
    if policy is TruPolicy.BARCODE_ONLY:
        return line.barcode, line.variant_barcode
    return line.sku, line.variant_sku


def needs_variant_lookup(line: LineItem, policy: TruPolicy = TruPolicy.SKU_FIRST) -> bool:
    """Будет ли для строки запрошена карточка товара."""
    return line.can_lookup_variant and not _first(_primary_fields(line, policy))


def article_code(line: LineItem) -> str:
    return str(line.variant_id or line.product_id or line.sku or "")


async def build_articles(order: Order, find_variant: VariantFinder | None, *,
                         policy: TruPolicy = TruPolicy.SKU_FIRST, currency: str = "RUB") -> list[Article]:
    """Строки заказа -> articles[] ЮKassa. Строки без TRU пропускаются, нумерация сплошная."""
    articles: list[Article] = []
    for position, line in enumerate(order.line_items, start=1):
        tru = await resolve_tru(line, find_variant, policy)
        if not tru:
            logger.debug("drop:no_tru", extra={"extra": {"position": position, "title": line.title}})
            continue

        articles.append(Article(
            article_number=len(articles) + 1,
            tru_code=str(tru),
            article_code=article_code(line),
            article_name=line.title or DEFAULT_ARTICLE_NAME,
            quantity=line.quantity,
            price=MonetaryAmount(value=money(line.unit_price), currency=currency),
        ))

    logger.info("Articles summary", extra={"extra": {
        "total": len(order.line_items), "kept": len(articles),
        "dropped_no_tru": len(order.line_items) - len(articles), "policy": policy.value}})
    return articles


def amount_from_articles(articles: Iterable[Article]) -> str:
    total = sum((Decimal(a.price.value) * Decimal(str(a.quantity)) for a in articles), Decimal("0"))
    return money(total)
