from unittest.mock import AsyncMock

import pytest

from app.core.config import TruPolicy
from app.core.exceptions import ClientInputError
from app.integrations.order_normalizer import normalize_order
from app.schemas.insales import VariantLookup
from app.schemas.yookassa import Article, MonetaryAmount
from app.services.articles import amount_from_articles, build_articles, money, needs_variant_lookup, resolve_tru


def _line(**fields):
    return normalize_order({"id": 1, "line_items": [fields]}).line_items[0]


@pytest.mark.parametrize("value,expected", [
    (100, "100.00"), ("3.5", "3.50"), (None, "0.00"), (0, "0.00"), ("1.005", "1.01"), ("abc", "0.00"),
])
def test_money(value, expected):
    assert money(value) == expected


@pytest.mark.parametrize("value", ["1e30", "Infinity", "NaN"])
def test_money_rejects_unroundable_values(value):
    with pytest.raises(ClientInputError):
        money(value)


class TestResolveTru:
    @pytest.mark.asyncio
    async def test_own_sku_wins_without_lookup(self):
        finder = AsyncMock()
        line = _line(sku="SKU1", barcode="460", product_id=1, variant_id=2)
        assert await resolve_tru(line, finder) == "SKU1"
        finder.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_variant_sku_before_lookup(self):
        finder = AsyncMock()
        line = _line(variant={"sku": "VSKU"}, product_id=1, variant_id=2)
        assert await resolve_tru(line, finder) == "VSKU"
        finder.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_sku_then_lookup_barcode(self):
        line = _line(barcode="OWN-BARCODE", product_id=1, variant_id=2)

        finder = AsyncMock(return_value=VariantLookup(found=True, sku="LOOKUP-SKU", barcode="LB"))
        assert await resolve_tru(line, finder) == "LOOKUP-SKU"
        finder.assert_awaited_once_with("1", "2")

        finder = AsyncMock(return_value=VariantLookup(found=True, sku=None, barcode="LB"))
        assert await resolve_tru(line, finder) == "LB"

    @pytest.mark.asyncio
    async def test_falls_back_to_own_then_variant_barcode(self):
        finder = AsyncMock(return_value=VariantLookup.not_found())
        assert await resolve_tru(_line(barcode="B1", product_id=1, variant_id=2), finder) == "B1"
        assert await resolve_tru(_line(variant={"barcode": "VB"}, product_id=1, variant_id=2), finder) == "VB"

    @pytest.mark.asyncio
    async def test_lookup_requires_both_ids(self):
        finder = AsyncMock()
        assert await resolve_tru(_line(product_id=1), finder) is None
        assert await resolve_tru(_line(variant_id=2), finder) is None
        finder.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_barcode_only_policy_ignores_sku(self):
        finder = AsyncMock(return_value=VariantLookup(found=True, sku="LOOKUP-SKU", barcode=None))
        line = _line(sku="SKU1", variant={"sku": "VSKU"}, product_id=1, variant_id=2)
        assert await resolve_tru(line, finder, TruPolicy.BARCODE_ONLY) is None

        line = _line(sku="SKU1", variant={"barcode": "VB"})
        assert await resolve_tru(line, finder, TruPolicy.BARCODE_ONLY) == "VB"

    def test_needs_variant_lookup(self):
        assert needs_variant_lookup(_line(product_id=1, variant_id=2)) is True
        assert needs_variant_lookup(_line(sku="S", product_id=1, variant_id=2)) is False
        assert needs_variant_lookup(_line(sku="S", product_id=1, variant_id=2), TruPolicy.BARCODE_ONLY) is True


class TestBuildArticles:
    @pytest.mark.asyncio
    async def test_drops_lines_without_tru_and_numbers_densely(self):
        order = normalize_order({"id": 1, "line_items": [
            {"title": "No code"},
            {"title": "A", "sku": "S-A", "price": 10, "quantity": 2},
            {"title": "Also no code", "product_id": 5, "variant_id": 6},
            {"title": "B", "barcode": "4600", "sale_price": "3.5", "price": 99},
        ]})
        finder = AsyncMock(return_value=VariantLookup.not_found())

        articles = await build_articles(order, finder)

        assert [a.article_number for a in articles] == [1, 2]
        assert [a.tru_code for a in articles] == ["S-A", "4600"]
        assert [a.price.value for a in articles] == ["10.00", "3.50"]
        finder.assert_awaited_once_with("5", "6")

    @pytest.mark.asyncio
    async def test_article_fields(self):
        order = normalize_order({"id": 1, "line_items": [
            {"sku": "S", "product_id": 11, "variant_id": 22, "quantity": None},
            {"title": "P", "sku": "S2", "product_id": 11},
            {"title": "Q", "sku": "S3"},
        ]})
        articles = await build_articles(order, None, currency="RUB")

        assert articles[0].article_code == "22"
        assert articles[0].article_name == "Товар"
        assert articles[0].quantity == 1
        assert articles[0].price == MonetaryAmount(value="0.00", currency="RUB")
        assert articles[1].article_code == "11"
        assert articles[2].article_code == "S3"

    @pytest.mark.asyncio
    async def test_no_lines(self):
        assert await build_articles(normalize_order({"id": 1}), None) == []

    @pytest.mark.asyncio
    async def test_price_beyond_decimal_precision_is_client_error(self):
        order = normalize_order({"id": 1, "line_items": [{"sku": "S", "price": "1e30"}]})
        with pytest.raises(ClientInputError):
            await build_articles(order, None)


def _article(n, price, qty):
    return Article(article_number=n, tru_code=f"T{n}", article_code="", article_name="x",
                   quantity=qty, price=MonetaryAmount(value=price))


def test_amount_from_articles():
    assert amount_from_articles([_article(1, "10.00", 2), _article(2, "3.50", 1)]) == "23.50"


def test_amount_fractional_quantity():
    assert amount_from_articles([_article(1, "99.99", 1.5)]) == "149.99"


def test_amount_of_nothing():
    assert amount_from_articles([]) == "0.00"
