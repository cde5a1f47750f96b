from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


# --- Каноническая форма заказа InSales (после нормализации) ---
class VariantRef(BaseModel):
    """Вложенный объект variant в строке заказа (дублирует sku/barcode)."""

    sku: str | None = None
    barcode: str | None = None


class LineItem(BaseModel):
    title: str = ""
    quantity: int | float = 1
    unit_price: Decimal = Decimal("0")
    sku: str | None = None
    barcode: str | None = None
    product_id: str | None = None
    variant_id: str | None = None
    variant: VariantRef | None = None

    # Сырые значения, только для диагностики (/test-order)
    raw_quantity: Any = None
    raw_price: Any = None

    @property
    def variant_sku(self) -> str | None:
        return self.variant.sku if self.variant else None

    @property
    def variant_barcode(self) -> str | None:
        return self.variant.barcode if self.variant else None

    @property
    def can_lookup_variant(self) -> bool:
        return bool(self.product_id and self.variant_id)


class ContactCandidates(BaseModel):
    """Кандидаты в контакты покупателя в порядке приоритета."""

    emails: list[str] = Field(default_factory=list)
    phones: list[str] = Field(default_factory=list)


class Order(BaseModel):
    id: str
    number: str | None = None
    line_items: list[LineItem] = Field(default_factory=list)
    contacts: ContactCandidates = Field(default_factory=ContactCandidates)

    @property
    def display_number(self) -> str:
        return self.number or self.id


# --- Результат поиска варианта в карточке товара ---
class VariantLookup(BaseModel):
    found: bool
    sku: str | None = None
    barcode: str | None = None

    @classmethod
    def not_found(cls) -> "VariantLookup":
        return cls(found=False)
