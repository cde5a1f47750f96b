from typing import Any

from pydantic import AliasChoices, BaseModel, Field


# --- Вспомогательные модели ---
class MonetaryAmount(BaseModel):
    value: str  # "123.45": строка с двумя знаками после точки
    currency: str = "RUB"


# --- Модели для платежа "Электронный сертификат" ---
class Article(BaseModel):
    """Товарная позиция articles[], обязательна для оплаты ЭС."""

    article_number: int
    tru_code: str
    article_code: str
    article_name: str
    quantity: int | float
    price: MonetaryAmount


class ReceiptCustomer(BaseModel):
    email: str | None = None
    phone: str | None = None


class ReceiptItem(BaseModel):
    description: str
    quantity: int | float
    amount: MonetaryAmount  # цена за единицу, не сумма по строке
    vat_code: int
    payment_mode: str | None = None
    payment_subject: str | None = None


class Receipt(BaseModel):
    """Чек по 54-ФЗ."""

    customer: ReceiptCustomer = Field(default_factory=ReceiptCustomer)
    items: list[ReceiptItem]
    tax_system_code: int | None = None


class PaymentMethodData(BaseModel):
    type: str = "electronic_certificate"


class Confirmation(BaseModel):
    type: str = "redirect"
    return_url: str


class PaymentRequest(BaseModel):
    """Тело POST /payments."""

    amount: MonetaryAmount
    payment_method_data: PaymentMethodData = Field(default_factory=PaymentMethodData)
    articles: list[Article]
    receipt: Receipt | None = None
    confirmation: Confirmation
    capture: bool = True
    description: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class PaymentConfirmation(BaseModel):
    type: str | None = None
    confirmation_url: str | None = None


class PaymentResponse(BaseModel):
    """Ответ ЮKassa на создание/запрос платежа (только нужные нам поля)."""

    id: str | None = None
    status: str | None = None
    paid: bool | None = None
    amount: MonetaryAmount | None = None
    confirmation: PaymentConfirmation | None = None

    model_config = {"extra": "allow"}

    @property
    def confirmation_url(self) -> str | None:
        return self.confirmation.confirmation_url if self.confirmation else None


# --- Входящий запрос /create-payment (без InSales) ---
class DirectPaymentBody(BaseModel):
    amount: str | float | None = None
    articles: list[Article] = Field(default_factory=list, validation_alias=AliasChoices("articles", "items"))
    return_url: str
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    receipt: Receipt | None = None


class DirectPaymentResult(BaseModel):
    id: str | None = None
    status: str | None = None
    confirmation_url: str
