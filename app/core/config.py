from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TruPolicy(str, Enum):
    """Порядок поиска TRU-кода для строки заказа."""

    SKU_FIRST = "sku-first"
    BARCODE_ONLY = "barcode-only"


class ReceiptPolicy(str, Enum):
    """Что делать с чеком 54-ФЗ при создании платежа."""

    REQUIRED = "required"        # нет email/телефона -> платёж не создаём
    BEST_EFFORT = "best-effort"  # чек уходит с тем, что нашли (customer может быть пустым)
    DISABLED = "disabled"        # чек не передаём


class Settings(BaseSettings):
    # Настройки приложения
    PROJECT_NAME: str = "InSales → YooKassa ES bridge"
    DEBUG: bool = False
    PORT: int = 3000

    # ЮKassa: shopId и секретный ключ (test_* или live_*)
    SHOP_ID: str | None = None
    SECRET_KEY: str | None = None
    YOOKASSA_API_URL: str = "https://api.yookassa.ru/v3/"
    YOOKASSA_TIMEOUT: float = 20.0

    # InSales: myshop-xxxx.myinsales.ru + ключ/пароль API
    INS_DOMAIN: str | None = None
    INS_API_KEY: str | None = None
    INS_API_PASSWORD: str | None = None
    INSALES_TIMEOUT: float = 15.0

    CURRENCY: str = "RUB"

    # Чек: 1=20%, 2=10%, 3=0%, 4=без НДС, 5=20/120, 6=10/110
    RECEIPT_VAT_CODE: int = Field(default=4, ge=1, le=6)
    # СНО: 0 = не передавать, 1..6 = код системы налогообложения
    RECEIPT_TAX_SYSTEM: int = Field(default=0, ge=0, le=6)
    RECEIPT_PAYMENT_MODE: str | None = None
    RECEIPT_PAYMENT_SUBJECT: str | None = None
    RECEIPT_POLICY: ReceiptPolicy = ReceiptPolicy.REQUIRED

    TRU_POLICY: TruPolicy = TruPolicy.SKU_FIRST

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def insales_base_url(self) -> str:
        domain = (self.INS_DOMAIN or "").strip().rstrip("/")
        if domain.startswith(("http://", "https://")):
            return domain
        return f"https://{domain}"

    @property
    def default_return_url(self) -> str:
        return f"{self.insales_base_url}/account/orders"

    @property
    def tax_system_code(self) -> int | None:
        """Код СНО для чека или None, если его передавать не нужно."""
        if 1 <= self.RECEIPT_TAX_SYSTEM <= 6:
            return self.RECEIPT_TAX_SYSTEM
        return None

    def presence(self) -> dict[str, bool]:
        return {
            "SHOP_ID": bool(self.SHOP_ID),
            "SECRET_KEY": bool(self.SECRET_KEY),
            "INS_DOMAIN": bool(self.INS_DOMAIN),
            "INS_API_KEY": bool(self.INS_API_KEY),
            "INS_API_PASSWORD": bool(self.INS_API_PASSWORD),
        }

    def missing_required(self) -> list[str]:
        return [name for name, present in self.presence().items() if not present]
