import pytest

from app.core.config import Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Переменные окружения машины не должны влиять на Settings в тестах."""
    for name in Settings.model_fields:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        SHOP_ID="1003537",
        SECRET_KEY="test_secret",
        INS_DOMAIN="myshop-test.myinsales.ru",
        INS_API_KEY="ins-key",
        INS_API_PASSWORD="ins-password",
    )


@pytest.fixture
def cap_order() -> dict:
    return {
        "id": 1,
        "number": "A1",
        "line_items": [{"title": "Cap", "sku": "SKU1", "price": 100, "quantity": 2}],
        "email": "x@y.com",
    }
