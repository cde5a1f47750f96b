from collections.abc import AsyncIterator

from fastapi import Depends, Request

from app.core.config import Settings
from app.integrations.insales_client import InSalesApiClient
from app.integrations.yookassa_client import YooKassaApiClient
from app.services.payment_service import PaymentService


def get_settings(request: Request) -> Settings:
    """Настройки, созданные один раз в create_app()."""
    return request.app.state.settings


async def get_insales_client(settings: Settings = Depends(get_settings)) -> AsyncIterator[InSalesApiClient]:
    client = InSalesApiClient(settings)
    try:
        yield client
    finally:
        await client.close()


async def get_yookassa_client(settings: Settings = Depends(get_settings)) -> AsyncIterator[YooKassaApiClient]:
    client = YooKassaApiClient(settings)
    try:
        yield client
    finally:
        await client.close()


def get_payment_service(
    settings: Settings = Depends(get_settings),
    insales: InSalesApiClient = Depends(get_insales_client),
    yookassa: YooKassaApiClient = Depends(get_yookassa_client),
) -> PaymentService:
    return PaymentService(settings=settings, insales=insales, yookassa=yookassa)
