import hashlib
import logging
import os
import re
import time
from typing import Any

import httpx

from app.core.exceptions import ClientInputError, UpstreamError
from app.core.logging import LOG_BODY_MAX, redact


LOG_SAMPLE_RATE = float(os.getenv("LOG_SAMPLE_RATE", "1.0"))

_PATH_ID = re.compile(r"[\w-]+", re.ASCII)


def path_id(value: Any) -> str:
    """
    ID для подстановки в путь запроса. Допускаются только буквы, цифры, "_" и "-":
    "." / ".." / "?" / "/" поменяли бы сам адрес запроса.
    """
    text = "" if value is None else str(value).strip()
    if not _PATH_ID.fullmatch(text):
        raise ClientInputError(f"Некорректный идентификатор: {value!r}")
    return text


def _error_body(response: httpx.Response):
    """Тело ответа с ошибкой: JSON, если получится, иначе текст."""
    try:
        return response.json()
    except ValueError:
        return response.text or None


class BaseApiClient:
    """
    Обёртка над httpx.AsyncClient: один запрос без повторов, подробное логирование,
    перевод ошибок транспорта и HTTP-статусов в UpstreamError.
    """

    SYSTEM = "HTTP"

    def __init__(self, base_url: str, *, timeout: float = 30.0,
                 auth: httpx.Auth | tuple[str, str] | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout, auth=auth, transport=transport)
        self._logger = logging.getLogger("http")

    def _maybe_hash(self, body: str) -> str:
        return hashlib.sha256(body.encode("utf-8", "ignore")).hexdigest()[:16]

    def _preview(self, body_text: str) -> str:
        if LOG_SAMPLE_RATE >= 1.0:
            return body_text[:LOG_BODY_MAX]
        return f"[sampled hash:{self._maybe_hash(body_text)}]"

    async def _request(self, method: str, url: str, **kwargs):
        t0 = time.perf_counter()
        req_body = kwargs.get("content") or kwargs.get("data") or kwargs.get("json") or ""
        headers = redact(dict(kwargs.get("headers") or {}))
        self._logger.debug("HTTP %s %s", method, url,
                           extra={"extra": {"system": self.SYSTEM, "method": method, "url": url,
                                            "headers": headers, "body_preview": str(redact(req_body))[:LOG_BODY_MAX]}})

        try:
            response: httpx.Response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            dt = round((time.perf_counter() - t0) * 1000)
            self._logger.error("HTTP FAIL %s %s: %s", method, url, repr(e),
                               extra={"extra": {"system": self.SYSTEM, "method": method, "url": url,
                                                "elapsed_ms": dt}}, exc_info=True)
            raise UpstreamError(f"{self.SYSTEM}: сетевая ошибка {method} {url}: {e!r}") from e

        dt = round((time.perf_counter() - t0) * 1000)
        body_text = response.text or ""
        self._logger.info("HTTP %s %s -> %d in %dms", method, url, response.status_code, dt,
                          extra={"extra": {"system": self.SYSTEM, "method": method, "url": url,
                                           "status_code": response.status_code, "elapsed_ms": dt,
                                           "response_preview": self._preview(body_text),
                                           "response_hash": self._maybe_hash(body_text)}})

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"{self.SYSTEM}: {method} {url} вернул {response.status_code}",
                body=_error_body(response),
                upstream_status=response.status_code,
            ) from e
        return self._parse_response(response)

    def _parse_response(self, response: httpx.Response):
        """Разбирает JSON-ответ; пустой ответ -> {}, не-JSON -> UpstreamError."""
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{self.SYSTEM}: некорректный JSON в ответе {response.request.method} {response.request.url}",
                body=response.text[:LOG_BODY_MAX],
                upstream_status=response.status_code,
            ) from e

    async def close(self):
        await self.client.aclose()
