"""
JSON-логи одной строкой на событие.

К каждой записи добавляются run_id (запуск процесса), request_id (HTTP-запрос)
и order_id (заказ, с которым сейчас работаем). Значения из extra проходят
через redact(): секреты маскируются, длинные строки обрезаются.
"""
import json
import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict

run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
order_id_var: ContextVar[str | None] = ContextVar("order_id", default=None)

REDACT_KEYS = {k.strip().lower() for k in os.getenv(
    "LOG_REDACT_KEYS", "password,authorization,apikey,x-api-key,token,secret_key,ins_api_password"
).split(",") if k.strip()}
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").lower()
LOG_BODY_MAX = int(os.getenv("LOG_BODY_MAX", "2000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

MASK = "***"


def clip(text: str, limit: int = LOG_BODY_MAX) -> str:
    """Обрезает строку для лога, дописывая сколько символов отброшено."""
    if len(text) <= limit:
        return text
    return text[:limit] + f"...(+{len(text) - limit} chars)"


def redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: (MASK if str(k).lower() in REDACT_KEYS else redact(v)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    if isinstance(value, str):
        return clip(value)
    return value


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": round(time.time() * 1000),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": run_id_var.get(),
            "request_id": request_id_var.get(),
            "order_id": order_id_var.get(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            entry.update(redact(extra))
        # Decimal и прочие не-JSON типы пишем строкой
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None):
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))
    handler = logging.StreamHandler(sys.stdout)
    if LOG_FORMAT == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root.addHandler(handler)


def set_run_id(value: str | None = None) -> str:
    rid = value or str(uuid.uuid4())
    run_id_var.set(rid)
    return rid


def set_request_id(value: str | None) -> str | None:
    request_id_var.set(value)
    return value


def set_order_id(value: Any) -> str | None:
    """ID заказа InSales приходит и числом, и строкой; в лог пишем строку."""
    oid = None if value is None else str(value)
    order_id_var.set(oid)
    return oid
