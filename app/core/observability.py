import functools
import inspect
import logging
import time
from typing import Callable

from .logging import redact

logger = logging.getLogger("steps")

PREVIEW_MAX = 200


def _elapsed_ms(t0: float) -> int:
    return round((time.perf_counter() - t0) * 1000)


def _enter(step: str, kwargs: dict) -> float:
    logger.debug("ENTER %s", step, extra={"extra": {"step": step, "args": redact(kwargs)}})
    return time.perf_counter()


def _exit(step: str, t0: float, result) -> None:
    logger.info("EXIT %s", step, extra={"extra": {
        "step": step, "elapsed_ms": _elapsed_ms(t0), "result_preview": str(result)[:PREVIEW_MAX]}})


def _fail(step: str, t0: float, exc: Exception) -> None:
    # Ожидаемые ошибки платёжного сценария (400/502) не требуют трейсбека
    expected = getattr(exc, "status_code", 500) < 500
    log = logger.warning if expected else logger.error
    log("ERROR %s: %s", step, exc, extra={"extra": {"step": step, "elapsed_ms": _elapsed_ms(t0)}},
        exc_info=not expected)


def log_step(step: str):
    """
    Логирует вход, выход, тайминги и исключения шага.
    Пример: @log_step("payment.map_articles")
    """
    def decorator(fn: Callable):
        if inspect.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def awrapped(*args, **kwargs):
                t0 = _enter(step, kwargs)
                try:
                    result = await fn(*args, **kwargs)
                except Exception as e:
                    _fail(step, t0, e)
                    raise
                _exit(step, t0, result)
                return result
            return awrapped

        @functools.wraps(fn)
        def wrapped(*args, **kwargs):
            t0 = _enter(step, kwargs)
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                _fail(step, t0, e)
                raise
            _exit(step, t0, result)
            return result
        return wrapped

    return decorator
