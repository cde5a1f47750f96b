import logging
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from app.core.config import Settings
from app.core.exceptions import register_exception_handlers
from app.core.logging import configure_logging, set_order_id, set_request_id, set_run_id
from app.api.v1.endpoints import diagnostics, payments

logger = logging.getLogger(__name__)

ROUTES_HINT = (
    "YooKassa ES: POST /insales/start | GET /pay-by-es?order_id=...&return_url=... "
    "| GET /test-order/:id | GET /env-check"
)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()

    missing = settings.missing_required()
    if missing:
        logger.warning("Проверь .env: не хватает переменных окружения", extra={"extra": {"missing": missing}})

    app = FastAPI(title=settings.PROJECT_NAME, version="1.0.0", debug=settings.DEBUG)
    app.state.settings = settings

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = set_request_id(request.headers.get("x-request-id") or str(uuid4()))
        set_order_id(None)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/", tags=["Health Check"], response_class=PlainTextResponse)
    def read_root():
        return ROUTES_HINT

    register_exception_handlers(app)
    app.include_router(payments.router, tags=["Payments"])
    app.include_router(diagnostics.router, tags=["Diagnostics"])
    return app


# Initialize logging before anything else
configure_logging()
set_run_id()  # Set unique run ID for this application instance

app = create_app()


def run() -> None:
    settings: Settings = app.state.settings
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
