from __future__ import annotations

import logging
import os
import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from common.eventbus.config import is_consumer_enabled
from common.eventbus.kafka import close_kafka_event_bus
from common.logger import setup_logger
from common.middleware.request_trace import RequestTraceMiddleware
from common.mongo.client import get_database

from .api.health import router as health_router
from .api.v1 import api_router
from .errors import DataUnavailable, LedgerError
from .event_handlers.activity_handler import run_activity_consumer


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - framework hook
    """활동 이벤트 컨슈머 스레드를 관리한다.

    KAFKA_CONSUMER_ENABLED=0 이면 API 만 기동한다.
    """

    stop_flag = [False]
    consumer_thread: threading.Thread | None = None

    if is_consumer_enabled():
        consumer_thread = threading.Thread(
            target=run_activity_consumer,
            args=(stop_flag, get_database()),
            name="activity-consumer",
            daemon=True,
        )
        consumer_thread.start()

    try:
        yield
    finally:
        stop_flag[0] = True
        if consumer_thread is not None:
            consumer_thread.join(timeout=10.0)
        close_kafka_event_bus()


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """LedgerError 를 {"detail": {"code", "message", ...}} 응답으로 변환한다."""

    if isinstance(exc, DataUnavailable):
        logger.error("ledger data unavailable: %s", exc.message)
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.to_detail()})


def create_app() -> FastAPI:
    setup_logger(name="ledger-service")
    app = FastAPI(
        title="Reward Ledger Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    # 공통 Request/Span ID 로그 미들웨어
    app.add_middleware(RequestTraceMiddleware)
    app.add_exception_handler(LedgerError, ledger_error_handler)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def main() -> None:
    import uvicorn

    port = int(os.getenv("LEDGER_SERVICE_PORT", "8010"))
    uvicorn.run(
        "ledger_service.app.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
