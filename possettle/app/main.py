from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import time
import uuid
from datetime import datetime, timezone
from .routers.pricing import router as pricing_router
from .routers.discounts import router as discounts_router
from .routers.transactions import router as transactions_router
from .routers.refunds import router as refunds_router
from .routers.exchanges import router as exchanges_router
from .config import settings
from .errors import CriticalRollbackFailure, SettlementError
from .logs import json_log

app = FastAPI(title="POS Settlement API", version=settings.api_version)
STARTED_AT_UTC = datetime.now(timezone.utc)

# Paths polled by load balancers; not worth a log line each.
QUIET_PATHS = {"/health"}


def _current_request_id(req: Request) -> str:
    return getattr(req.state, "request_id", "") or req.headers.get("x-request-id") or "startup"


def _error_response(status_code: int, detail: str, *, debug=None, **extra) -> JSONResponse:
    body = {"detail": detail, **extra}
    if debug is not None and settings.expose_errors:
        body["error"] = debug
    return JSONResponse(status_code=status_code, content=body)


def _request_fields(req: Request) -> dict:
    return {
        "request_id": _current_request_id(req),
        "method": req.method,
        "path": req.url.path,
    }


@app.exception_handler(SettlementError)
def _settlement_error(req: Request, exc: SettlementError):
    if isinstance(exc, CriticalRollbackFailure):
        json_log(
            "critical",
            "http.request.rollback_failed",
            request_id=_current_request_id(req),
            transaction_id=exc.transaction_id,
            step=exc.step,
            error=exc.error,
        )
        return _error_response(exc.status_code, exc.detail, transaction_id=exc.transaction_id)
    return _error_response(exc.status_code, exc.detail)


@app.exception_handler(RequestValidationError)
def _request_validation_error(_req: Request, exc: RequestValidationError):
    return _error_response(422, "validation failed", debug=exc.errors())


@app.exception_handler(Exception)
def _unhandled_exception(req: Request, exc: Exception):
    fields = _request_fields(req)
    json_log("error", "http.request.unhandled", **fields, error=str(exc))
    return _error_response(500, "internal error", debug=str(exc), request_id=fields["request_id"])


@app.middleware("http")
async def _request_logging(request: Request, call_next):
    request.state.request_id = (request.headers.get("X-Request-Id") or "").strip() or uuid.uuid4().hex
    fields = _request_fields(request)
    fields["client_ip"] = request.client.host if request.client else None
    t0 = time.perf_counter()

    def elapsed_ms() -> int:
        return int((time.perf_counter() - t0) * 1000)

    try:
        response = await call_next(request)
    except Exception as exc:
        json_log("error", "http.request.error", **fields, duration_ms=elapsed_ms(), error=str(exc))
        raise

    response.headers["X-Request-Id"] = fields["request_id"]
    if fields["path"] not in QUIET_PATHS:
        json_log("info", "http.request", **fields, status_code=response.status_code, duration_ms=elapsed_ms())
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-User-Id", "X-Request-Id"],
    expose_headers=["X-Request-Id"],
)
for _router in (pricing_router, discounts_router, transactions_router, refunds_router, exchanges_router):
    app.include_router(_router)


@app.get("/health")
def health(req: Request):
    return {
        "status": "ok",
        "env": settings.env,
        "service": "possettle",
        "store_backend": settings.store_backend,
        "request_id": _current_request_id(req),
    }


@app.get("/meta")
def meta():
    return {
        "service": "possettle",
        "version": settings.api_version,
        "env": settings.env,
        "uptime_seconds": int((datetime.now(timezone.utc) - STARTED_AT_UTC).total_seconds()),
        "started_at": STARTED_AT_UTC.isoformat(),
    }
