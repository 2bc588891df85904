import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import config, db, errors
from .deps import get_correlation_id
from .metrics import MetricsMiddleware, metrics_endpoint
from .routers import addresses, admin, auth, business, delivery, orders, products, users


# ----- Logging -----
class CorrelationIdFilter(logging.Filter):
    """Library log records carry no correlation id; give them a placeholder."""

    def filter(self, record):
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


logging.basicConfig(
    level=logging.INFO,
    format=f"%(asctime)s [%(levelname)s] [{config.SERVICE_NAME}] [cid=%(correlation_id)s] %(message)s",
)
for handler in logging.getLogger().handlers:
    handler.addFilter(CorrelationIdFilter())
logger = logging.getLogger(config.SERVICE_NAME)


# ----- Init -----
@asynccontextmanager
async def lifespan(app: FastAPI):
    db.init_db()
    logger.info("Database ready")
    yield


app = FastAPI(title=config.SERVICE_NAME, version="v1", lifespan=lifespan)
app.add_middleware(MetricsMiddleware, service_name=config.SERVICE_NAME)


# ----- Error mapping -----
def _cid(request: Request) -> str:
    return get_correlation_id(request, request.headers.get("x-correlation-id"))


def _error_response(request: Request, error: errors.ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"detail": {"code": error.code, "message": error.message, "correlationId": _cid(request)}},
    )


@app.exception_handler(errors.ServiceError)
async def service_error_handler(request: Request, exc: errors.ServiceError):
    return _error_response(request, exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{where}: {first.get('msg', 'invalid value')}" if where else first.get("msg", "Invalid request")
    return _error_response(request, errors.ValidationError(message))


@app.exception_handler(SQLAlchemyError)
@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    cid = _cid(request)
    logger.error(f"Unhandled {type(exc).__name__}", exc_info=exc, extra={"correlation_id": cid})
    return JSONResponse(
        status_code=500,
        content={"detail": {"code": errors.Internal.code, "message": errors.Internal.default_message, "correlationId": cid}},
    )


# ----- Infra Endpoints -----
@app.get("/")
def root():
    return {"service": config.SERVICE_NAME, "status": "ok", "docs": "/docs"}


@app.get("/health")
def health():
    return {"status": "ok", "service": config.SERVICE_NAME}


@app.get("/metrics")
def metrics():
    return metrics_endpoint()


# ----- API -----
for router in (
    auth.router,
    users.router,
    addresses.router,
    products.router,
    orders.router,
    business.router,
    delivery.router,
    admin.router,
):
    app.include_router(router)
