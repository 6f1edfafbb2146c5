"""FastAPI application: routers plus mapping of ledger errors to HTTP responses."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from stockledger.api.build_routes import router as build_router
from stockledger.api.forecast_routes import router as forecast_router
from stockledger.api.inventory_routes import router as inventory_router
from stockledger.api.transaction_routes import router as transaction_router
from stockledger.db import init_db
from stockledger.errors import BuildGateError, LedgerValidationError, NotFoundError
from stockledger.utils.logger import get_logger
from stockledger.utils.tracing import init_tracing, shutdown_tracing

logger = get_logger("stockledger.api")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    init_db()
    init_tracing()
    yield
    shutdown_tracing()


async def _validation_error(request: Request, exc: LedgerValidationError) -> JSONResponse:
    logger.info("api.validation_error", path=request.url.path, code=exc.code)
    return JSONResponse(status_code=400, content=exc.to_dict())


async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content=exc.to_dict())


async def _gate_refused(request: Request, exc: BuildGateError) -> JSONResponse:
    logger.info("api.build_gate", path=request.url.path, code=exc.code, items=len(exc.items))
    return JSONResponse(status_code=409, content=exc.to_dict())


async def _schema_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "INVALID_INPUT", "details": exc.errors(include_url=False, include_context=False, include_input=False)},
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Stock Ledger", version="0.1.0", lifespan=_lifespan)
    app.add_exception_handler(LedgerValidationError, _validation_error)
    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(BuildGateError, _gate_refused)
    app.add_exception_handler(ValidationError, _schema_error)

    app.include_router(inventory_router)
    app.include_router(transaction_router)
    app.include_router(build_router)
    app.include_router(forecast_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
