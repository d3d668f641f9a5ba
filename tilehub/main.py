from __future__ import annotations

from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.rest import router as rest_router
from .container import build_container
from .errors import (
    ForbiddenError,
    NotFoundError,
    OrderPlacementError,
    StoreError,
    UnauthorizedError,
    ValidationError,
)
from .logging import ServiceLogger, setup_logging
from .settings import Settings, load_settings


def create_app(settings: Settings) -> FastAPI:
    setup_logging(settings.log_level)
    logger = ServiceLogger("api")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        description="B2B tile ordering: catalog reads and coverage-aware order intake.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    container = build_container(settings)
    app.state.container = container

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        if container.db:
            container.db.engine.dispose()

    @app.exception_handler(NotFoundError)
    async def handle_not_found(_, __):
        return JSONResponse(status_code=404, content={"detail": "Not found"})

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(_, __):
        return JSONResponse(status_code=401, content={"detail": "Unauthorized"})

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(_, exc: ForbiddenError):
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def handle_validation(_, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_, exc: RequestValidationError):
        # rejected inputs may be non-finite floats, which JSON cannot carry
        errors = [{k: v for k, v in error.items() if k != "input"} for error in exc.errors()]
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(errors)})

    @app.exception_handler(OrderPlacementError)
    async def handle_order_placement(_, exc: OrderPlacementError):
        return JSONResponse(
            status_code=500,
            content={
                "error": "Error creating order",
                "details": exc.detail,
                "retry": exc.retry,
                "order_id": exc.order_id,
            },
        )

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError):
        logger.error("Store failure", path=request.url.path, detail=exc.detail)
        return JSONResponse(
            status_code=500,
            content={"error": "Store unavailable", "details": exc.detail, "retry": True},
        )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header, "") or container.id_provider.new_id()
        response = await call_next(request)
        response.headers[settings.request_id_header] = request_id
        return response

    app.include_router(rest_router)
    app.include_router(rest_router, prefix="/v1")

    return app


def run(settings: Optional[Settings] = None) -> None:
    settings = settings or load_settings()
    uvicorn.run("tilehub.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


app = create_app(load_settings())


if __name__ == "__main__":
    run()
