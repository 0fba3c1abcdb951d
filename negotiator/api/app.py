"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from negotiator.api.routes_calls import router as calls_router
from negotiator.api.routes_journey import router as journey_router
from negotiator.api.routes_payments import router as payments_router
from negotiator.container import Services, build_services
from negotiator.errors import NegotiatorError

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    services = services or build_services()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.services.simulator.shutdown()
        logger.info("Simulated calls stopped")

    app = FastAPI(title=services.config.app_name, version="1.0.0", lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(NegotiatorError)
    async def negotiator_error_handler(request: Request, exc: NegotiatorError) -> JSONResponse:
        logger.warning("%s %s -> %d: %s", request.method, request.url.path,
                       exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    app.include_router(journey_router, prefix="/api")
    app.include_router(calls_router, prefix="/api/calls")
    app.include_router(payments_router, prefix="/api/payments")
    return app
