import uvicorn
import time
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from gateway.api.clone import router as clone_router
from gateway.api.test import router as test_router
from gateway.api.build import router as build_router
from gateway.api.cleanup import router as cleanup_router
from gateway.core.config import GatewaySettings, load_settings
from gateway.core.errors import GatewayError
from gateway.models.responses import ErrorResponse
from gateway.services.workspace_service import WorkspaceGateway
from gateway.utils.logging_config import setup_logging

logger = logging.getLogger("main")


# ---------------------------------------------------------------------------
# Logging Middleware
# ---------------------------------------------------------------------------
class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Incoming: {request.method} {request.url.path} from {client_host}")

        try:
            response = await call_next(request)
            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"Outgoing: {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Time: {process_time:.2f}ms"
            )
            return response
        except Exception as e:
            logger.error(f"Request failed: {request.method} {request.url.path} - Error: {str(e)}")
            raise e


# ---------------------------------------------------------------------------
# Error rendering: every failure is {"error": ..., "details"?: ...}
# ---------------------------------------------------------------------------
async def gateway_error_handler(request: Request, exc: GatewayError):
    body = ErrorResponse(error=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = []
    for err in exc.errors():
        if err.get("type") == "json_invalid":
            return JSONResponse(status_code=400, content={"error": "Request body is not valid JSON"})
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        if loc and loc[0] not in fields:
            fields.append(loc[0])

    if fields:
        message = f"Missing or invalid required fields: {', '.join(fields)}"
    else:
        message = "Request body must be a JSON object"
    return JSONResponse(status_code=400, content={"error": message})


def create_app(settings: Optional[GatewaySettings] = None) -> FastAPI:
    """Build the FastAPI application around a WorkspaceGateway for ``settings``."""
    settings = settings or load_settings()
    setup_logging(level=settings.log_level, log_dir=settings.log_dir)

    gateway = WorkspaceGateway(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Godot CI gateway listening on port %d", settings.port)
        logger.info("Workspace directory: %s", gateway.workspace_root)
        gateway.check_workspace_root()
        yield

    app = FastAPI(title="Godot CI Workspace Gateway", lifespan=lifespan)
    app.state.settings = settings
    app.state.gateway = gateway

    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Health endpoint
    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    app.include_router(clone_router, tags=["Workspace"])
    app.include_router(test_router, tags=["Workspace"])
    app.include_router(build_router, tags=["Workspace"])
    app.include_router(cleanup_router, tags=["Workspace"])

    return app


app = create_app()

if __name__ == "__main__":
    _settings = app.state.settings
    uvicorn.run(app, host=_settings.host, port=_settings.port)
