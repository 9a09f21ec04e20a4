# Backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from app.core.config import settings
from app.core.logging import configure_logging, logger
from app.core.request_id import clear_request_id, new_request_id, set_request_id
from api.routers.sources import router as sources_router
from services.hn_sources_service import HackerNewsSourceService
from services.source_cache import SourceCache

configure_logging(service_name="api", level=settings.LOG_LEVEL)


def _on_item_failures(key: str, failures: int) -> None:
    logger.info("hn_item_failures_observed", key=key, item_failures=failures)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.source_service = HackerNewsSourceService(
        cache=SourceCache(),
        on_item_failures=_on_item_failures,
    )
    logger.info("source_service_started")
    try:
        yield
    finally:
        app.state.source_service.clear()
        app.state.source_service = None
        logger.info("source_service_stopped")


app = FastAPI(
    title="Inspedia Sources",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


def _cors_headers(origin: Optional[str]) -> Dict[str, str]:
    if origin and origin in settings.CORS_ALLOWED_ORIGINS:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
            "Vary": "Origin",
        }
    return {}


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("x-request-id") or new_request_id()
        set_request_id(req_id)

        logger.info("request_started", method=request.method, path=str(request.url.path))
        try:
            response: StarletteResponse = await call_next(request)
        except Exception as exc:
            logger.error("request_exception", error=str(exc.__class__.__name__))
            clear_request_id()
            raise
        logger.info("request_ended", status_code=response.status_code)
        response.headers["X-Request-Id"] = req_id
        clear_request_id()
        return response


# CORS first (outermost), request ids innermost.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS", "HEAD"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    headers = dict(exc.headers or {})
    headers.update(_cors_headers(request.headers.get("origin")))
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.get("/health")
async def health():
    return {"ok": True}


@app.head("/")
async def root_head():
    return Response(status_code=200)


api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(sources_router)
app.include_router(api_v1_router)

logger.info("routers_registered", routers=["api_v1(sources)"])
