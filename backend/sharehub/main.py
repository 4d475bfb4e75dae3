from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import os
import time

from fastapi import FastAPI, Response, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .database import Base, engine
from .errors import ShareHubError
from .routes import auth, files, chat, admin
from .scheduler import ReplyScheduler, delay_range_from_env
from .services import admin as admin_service
from .services.chat import deliver_automated_reply
from . import schemas

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger("sharehub")

dsn = os.getenv("SENTRY_DSN")
if dsn:
    sentry_sdk.init(dsn=dsn, integrations=[FastApiIntegration()])

REQUEST_COUNT = Counter("request_count", "Total requests", ["method", "endpoint"])
REQUEST_LATENCY = Histogram(
    "request_latency_seconds", "Request latency", ["endpoint"]
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    scheduler = ReplyScheduler(deliver_automated_reply, delay_range=delay_range_from_env())
    app.state.reply_scheduler = scheduler
    logger.info("ShareHub started")
    try:
        yield
    finally:
        await scheduler.shutdown()
        logger.info("ShareHub stopped")


app = FastAPI(title="ShareHub API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3001").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = auth.limiter
app.add_exception_handler(RateLimitExceeded, lambda r, e: Response("Too Many Requests", status_code=429))
if os.getenv("TESTING") != "1":
    app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(ShareHubError)
async def handle_sharehub_error(request: Request, exc: ShareHubError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(SQLAlchemyError)
async def handle_store_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Store error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Server error"})


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    endpoint = request.url.path
    REQUEST_COUNT.labels(request.method, endpoint).inc()
    REQUEST_LATENCY.labels(endpoint).observe(time.time() - start)
    return response

@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/api/health", response_model=schemas.HealthOut)
def health():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc),
        "uptime": admin_service.uptime_seconds(),
        "environment": os.getenv("ENVIRONMENT", "development"),
    }


app.include_router(auth.router)
app.include_router(files.router)
app.include_router(chat.router)
app.include_router(admin.router)


def audit_routes():
    from fastapi.routing import APIRoute
    from .auth import get_current_principal

    public_paths = {
        "/api/auth/login",
        "/api/auth/register",
        "/api/health",
        "/api/files",
        "/api/files/blob/{storage_name:path}",
    }

    def requires_principal(dependant) -> bool:
        return any(
            dep.call is get_current_principal or requires_principal(dep)
            for dep in dependant.dependencies
        )

    for route in app.routes:
        if isinstance(route, APIRoute) and route.path.startswith("/api") and route.path not in public_paths:
            if not requires_principal(route.dependant):
                raise RuntimeError(f"Route {route.path} missing authentication")


audit_routes()
