"""
MediaHub API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present (TiDB)
  3. Start Kafka producer (media-release events)
  4. Connect to Redis (media-release retry set)
  5. Initialise MinIO client & bucket
  6. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from mediahub.config import settings
from mediahub.database import init_db
from mediahub.errors import MediaHubError
from mediahub.telemetry import setup_tracing, instrument_app
from mediahub.clients.kafka_producer import init_kafka, stop_kafka
from mediahub.clients.redis_client import close_redis, init_redis
from mediahub.clients.minio_client import init_minio
from mediahub.routers import comments, playlists, relations, tweets, users, videos

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting MediaHub API (env=%s)", settings.environment)

    await init_db()
    await init_kafka()
    await init_redis()
    init_minio()                    # sync — boto3 is not async

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await stop_kafka()
    await close_redis()


app = FastAPI(
    title="MediaHub API",
    description=(
        "Video sharing backend: channels, videos, comments, tweets, playlists, "
        "likes and subscriptions with consistent denormalized counters."
    ),
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(MediaHubError)
async def mediahub_error_handler(request: Request, exc: MediaHubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message}},
    )


# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(videos.router, prefix="/videos", tags=["Videos"])
app.include_router(comments.router, prefix="/comments", tags=["Comments"])
app.include_router(tweets.router, prefix="/tweets", tags=["Tweets"])
app.include_router(playlists.router, prefix="/playlists", tags=["Playlists"])
app.include_router(relations.router, prefix="/relations", tags=["Relations"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics — scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
