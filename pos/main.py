import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pos.cache import CacheStore
from pos.config import settings
from pos.errors import DomainError
from pos.messaging import EmailPublisher
from pos.observability import MetricsRegistry, configure_logging, configure_tracing
from pos.routers import auth, metrics
from pos.routers.entities import ROUTERS

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging(settings.LOG_LEVEL)
    provider = configure_tracing(settings.SERVICE_NAME, settings.OTEL_EXPORTER_ENDPOINT)

    app.state.metrics = MetricsRegistry()
    app.state.cache = CacheStore()
    await app.state.cache.connect()  # App works without Redis
    app.state.publisher = EmailPublisher(settings.KAFKA_BOOTSTRAP_SERVERS)
    await app.state.publisher.start()
    yield
    # Shutdown
    await app.state.publisher.stop()
    await app.state.cache.disconnect()
    if provider is not None:
        provider.shutdown()


app = FastAPI(
    title="POS Backend",
    description="Point-of-sale API with cache-aside reads and traceable domain errors",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Routers
for router in ROUTERS:
    app.include_router(router)
app.include_router(auth.router)
app.include_router(metrics.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
