import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse

import sentry_sdk
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nabd.api import chat, debug, health
from nabd.config import settings
from nabd.db.session import engine, init_models
from nabd.dependencies import build_services

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.DEBUG if settings.environment == "development" else logging.INFO
    ),
)

if settings.sentry_dsn:
    sentry_sdk.init(dsn=settings.sentry_dsn, traces_sample_rate=0.2, environment=settings.environment)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log = structlog.get_logger()
    db_host = urlparse(settings.database_url).hostname or "local"
    await init_models()
    app.state.services = build_services(settings)
    log.info(
        "Starting Nabd backend",
        db_host=db_host,
        environment=settings.environment,
        llm_provider=settings.llm_provider,
        model_configured=app.state.services.llm.is_configured,
    )
    yield
    await engine.dispose()


app = FastAPI(
    title="Nabd Assistant",
    version="0.1.0",
    lifespan=lifespan,
)

origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()] if settings.allowed_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(chat.router, tags=["chat"])
app.include_router(debug.router, prefix="/debug", tags=["debug"])
