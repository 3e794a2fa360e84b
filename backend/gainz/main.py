"""Authentication service: registration, login, refresh, email verification, password reset."""

import logging
import sys
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from gainz.api.v1 import auth

# Ensure app loggers print to stdout so you see them in the terminal
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("gainz").setLevel(logging.DEBUG)
from gainz.config import settings
from gainz.core.middleware import configure_app
from gainz.db.session import dispose_db, init_db
from gainz.rpc import AUTHENTICATION_METHOD, AUTHENTICATION_SERVICE, start_server
from gainz.services.http_client import close_http_client, open_http_client
from gainz.services.maintenance import scheduled_token_cleanup

scheduler = AsyncIOScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_jwt_config()
    await init_db()
    open_http_client(timeout=settings.email_timeout_seconds)

    scheduler.add_job(
        scheduled_token_cleanup,
        "interval",
        minutes=settings.token_cleanup_interval_minutes,
        id="token_cleanup",
        replace_existing=True,
    )
    scheduler.start()

    grpc_server = None
    if settings.grpc_enabled:
        grpc_server = await start_server(
            AUTHENTICATION_SERVICE, AUTHENTICATION_METHOD, settings.authentication_grpc_port
        )
    yield
    if grpc_server is not None:
        await grpc_server.stop(grace=5)
    scheduler.shutdown()
    await close_http_client()
    await dispose_db()


app = FastAPI(
    title="Gainz Authentication API",
    description="Registration, login, token issuance, email verification and password reset",
    version="0.1.0",
    lifespan=lifespan,
)
configure_app(app)
app.include_router(auth.router, prefix="/api/v1")
