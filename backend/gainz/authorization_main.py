"""Authorization service: re-verifies bearer tokens for downstream services."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from gainz.api.v1 import authorization

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("gainz").setLevel(logging.DEBUG)
from gainz.config import settings
from gainz.core.middleware import configure_app
from gainz.db.session import dispose_db
from gainz.rpc import AUTHORIZATION_METHOD, AUTHORIZATION_SERVICE, start_server


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_jwt_config()
    grpc_server = None
    if settings.grpc_enabled:
        grpc_server = await start_server(
            AUTHORIZATION_SERVICE, AUTHORIZATION_METHOD, settings.authorization_grpc_port
        )
    yield
    if grpc_server is not None:
        await grpc_server.stop(grace=5)
    await dispose_db()


app = FastAPI(
    title="Gainz Authorization API",
    description="Token validation relay",
    version="0.1.0",
    lifespan=lifespan,
)
configure_app(app)
app.include_router(authorization.router, prefix="/api/v1")
