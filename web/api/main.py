"""FastAPI app for Shortdrop: uploads, short links, admin API."""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from drop.models.base import init_db

from web.api.admin_routes import router as admin_router
from web.api.auth_routes import router as auth_router
from web.api.content_routes import router as content_router
from web.api.directory_routes import router as directory_router
from web.api.invite_routes import router as invite_router
from web.api.upload_routes import router as upload_router
from web.api.utils import storage
from web.auth import REFRESHED_TOKEN_HEADER, login_limiter

logger = logging.getLogger("shortdrop")


async def _sweep_login_attempts():
    """Periodically drop expired login-failure entries."""
    while True:
        await asyncio.sleep(config.LOGIN_CLEANUP_INTERVAL_SECONDS)
        removed = login_limiter.sweep_if_due()
        if removed:
            logger.info("Removed %d expired login rate-limit entries", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    storage.ensure_dir()
    sweeper = asyncio.create_task(_sweep_login_attempts())
    yield
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper


app = FastAPI(title="Shortdrop API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REFRESHED_TOKEN_HEADER],
)
app.include_router(auth_router)
app.include_router(upload_router)
app.include_router(content_router)
app.include_router(admin_router)
app.include_router(directory_router)
app.include_router(invite_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
