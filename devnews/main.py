import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from devnews.cache import cache
from devnews.config import settings
from devnews.errors import install_error_handlers
from devnews.middleware import TimingMiddleware
from devnews.routers import auth, categories, comments, posts, stats, uploads, users
from devnews.storage import storage

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await cache.connect()
    logger.info("DevNews API started (%s)", settings.APP_ENV)
    yield
    await cache.disconnect()


app = FastAPI(
    title="DevNews API",
    description="Blog/news API with JWT sessions and role-gated access control",
    version="1.0.0",
    lifespan=lifespan,
)

install_error_handlers(app)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router)
app.include_router(categories.router)
app.include_router(posts.router)
app.include_router(comments.router)
app.include_router(users.router)
app.include_router(stats.router)
app.include_router(uploads.router)

# Stored uploads, read-only
storage.ensure_dir()
app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/")
async def root():
    return {"message": "Welcome to DevNews API"}


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}


if __name__ == "__main__":
    uvicorn.run("devnews.main:app", host="0.0.0.0", port=settings.PORT)
