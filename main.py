import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from traytic_app.config import settings
from traytic_app.database.connection import engine, Base
from traytic_app.dependencies import get_insert_worker, get_rate_limiter, get_store
from traytic_app.api.v1 import collect, events, stream

# Import models to ensure they're registered with Base
from traytic_app.models import Site, SiteMember

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the background pieces owned by this process"""
    store = get_store()
    try:
        store.init_schema()
    except Exception:
        # The API still serves; inserts fail and get logged until the store is back
        logger.exception("⚠️  Analytics store schema initialization failed")

    rate_limiter = get_rate_limiter()
    rate_limiter.start()

    worker = get_insert_worker() if settings.insert_worker_enabled else None
    if worker:
        worker.start()

    yield

    if worker:
        await worker.stop()
    await rate_limiter.stop()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Privacy-first web analytics: event collection and dashboard queries",
    debug=settings.debug,
    lifespan=lifespan
)

# The SDK runs on customer sites, so any origin may post events
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=".*",
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(collect.router)
app.include_router(events.router, prefix="/api")
app.include_router(stream.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.host, port=settings.port)
