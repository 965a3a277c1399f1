from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quotedesk import __version__
from quotedesk.api.routers import approvals, cases
from quotedesk.common import setup_logger
from quotedesk.core.config import get_settings
from quotedesk.db.session import init_db

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = setup_logger(settings)
    init_db()
    logger.info(f"{settings.app_name} {__version__} started ({settings.environment})")
    yield


app = FastAPI(
    title=settings.app_name,
    description="Quotation case management with multi-tier approval",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(cases.router, prefix="/api")
app.include_router(approvals.router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": __version__}


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
