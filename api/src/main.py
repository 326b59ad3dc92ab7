import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.src.config import get_settings
from api.src.db.database import init_db
from api.src.routes import health_router, pipelines_router, webhooks_router
from controller.src.services.pipeline_parser import load_pipelines

logger = logging.getLogger(__name__)

settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: definitions are loaded once and never reloaded
    app.state.pipelines = load_pipelines(settings.pipelines_dir)
    await init_db()
    logger.info(f"Starting Dockhand API with pipelines: {', '.join(sorted(app.state.pipelines)) or 'none'}")
    yield
    # Shutdown
    logger.info("Shutting down Dockhand API")

app = FastAPI(
    title="Dockhand",
    description="Event-triggered build-and-publish pipelines",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router)
app.include_router(pipelines_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")

@app.get("/")
async def root():
    return {
        "name": "Dockhand",
        "version": "0.1.0",
        "docs": "/docs"
    }
